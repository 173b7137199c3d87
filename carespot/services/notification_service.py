import asyncio
import smtplib
from email.message import EmailMessage
from typing import Any, Callable, Dict, Optional, Tuple

from carespot.core.config import settings
from carespot.core.logger import get_logger

logger = get_logger("notifications")

def _hospital_approval(data: Dict[str, Any]) -> Tuple[str, str]:
    return (
        f"Hospital Application Approved - {data['hospital_name']}",
        f"Dear {data['hospital_name']} Team,\n\n"
        "Your hospital partnership application has been approved. "
        "You are now part of the Carespot healthcare network.\n\n"
        f"Notes: {data.get('verification_notes') or '-'}\n",
    )

def _hospital_rejection(data: Dict[str, Any]) -> Tuple[str, str]:
    return (
        f"Hospital Application Update - {data['hospital_name']}",
        f"Dear {data['hospital_name']} Team,\n\n"
        "After review we are unable to approve your partnership application at this time.\n\n"
        f"Reason: {data['rejection_reason']}\n",
    )

def _manager_welcome(data: Dict[str, Any]) -> Tuple[str, str]:
    return (
        f"Your Carespot manager account for {data['hospital_name']}",
        f"Hello {data['name']},\n\n"
        f"A hospital manager account has been created for {data['hospital_name']}.\n\n"
        f"Login email: {data['email']}\n"
        f"Temporary password: {data['temp_password']}\n\n"
        f"Sign in at {settings.FRONTEND_URL}/hospital-login and change your password.\n",
    )

TEMPLATES: Dict[str, Callable[[Dict[str, Any]], Tuple[str, str]]] = {
    "hospital_approval": _hospital_approval,
    "hospital_rejection": _hospital_rejection,
    "manager_welcome": _manager_welcome,
}

def render(template_id: str, data: Dict[str, Any]) -> Tuple[str, str]:
    try:
        template = TEMPLATES[template_id]
    except KeyError:
        raise ValueError(f"Unknown notification template: {template_id}")
    return template(data)

class NotificationSender:
    """``send`` reports delivery as a bool; it should not raise for delivery problems."""

    async def send(self, to: str, template_id: str, data: Dict[str, Any]) -> bool:
        raise NotImplementedError

class LogNotificationSender(NotificationSender):
    """Development sender: writes the rendered message to the log."""

    async def send(self, to: str, template_id: str, data: Dict[str, Any]) -> bool:
        subject, _ = render(template_id, data)
        logger.info(f"[{template_id}] to={to} subject={subject!r}")
        return True

class SmtpNotificationSender(NotificationSender):
    def __init__(
        self,
        host: str = settings.SMTP_HOST,
        port: int = settings.SMTP_PORT,
        username: Optional[str] = settings.SMTP_USER,
        password: Optional[str] = settings.SMTP_PASSWORD,
        sender: str = settings.EMAIL_FROM,
        timeout: float = settings.NOTIFICATION_TIMEOUT_SECONDS,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender
        self.timeout = timeout

    def _deliver(self, message: EmailMessage):
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            smtp.starttls()
            if self.username:
                smtp.login(self.username, self.password or "")
            smtp.send_message(message)

    async def send(self, to: str, template_id: str, data: Dict[str, Any]) -> bool:
        subject, body = render(template_id, data)
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content(body)
        try:
            # smtplib blocks; keep it off the event loop
            await asyncio.to_thread(self._deliver, message)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error(f"Email [{template_id}] to {to} failed: {exc}")
            return False
        return True

async def dispatch(
    sender: NotificationSender,
    to: str,
    template_id: str,
    data: Dict[str, Any],
    timeout: Optional[float] = None,
) -> Tuple[bool, Optional[str]]:
    """Send with a deadline. Returns (delivered, failure detail)."""
    timeout = settings.NOTIFICATION_TIMEOUT_SECONDS if timeout is None else timeout
    try:
        delivered = await asyncio.wait_for(sender.send(to, template_id, data), timeout)
    except asyncio.TimeoutError:
        logger.error(f"Notification [{template_id}] to {to} timed out after {timeout}s")
        return False, f"timed out after {timeout}s"
    except Exception as exc:
        logger.exception(f"Notification [{template_id}] to {to} raised")
        return False, str(exc) or exc.__class__.__name__
    if not delivered:
        logger.error(f"Notification [{template_id}] to {to} was not delivered")
        return False, "delivery failed"
    return True, None

def get_notification_sender() -> NotificationSender:
    if settings.EMAIL_BACKEND == "smtp":
        return SmtpNotificationSender()
    return LogNotificationSender()
