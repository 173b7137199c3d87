import secrets
import string
from datetime import datetime, timezone

PASSWORD_SYMBOLS = "!@#$%^&*-_"

def generate_password(length: int = 16) -> str:
    """
    Temporary password for provisioned accounts.

    Always contains at least one lowercase letter, uppercase letter, digit and
    symbol; every character comes from ``secrets``.
    """
    if length < 8:
        raise ValueError("password length must be at least 8")
    pools = [string.ascii_lowercase, string.ascii_uppercase, string.digits, PASSWORD_SYMBOLS]
    alphabet = "".join(pools)
    chars = [secrets.choice(pool) for pool in pools]
    chars += [secrets.choice(alphabet) for _ in range(length - len(pools))]
    # Fisher-Yates with a secure source so the required classes are not at fixed positions
    for i in range(len(chars) - 1, 0, -1):
        j = secrets.randbelow(i + 1)
        chars[i], chars[j] = chars[j], chars[i]
    return "".join(chars)

def normalize_email(email: str) -> str:
    return email.strip().lower()

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def generate_admin_credentials(domain: str = "carespot.com") -> dict:
    """Suggested login for a new admin account; the super admin may edit it before use."""
    suffix = secrets.token_hex(4)
    return {
        "email": f"admin.{suffix}@{domain}",
        "password": generate_password(),
        "username": f"admin_{secrets.token_hex(3)}",
    }
