from typing import Optional
from uuid import UUID

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from carespot.core.config import settings
from carespot.core.exceptions import Forbidden, Unauthenticated
from carespot.db.models import StaffMember, User
from carespot.db.session import get_session
from carespot.schemas.user import AdminLevel, Role
from carespot.services.auth_service import AuthService
from carespot.services.notification_service import NotificationSender, get_notification_sender
from carespot.services.staff_service import StaffService

# auto_error off so a missing header goes through the same error body as a bad token
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_V1_STR}/auth/login", auto_error=False)

async def get_token(token: Optional[str] = Depends(oauth2_scheme)) -> str:
    if not token:
        raise Unauthenticated("Not authenticated")
    return token

async def get_current_user(
    request: Request,
    token: str = Depends(get_token),
    session: AsyncSession = Depends(get_session)
) -> User:
    user_id = await AuthService(session).verify_token(token)
    user = await session.get(User, user_id)
    if user is None:
        raise Unauthenticated("User not found")
    if not user.is_active:
        raise Unauthenticated("Account is deactivated. Please contact support.")
    request.state.user = user
    return user

def require_roles(*roles: str):
    allowed = {str(getattr(role, "value", role)).lower() for role in roles}

    async def checker(current_user: User = Depends(get_current_user)) -> User:
        if (current_user.role or "").lower() not in allowed:
            raise Forbidden(f"Requires one of roles: {', '.join(sorted(allowed))}")
        return current_user

    return checker

def require_admin_level(level: AdminLevel):
    async def checker(current_user: User = Depends(require_roles(Role.ADMIN))) -> User:
        if current_user.admin_level != AdminLevel(level).value:
            raise Forbidden(f"Requires admin level {AdminLevel(level).value}")
        return current_user

    return checker

def authorize_hospital_scope(user: User, hospital_id: UUID):
    """Admins pass; everyone else only for their own hospital. Never reads storage."""
    if user.role == Role.ADMIN.value:
        return
    if user.hospital_id is None or user.hospital_id != hospital_id:
        raise Forbidden("Access denied to this hospital")

async def get_scoped_staff(
    staff_id: UUID,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session)
) -> StaffMember:
    service = StaffService(session)
    if current_user.role == Role.ADMIN.value:
        return await service.get_staff(staff_id)
    # unknown ids and other hospitals' staff look the same to non-admins
    staff = await service.find_staff(staff_id)
    if staff is None or staff.hospital_id != current_user.hospital_id:
        raise Forbidden("Access denied to this staff member")
    return staff

def get_notifier() -> NotificationSender:
    return get_notification_sender()
