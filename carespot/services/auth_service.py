from datetime import timedelta
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from carespot.core.config import settings
from carespot.core.exceptions import TokenInvalid, Unauthenticated, ValidationFailed
from carespot.core.logger import get_logger
from carespot.core.redis import redis_client
from carespot.core.security import check_password, create_access_token, decode_access_token, hash_password
from carespot.core.utils import utcnow
from carespot.db.models import User
from carespot.schemas.auth import LoginRequest, LoginResponse, PasswordChange
from carespot.schemas.user import PatientRegister, Role, UserCreate, UserResponse
from carespot.services.user_service import UserService

logger = get_logger("auth")

class AuthService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.users = UserService(session)

    async def verify_credentials(self, email: str, password: str) -> User:
        user = await self.users.get_user_by_email(email)
        if not user:
            raise Unauthenticated("Invalid email or password")
        if not user.is_active:
            raise Unauthenticated("Account is deactivated. Please contact support.")
        if not await check_password(password, user.password_hash):
            raise Unauthenticated("Invalid email or password")
        return user

    async def issue_token(self, user: User) -> str:
        access_token_expires = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        access_token = create_access_token(
            data={"sub": str(user.id)}, expires_delta=access_token_expires
        )
        await redis_client.set_token(
            access_token,
            {"user_id": str(user.id), "role": user.role},
            settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        )
        return access_token

    async def verify_token(self, token: str) -> UUID:
        """Subject id of a live token. Signature and expiry are checked before the registry."""
        payload = decode_access_token(token)
        if await redis_client.get_token(token) is None:
            raise TokenInvalid("Token has been revoked")
        try:
            return UUID(payload["sub"])
        except ValueError:
            raise TokenInvalid("Token subject is not a user id")

    async def revoke_token(self, token: str):
        await redis_client.delete_token(token)

    async def _login_response(self, user: User) -> LoginResponse:
        access_token = await self.issue_token(user)
        return LoginResponse(
            access_token=access_token,
            token_type="bearer",
            user=UserResponse.model_validate(user),
        )

    async def login(self, login_data: LoginRequest) -> LoginResponse:
        user = await self.verify_credentials(login_data.email, login_data.password)
        return await self._login_response(user)

    async def admin_login(self, login_data: LoginRequest) -> LoginResponse:
        try:
            user = await self.verify_credentials(login_data.email, login_data.password)
        except Unauthenticated:
            raise Unauthenticated("Invalid admin credentials")
        if user.role != Role.ADMIN.value:
            raise Unauthenticated("Invalid admin credentials")

        user.last_login_at = utcnow()
        self.session.add(user)
        await self.session.commit()
        await self.session.refresh(user)
        logger.info(f"Admin {user.id} logged in")
        return await self._login_response(user)

    async def register_patient(self, data: PatientRegister) -> LoginResponse:
        # self-registration can only ever produce patients
        created = await self.users.create_identity(UserCreate(
            name=data.name,
            email=data.email,
            phone=data.phone,
            password=data.password,
            role=Role.PATIENT,
        ))
        user = await self.users.get_user(created.id)
        return await self._login_response(user)

    async def change_password(self, user: User, data: PasswordChange) -> UserResponse:
        if not await check_password(data.current_password, user.password_hash):
            raise ValidationFailed(
                "Current password is incorrect",
                [{"field": "current_password", "message": "does not match"}],
            )
        user.password_hash = await hash_password(data.new_password)
        user.must_change_password = False
        user.updated_at = utcnow()
        self.session.add(user)
        await self.session.commit()
        await self.session.refresh(user)
        return UserResponse.model_validate(user)
