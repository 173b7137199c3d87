import math
from typing import Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select, func, or_

from carespot.core.exceptions import Conflict, Forbidden, NotFound, Unavailable, ValidationFailed
from carespot.core.logger import get_logger
from carespot.core.security import hash_password
from carespot.core.utils import normalize_email, utcnow
from carespot.db.models import Hospital, User
from carespot.schemas.user import (
    ADMIN_PERMISSION_SETS,
    AdminCreate,
    AdminLevel,
    ProfileUpdate,
    Role,
    UserCreate,
    UserListResponse,
    UserResponse,
)

logger = get_logger("users")

class UserService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_user(self, user_id: UUID) -> User:
        user = await self.session.get(User, user_id)
        if not user:
            raise NotFound("User", user_id)
        return user

    async def get_user_by_email(self, email: str) -> Optional[User]:
        stmt = select(User).where(User.email == normalize_email(email))
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def build_identity(self, data: UserCreate) -> User:
        """Unsaved ``User`` row for ``data``; the password is hashed here and nowhere else."""
        role = Role(data.role)
        admin_level = None
        permissions = []
        if role == Role.ADMIN:
            admin_level = AdminLevel(data.admin_level or AdminLevel.ADMIN)
            permissions = [p.value for p in data.permissions] if data.permissions else list(ADMIN_PERMISSION_SETS[admin_level])
            admin_level = admin_level.value
        return User(
            name=data.name,
            email=normalize_email(data.email),
            phone=data.phone,
            password_hash=await hash_password(data.password),
            role=role.value,
            admin_level=admin_level,
            permissions=permissions,
            hospital_id=data.hospital_id,
            must_change_password=data.must_change_password,
            created_by=data.created_by,
        )

    async def ensure_hospital_exists(self, hospital_id: Optional[UUID]):
        if hospital_id is None:
            return
        if not await self.session.get(Hospital, hospital_id):
            raise ValidationFailed(
                "hospital_id does not reference an existing hospital",
                [{"field": "hospital_id", "message": "unknown hospital"}],
            )

    async def create_identity(self, data: UserCreate) -> UserResponse:
        await self.ensure_hospital_exists(data.hospital_id)
        user = await self.build_identity(data)
        email, phone = user.email, user.phone
        self.session.add(user)
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise await self.duplicate_identity_error(email, phone)
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise Unavailable("database") from exc
        await self.session.refresh(user)
        logger.info(f"Created {user.role} identity {user.id}")
        return UserResponse.model_validate(user)

    async def duplicate_identity_error(self, email: str, phone: str) -> Conflict:
        """Name the field behind a unique-index violation on ``users``."""
        stmt = select(User).where(or_(User.email == email, User.phone == phone))
        result = await self.session.execute(stmt)
        existing = result.scalars().first()
        if existing is not None and existing.phone == phone and existing.email != email:
            return Conflict("Phone number already registered", field="phone", value=phone)
        return Conflict("User already exists with this email", field="email", value=email)

    async def create_admin(self, data: AdminCreate, creator: User) -> UserResponse:
        if data.admin_level == AdminLevel.SUPER_ADMIN:
            raise ValidationFailed(
                "Invalid admin level. Must be admin or moderator",
                [{"field": "admin_level", "message": "must be admin or moderator"}],
            )
        return await self.create_identity(UserCreate(
            name=data.name,
            email=data.email,
            phone=data.phone,
            password=data.password,
            role=Role.ADMIN,
            admin_level=data.admin_level,
            permissions=data.permissions,
            created_by=creator.id,
        ))

    async def list_users(self, role: Optional[str] = None, page: int = 1, limit: int = 20) -> UserListResponse:
        query = select(User)
        count_query = select(func.count()).select_from(User)
        if role and role != "all":
            query = query.where(User.role == role)
            count_query = count_query.where(User.role == role)
        query = query.order_by(User.created_at.desc()).offset((page - 1) * limit).limit(limit)
        result = await self.session.execute(query)
        total = (await self.session.execute(count_query)).scalar() or 0
        return UserListResponse(
            users=[UserResponse.model_validate(u) for u in result.scalars().all()],
            total=total,
            page=page,
            pages=math.ceil(total / limit) if limit else 0,
        )

    async def toggle_user_status(self, user_id: UUID, actor: User) -> UserResponse:
        user = await self.get_user(user_id)
        if user.id == actor.id:
            raise Forbidden("Cannot change your own account status")
        user.is_active = not user.is_active
        user.updated_at = utcnow()
        self.session.add(user)
        await self.session.commit()
        await self.session.refresh(user)
        logger.info(f"User {user.id} {'activated' if user.is_active else 'deactivated'} by {actor.id}")
        return UserResponse.model_validate(user)

    async def update_profile(self, user: User, data: ProfileUpdate) -> UserResponse:
        updates = data.model_dump(exclude_unset=True, exclude_none=True)
        if not updates:
            return UserResponse.model_validate(user)
        email, phone = user.email, updates.get("phone", user.phone)
        for key, value in updates.items():
            setattr(user, key, value)
        user.updated_at = utcnow()
        self.session.add(user)
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise await self.duplicate_identity_error(email, phone)
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise Unavailable("database") from exc
        await self.session.refresh(user)
        return UserResponse.model_validate(user)

    async def get_created_admin(self, admin_id: UUID, creator: User) -> User:
        """An admin account ``creator`` made. Anything else is reported as not found."""
        user = await self.session.get(User, admin_id)
        if user is None or user.role != Role.ADMIN.value or user.created_by != creator.id:
            raise NotFound("Admin", admin_id)
        return user

    async def list_created_admins(self, creator: User, page: int = 1, limit: int = 10) -> UserListResponse:
        conditions = [User.role == Role.ADMIN.value, User.created_by == creator.id]
        query = (
            select(User)
            .where(*conditions)
            .order_by(User.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        result = await self.session.execute(query)
        total = (await self.session.execute(select(func.count()).select_from(User).where(*conditions))).scalar() or 0
        return UserListResponse(
            users=[UserResponse.model_validate(u) for u in result.scalars().all()],
            total=total,
            page=page,
            pages=math.ceil(total / limit) if limit else 0,
        )

    async def set_admin_status(self, admin_id: UUID, is_active: bool, creator: User) -> UserResponse:
        admin = await self.get_created_admin(admin_id, creator)
        admin.is_active = is_active
        admin.updated_at = utcnow()
        self.session.add(admin)
        await self.session.commit()
        await self.session.refresh(admin)
        logger.info(f"Admin {admin.id} {'activated' if is_active else 'deactivated'} by {creator.id}")
        return UserResponse.model_validate(admin)

    async def delete_admin(self, admin_id: UUID, creator: User):
        admin = await self.get_created_admin(admin_id, creator)
        await self.session.delete(admin)
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise Conflict("Admin still owns staff records; deactivate the account instead", field="id", value=str(admin_id))
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise Unavailable("database") from exc
        logger.info(f"Admin {admin_id} deleted by {creator.id}")
