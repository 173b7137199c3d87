from enum import Enum
from pydantic import BaseModel, Field
from typing import Optional, List
from uuid import UUID
from datetime import datetime

EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"
MOBILE_PATTERN = r"^[6-9]\d{9}$"

class Role(str, Enum):
    PATIENT = "patient"
    DOCTOR = "doctor"
    NURSE = "nurse"
    RECEPTIONIST = "receptionist"
    HOSPITAL_MANAGER = "hospital_manager"
    ADMIN = "admin"

class AdminLevel(str, Enum):
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    MODERATOR = "moderator"

class Permission(str, Enum):
    VERIFY_HOSPITALS = "verify_hospitals"
    MANAGE_USERS = "manage_users"
    VIEW_ANALYTICS = "view_analytics"
    SYSTEM_SETTINGS = "system_settings"
    CONTENT_MANAGEMENT = "content_management"

ADMIN_PERMISSION_SETS = {
    AdminLevel.SUPER_ADMIN: [p.value for p in Permission],
    AdminLevel.ADMIN: [
        Permission.VERIFY_HOSPITALS.value,
        Permission.MANAGE_USERS.value,
        Permission.VIEW_ANALYTICS.value,
    ],
    AdminLevel.MODERATOR: [
        Permission.VERIFY_HOSPITALS.value,
        Permission.VIEW_ANALYTICS.value,
    ],
}

class UserBase(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    email: str = Field(pattern=EMAIL_PATTERN)
    phone: str = Field(pattern=MOBILE_PATTERN)

    class Config:
        str_strip_whitespace = True

class UserCreate(UserBase):
    """Internal input of the identity store; ``role`` is always set by the caller."""
    password: str = Field(min_length=6)
    role: Role = Role.PATIENT
    admin_level: Optional[AdminLevel] = None
    permissions: Optional[List[Permission]] = None
    hospital_id: Optional[UUID] = None
    must_change_password: bool = False
    created_by: Optional[UUID] = None

class PatientRegister(UserBase):
    password: str = Field(min_length=6)

class AdminCreate(UserBase):
    password: str = Field(min_length=8)
    admin_level: AdminLevel = AdminLevel.ADMIN
    permissions: Optional[List[Permission]] = None

class UserResponse(BaseModel):
    id: UUID
    name: str
    email: str
    phone: str
    role: str
    admin_level: Optional[str] = None
    permissions: List[str] = []
    hospital_id: Optional[UUID] = None
    is_active: bool
    must_change_password: bool = False
    last_login_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True

class UserListResponse(BaseModel):
    users: List[UserResponse]
    total: int
    page: int
    pages: int

class ProfileUpdate(BaseModel):
    """Self-service profile edit. Email, role and hospital are not editable here."""
    name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    phone: Optional[str] = Field(default=None, pattern=MOBILE_PATTERN)

    class Config:
        str_strip_whitespace = True

class AdminStatusUpdate(BaseModel):
    is_active: bool

class GeneratedCredentials(BaseModel):
    email: str
    password: str
    username: str
