from sqlmodel import SQLModel
from .hospital import Hospital
from .user import User
from .staff_member import StaffMember
from .audit_log import AuditLog

__all__ = [
    "SQLModel",
    "Hospital",
    "User",
    "StaffMember",
    "AuditLog",
]
