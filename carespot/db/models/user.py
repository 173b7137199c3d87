from sqlmodel import SQLModel, Field
from sqlalchemy import JSON, Column, DateTime
from typing import Optional, List
from datetime import datetime
from uuid import UUID, uuid4

from carespot.core.utils import utcnow

class User(SQLModel, table=True):
    __tablename__ = "users"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    name: str
    email: str = Field(unique=True, index=True)
    phone: str = Field(unique=True, index=True)
    password_hash: str
    role: str = Field(default="patient", index=True) # patient, doctor, nurse, receptionist, hospital_manager, admin
    admin_level: Optional[str] = None # super_admin, admin, moderator
    permissions: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    hospital_id: Optional[UUID] = Field(default=None, foreign_key="hospitals.id", index=True)
    is_active: bool = Field(default=True)
    must_change_password: bool = Field(default=False)
    last_login_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True)))
    created_by: Optional[UUID] = None
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
