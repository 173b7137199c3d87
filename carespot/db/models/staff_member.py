from sqlmodel import SQLModel, Field
from sqlalchemy import JSON, Column, DateTime
from typing import Optional, List
from datetime import datetime
from uuid import UUID, uuid4

from carespot.core.utils import utcnow

class StaffMember(SQLModel, table=True):
    __tablename__ = "staff_members"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    hospital_id: UUID = Field(foreign_key="hospitals.id", index=True)
    role: str = Field(index=True) # doctor, receptionist
    first_name: str
    last_name: Optional[str] = None
    email: str = Field(unique=True, index=True)
    phone: str
    department: str
    experience_years: int = Field(default=0)
    salary: Optional[float] = None
    languages: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    is_active: bool = Field(default=True)
    is_available_for_work: bool = Field(default=True)
    created_by: UUID = Field(foreign_key="users.id")
    joining_date: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))

    # doctor only
    specialization: Optional[str] = None
    qualifications: Optional[str] = None
    # NULLs do not collide under a unique index, so only issued licenses must be distinct
    license_number: Optional[str] = Field(default=None, unique=True)
    consultation_fee: Optional[float] = None
    availability: Optional[List[dict]] = Field(default=None, sa_column=Column(JSON))

    # receptionist only
    working_hours: Optional[dict] = Field(default=None, sa_column=Column(JSON))

    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
