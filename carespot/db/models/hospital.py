from sqlmodel import SQLModel, Field
from sqlalchemy import JSON, Column, DateTime
from typing import Optional, List
from datetime import datetime
from uuid import UUID, uuid4

from carespot.core.utils import utcnow

class Hospital(SQLModel, table=True):
    __tablename__ = "hospitals"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    hospital_name: str
    registration_number: str = Field(unique=True, index=True)
    hospital_type: str

    address: str
    city: str = Field(index=True)
    state: str
    pincode: str
    country: str = Field(default="India")
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    contact_phone: str
    contact_email: str = Field(unique=True, index=True)
    website: Optional[str] = None
    emergency_number: Optional[str] = None

    departments: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    facilities: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    operating_hours: dict = Field(default_factory=dict, sa_column=Column(JSON))
    documents: List[dict] = Field(default_factory=list, sa_column=Column(JSON))
    bed_total: Optional[int] = None
    bed_available: Optional[int] = None

    verification_status: str = Field(default="pending", index=True) # pending, under_review, approved, rejected
    verified_by: Optional[UUID] = None
    verified_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True)))
    verification_notes: Optional[str] = None
    rejection_reason: Optional[str] = None

    # weak references to users; no FK so users.hospital_id stays the only edge
    manager_id: Optional[UUID] = None
    is_partnered: bool = Field(default=False, index=True)
    partnership_level: str = Field(default="basic")
    is_active: bool = Field(default=True)

    agreement_accepted: bool = Field(default=False)
    agreement_accepted_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True)))
    terms_version: Optional[str] = None

    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
