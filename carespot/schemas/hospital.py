from enum import Enum
from pydantic import BaseModel, Field, model_validator
from typing import Optional, List, Dict
from uuid import UUID
from datetime import datetime

from carespot.schemas.user import EMAIL_PATTERN

HOSPITAL_PHONE_PATTERN = r"^\d{10}$"
PINCODE_PATTERN = r"^[1-9][0-9]{5}$"
TIME_PATTERN = r"^([01]?[0-9]|2[0-3]):[0-5][0-9]$"

class HospitalType(str, Enum):
    GENERAL = "general"
    SPECIALTY = "specialty"
    CLINIC = "clinic"
    EMERGENCY = "emergency"
    TEACHING = "teaching"
    MULTISPECIALTY = "multispecialty"

class VerificationStatus(str, Enum):
    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"

class PartnershipLevel(str, Enum):
    BASIC = "basic"
    PREMIUM = "premium"
    EXCLUSIVE = "exclusive"

class DocumentType(str, Enum):
    LICENSE = "license"
    CERTIFICATE = "certificate"
    NOC = "noc"
    OTHER = "other"

class Location(BaseModel):
    address: str = Field(min_length=1)
    city: str = Field(min_length=1)
    state: str = Field(min_length=1)
    pincode: str = Field(pattern=PINCODE_PATTERN)
    country: str = "India"
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)

    class Config:
        str_strip_whitespace = True

class ContactInfo(BaseModel):
    phone: str = Field(pattern=HOSPITAL_PHONE_PATTERN)
    email: str = Field(pattern=EMAIL_PATTERN)
    website: Optional[str] = None
    emergency_number: Optional[str] = None

    class Config:
        str_strip_whitespace = True

class OperatingDay(BaseModel):
    open: str = Field(default="09:00", pattern=TIME_PATTERN)
    close: str = Field(default="18:00", pattern=TIME_PATTERN)
    is_open: bool = True

class BedCount(BaseModel):
    total: int = Field(ge=0)
    available: int = Field(ge=0)

    @model_validator(mode="after")
    def available_within_total(self):
        if self.available > self.total:
            raise ValueError("Available beds cannot exceed total beds")
        return self

class PartnershipAgreement(BaseModel):
    accepted: bool = False
    terms_version: Optional[str] = None

class DocumentCreate(BaseModel):
    filename: str = Field(min_length=1)
    url: str = Field(min_length=1)
    document_type: DocumentType = DocumentType.OTHER

class Document(DocumentCreate):
    uploaded_at: datetime

class HospitalBase(BaseModel):
    hospital_name: str = Field(min_length=1)
    registration_number: str = Field(min_length=1)
    hospital_type: HospitalType = HospitalType.GENERAL
    location: Location
    contact_info: ContactInfo
    departments: List[str] = Field(min_length=1)
    facilities: List[str] = []
    operating_hours: Optional[Dict[str, OperatingDay]] = None
    bed_count: Optional[BedCount] = None

    class Config:
        str_strip_whitespace = True

class HospitalCreate(HospitalBase):
    """Public registration form. Status, manager and partnership flags are not accepted."""
    partnership_agreement: Optional[PartnershipAgreement] = None

class HospitalUpdate(BaseModel):
    hospital_name: Optional[str] = Field(default=None, min_length=1)
    registration_number: Optional[str] = Field(default=None, min_length=1)
    hospital_type: Optional[HospitalType] = None
    location: Optional[Location] = None
    contact_info: Optional[ContactInfo] = None
    departments: Optional[List[str]] = Field(default=None, min_length=1)
    facilities: Optional[List[str]] = None
    operating_hours: Optional[Dict[str, OperatingDay]] = None
    bed_count: Optional[BedCount] = None
    partnership_agreement: Optional[PartnershipAgreement] = None

    class Config:
        str_strip_whitespace = True

class VerificationDetails(BaseModel):
    verified_by: Optional[UUID] = None
    verified_at: Optional[datetime] = None
    verification_notes: Optional[str] = None
    rejection_reason: Optional[str] = None

class HospitalResponse(BaseModel):
    id: UUID
    hospital_name: str
    registration_number: str
    hospital_type: str
    location: Location
    contact_info: ContactInfo
    departments: List[str]
    facilities: List[str]
    operating_hours: Dict[str, OperatingDay]
    bed_count: Optional[BedCount] = None
    documents: List[Document]
    verification_status: str
    verification_details: VerificationDetails
    manager_id: Optional[UUID] = None
    is_partnered: bool
    partnership_level: str
    is_active: bool
    partnership_agreement: PartnershipAgreement
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, hospital) -> "HospitalResponse":
        bed_count = None
        if hospital.bed_total is not None and hospital.bed_available is not None:
            bed_count = BedCount(total=hospital.bed_total, available=hospital.bed_available)
        return cls(
            id=hospital.id,
            hospital_name=hospital.hospital_name,
            registration_number=hospital.registration_number,
            hospital_type=hospital.hospital_type,
            location=Location(
                address=hospital.address,
                city=hospital.city,
                state=hospital.state,
                pincode=hospital.pincode,
                country=hospital.country,
                latitude=hospital.latitude,
                longitude=hospital.longitude,
            ),
            contact_info=ContactInfo(
                phone=hospital.contact_phone,
                email=hospital.contact_email,
                website=hospital.website,
                emergency_number=hospital.emergency_number,
            ),
            departments=hospital.departments or [],
            facilities=hospital.facilities or [],
            operating_hours=hospital.operating_hours or {},
            bed_count=bed_count,
            documents=hospital.documents or [],
            verification_status=hospital.verification_status,
            verification_details=VerificationDetails(
                verified_by=hospital.verified_by,
                verified_at=hospital.verified_at,
                verification_notes=hospital.verification_notes,
                rejection_reason=hospital.rejection_reason,
            ),
            manager_id=hospital.manager_id,
            is_partnered=hospital.is_partnered,
            partnership_level=hospital.partnership_level,
            is_active=hospital.is_active,
            partnership_agreement=PartnershipAgreement(
                accepted=hospital.agreement_accepted,
                terms_version=hospital.terms_version,
            ),
            created_at=hospital.created_at,
            updated_at=hospital.updated_at,
        )

class HospitalSummary(BaseModel):
    id: UUID
    hospital_name: str
    registration_number: str
    hospital_type: str
    city: str
    verification_status: str
    is_partnered: bool
    created_at: datetime

    class Config:
        from_attributes = True

class HospitalListResponse(BaseModel):
    hospitals: List[HospitalSummary]
    total: int
    page: int
    pages: int

class HospitalDashboardStats(BaseModel):
    verification_status: str
    is_partnered: bool
    departments: int
    facilities: int
    documents: int
    active_doctors: int
    active_receptionists: int
    inactive_staff: int
    last_updated: datetime

class HospitalDashboard(BaseModel):
    hospital: HospitalResponse
    stats: HospitalDashboardStats
