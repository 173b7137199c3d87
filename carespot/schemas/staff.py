from enum import Enum
from pydantic import BaseModel, Field, computed_field
from typing import Annotated, Dict, List, Literal, Optional, Union
from uuid import UUID
from datetime import datetime

from carespot.schemas.user import EMAIL_PATTERN
from carespot.schemas.hospital import TIME_PATTERN

STAFF_PHONE_PATTERN = r"^\d{10}$"

class StaffRole(str, Enum):
    DOCTOR = "doctor"
    RECEPTIONIST = "receptionist"

class Weekday(str, Enum):
    MONDAY = "Monday"
    TUESDAY = "Tuesday"
    WEDNESDAY = "Wednesday"
    THURSDAY = "Thursday"
    FRIDAY = "Friday"
    SATURDAY = "Saturday"
    SUNDAY = "Sunday"

class Specialization(str, Enum):
    GENERAL_MEDICINE = "General Medicine"
    CARDIOLOGY = "Cardiology"
    NEUROLOGY = "Neurology"
    ORTHOPEDICS = "Orthopedics"
    PEDIATRICS = "Pediatrics"
    GYNECOLOGY = "Gynecology"
    DERMATOLOGY = "Dermatology"
    PSYCHIATRY = "Psychiatry"
    RADIOLOGY = "Radiology"
    ANESTHESIOLOGY = "Anesthesiology"
    SURGERY = "Surgery"
    ONCOLOGY = "Oncology"
    GASTROENTEROLOGY = "Gastroenterology"
    PULMONOLOGY = "Pulmonology"
    NEPHROLOGY = "Nephrology"
    ENDOCRINOLOGY = "Endocrinology"
    OPHTHALMOLOGY = "Ophthalmology"
    ENT = "ENT"
    UROLOGY = "Urology"

class StaffDepartment(str, Enum):
    RECEPTION = "Reception"
    EMERGENCY = "Emergency"
    INTERNAL_MEDICINE = "Internal Medicine"
    SURGERY = "Surgery"
    PEDIATRICS = "Pediatrics"
    OBSTETRICS_GYNECOLOGY = "Obstetrics & Gynecology"
    ORTHOPEDICS = "Orthopedics"
    CARDIOLOGY = "Cardiology"
    NEUROLOGY = "Neurology"
    RADIOLOGY = "Radiology"
    PATHOLOGY = "Pathology"
    ANESTHESIOLOGY = "Anesthesiology"
    ONCOLOGY = "Oncology"
    DERMATOLOGY = "Dermatology"
    PSYCHIATRY = "Psychiatry"
    OPHTHALMOLOGY = "Ophthalmology"
    ENT = "ENT"
    UROLOGY = "Urology"
    GENERAL_MEDICINE = "General Medicine"
    ADMINISTRATION = "Administration"

class AvailabilitySlot(BaseModel):
    day: Weekday
    start_time: str = Field(pattern=TIME_PATTERN)
    end_time: str = Field(pattern=TIME_PATTERN)
    is_available: bool = True

    class Config:
        use_enum_values = True

class WorkingHours(BaseModel):
    start_time: str = Field(default="09:00", pattern=TIME_PATTERN)
    end_time: str = Field(default="18:00", pattern=TIME_PATTERN)
    working_days: List[Weekday] = Field(min_length=1)

    class Config:
        use_enum_values = True

class WorkingHoursIn(BaseModel):
    start_time: Optional[str] = Field(default=None, pattern=TIME_PATTERN)
    end_time: Optional[str] = Field(default=None, pattern=TIME_PATTERN)
    working_days: List[Weekday] = []

class StaffFields(BaseModel):
    """
    Loose request shape shared by create and update.

    Role-specific requirements are enforced by ``staff_rules.validate_staff`` so
    that a missing doctor field is reported by name instead of as a schema error.
    """
    first_name: Optional[str] = Field(default=None, min_length=1)
    last_name: Optional[str] = None
    phone: Optional[str] = Field(default=None, pattern=STAFF_PHONE_PATTERN)
    department: Optional[str] = None
    experience_years: Optional[int] = None
    salary: Optional[float] = None
    languages: Optional[List[str]] = None
    is_available_for_work: Optional[bool] = None
    specialization: Optional[str] = None
    qualifications: Optional[str] = None
    license_number: Optional[str] = None
    consultation_fee: Optional[float] = None
    availability: Optional[List[AvailabilitySlot]] = None
    working_hours: Optional[WorkingHoursIn] = None

    class Config:
        str_strip_whitespace = True

class StaffCreate(StaffFields):
    hospital_id: UUID
    role: StaffRole
    first_name: str = Field(min_length=1)
    email: str = Field(pattern=EMAIL_PATTERN)
    phone: str = Field(pattern=STAFF_PHONE_PATTERN)

class StaffUpdate(StaffFields):
    # accepted so clients may send whole records; always discarded before the merge
    hospital_id: Optional[UUID] = None
    email: Optional[str] = None
    role: Optional[str] = None

class AvailabilityUpdate(BaseModel):
    availability: Optional[List[AvailabilitySlot]] = None
    working_hours: Optional[WorkingHoursIn] = None

class StaffProfileBase(BaseModel):
    hospital_id: UUID
    first_name: str = Field(min_length=1)
    last_name: Optional[str] = None
    email: str = Field(pattern=EMAIL_PATTERN)
    phone: str = Field(pattern=STAFF_PHONE_PATTERN)
    department: StaffDepartment
    experience_years: int = Field(default=0, ge=0, le=50)
    salary: Optional[float] = Field(default=None, ge=0)
    languages: List[str]
    is_available_for_work: bool = True

    class Config:
        use_enum_values = True

class DoctorProfile(StaffProfileBase):
    role: Literal["doctor"] = "doctor"
    specialization: Specialization
    qualifications: str = Field(min_length=1)
    license_number: str = Field(min_length=1)
    consultation_fee: float = Field(default=500, ge=0)
    availability: List[AvailabilitySlot]

class ReceptionistProfile(StaffProfileBase):
    role: Literal["receptionist"] = "receptionist"
    working_hours: WorkingHours

StaffProfile = Annotated[Union[DoctorProfile, ReceptionistProfile], Field(discriminator="role")]

class StaffResponse(BaseModel):
    id: UUID
    hospital_id: UUID
    role: str
    first_name: str
    last_name: Optional[str] = None
    email: str
    phone: str
    department: str
    experience_years: int
    salary: Optional[float] = None
    languages: List[str] = []
    is_active: bool
    is_available_for_work: bool
    created_by: UUID
    joining_date: datetime
    specialization: Optional[str] = None
    qualifications: Optional[str] = None
    license_number: Optional[str] = None
    consultation_fee: Optional[float] = None
    availability: Optional[List[AvailabilitySlot]] = None
    working_hours: Optional[WorkingHours] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

    @computed_field
    @property
    def full_name(self) -> str:
        title = "Dr." if self.role == StaffRole.DOCTOR.value else ""
        return f"{title} {self.first_name} {self.last_name or ''}".strip()

    @computed_field
    @property
    def display_title(self) -> str:
        name = f"{self.first_name} {self.last_name or ''}".strip()
        if self.role == StaffRole.DOCTOR.value:
            return f"Dr. {name} - {self.specialization}"
        return f"{name} - {self.role.capitalize()}"

class StaffStats(BaseModel):
    total: int
    doctors: int
    receptionists: int
    by_specialization: Dict[str, int]

class StaffListResponse(BaseModel):
    staff: List[StaffResponse]
    stats: StaffStats
    count: int
