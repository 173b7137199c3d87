from enum import Enum
from pydantic import BaseModel, Field, model_validator
from typing import List, Optional
from uuid import UUID

from carespot.schemas.hospital import HospitalResponse, HospitalSummary, VerificationStatus
from carespot.schemas.user import EMAIL_PATTERN, MOBILE_PATTERN, UserResponse

class ManagerDetails(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    email: str = Field(pattern=EMAIL_PATTERN)
    phone: str = Field(pattern=MOBILE_PATTERN)

    class Config:
        str_strip_whitespace = True

class VerificationRequest(BaseModel):
    status: VerificationStatus
    verification_notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    manager_name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    manager_email: Optional[str] = Field(default=None, pattern=EMAIL_PATTERN)
    manager_phone: Optional[str] = Field(default=None, pattern=MOBILE_PATTERN)

    @model_validator(mode="after")
    def manager_fields_together(self):
        supplied = [self.manager_name, self.manager_email, self.manager_phone]
        if any(supplied) and not all(supplied):
            raise ValueError("manager_name, manager_email and manager_phone must be supplied together")
        return self

    def manager_details(self) -> Optional[ManagerDetails]:
        if not self.manager_email:
            return None
        return ManagerDetails(
            name=self.manager_name,
            email=self.manager_email,
            phone=self.manager_phone,
        )

class HospitalManagerCreate(ManagerDetails):
    hospital_id: UUID

class ManagerAssign(BaseModel):
    manager_id: UUID

class StepOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"
    FAILED = "failed"

class ProvisioningStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL_SUCCESS = "partial_success"

class ProvisioningStep(BaseModel):
    step: str
    outcome: StepOutcome
    detail: Optional[str] = None

class ProvisioningResult(BaseModel):
    status: ProvisioningStatus
    changed: bool
    hospital: HospitalResponse
    steps: List[ProvisioningStep]
    manager: Optional[UserResponse] = None
    temporary_password: Optional[str] = None

class HospitalStats(BaseModel):
    total: int
    pending: int
    under_review: int
    approved: int
    rejected: int

class UserStats(BaseModel):
    patients: int
    doctors: int
    hospital_managers: int
    admins: int

class DashboardStats(BaseModel):
    hospitals: HospitalStats
    users: UserStats
    recent_applications: List[HospitalSummary]
