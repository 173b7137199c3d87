from typing import Any, Dict, List, Optional, Union
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select, func

from carespot.core.exceptions import Conflict, Forbidden, NotFound, Unavailable, ValidationFailed
from carespot.core.logger import get_logger
from carespot.core.utils import normalize_email, utcnow
from carespot.db.models import Hospital, StaffMember, User
from carespot.schemas.hospital import VerificationStatus
from carespot.schemas.staff import (
    AvailabilityUpdate,
    DoctorProfile,
    ReceptionistProfile,
    StaffCreate,
    StaffListResponse,
    StaffResponse,
    StaffRole,
    StaffStats,
    StaffUpdate,
)
from carespot.services import audit
from carespot.services.staff_rules import (
    DOCTOR_ONLY_FIELDS,
    RECEPTIONIST_ONLY_FIELDS,
    strip_immutable_fields,
    validate_staff,
)

logger = get_logger("staff")

COMMON_PROFILE_FIELDS = (
    "hospital_id", "role", "first_name", "last_name", "email", "phone", "department",
    "experience_years", "salary", "languages", "is_available_for_work",
)

def profile_fields(staff: StaffMember) -> Dict[str, Any]:
    """Stored record as a ``validate_staff`` candidate, own-role fields only."""
    own = DOCTOR_ONLY_FIELDS if staff.role == StaffRole.DOCTOR.value else RECEPTIONIST_ONLY_FIELDS
    return {field: getattr(staff, field) for field in (*COMMON_PROFILE_FIELDS, *own)}

def apply_profile(staff: StaffMember, profile: Union[DoctorProfile, ReceptionistProfile]):
    values = profile.model_dump()
    for field in (*DOCTOR_ONLY_FIELDS, *RECEPTIONIST_ONLY_FIELDS):
        # the other variant's columns stay empty
        values.setdefault(field, None)
    for field, value in values.items():
        setattr(staff, field, value)

class StaffService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_staff(self, staff_id: UUID) -> Optional[StaffMember]:
        return await self.session.get(StaffMember, staff_id)

    async def get_staff(self, staff_id: UUID) -> StaffMember:
        staff = await self.find_staff(staff_id)
        if not staff:
            raise NotFound("Staff member", staff_id)
        return staff

    async def _commit_staff(self, staff: StaffMember):
        key = (staff.email, staff.license_number, staff.id)
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise await self.duplicate_staff_error(*key)
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise Unavailable("database") from exc
        await self.session.refresh(staff)

    async def duplicate_staff_error(self, email: str, license_number: Optional[str], exclude_id: UUID) -> Conflict:
        stmt = select(StaffMember.id).where(StaffMember.email == email, StaffMember.id != exclude_id)
        if (await self.session.execute(stmt)).first() is None and license_number:
            return Conflict(
                f"A doctor with license number {license_number} already exists",
                field="license_number",
                value=license_number,
            )
        return Conflict("Staff member with this email already exists", field="email", value=email)

    async def create_staff(self, data: StaffCreate, actor: User) -> StaffMember:
        hospital = await self.session.get(Hospital, data.hospital_id)
        if not hospital:
            raise NotFound("Hospital", data.hospital_id)
        if hospital.verification_status != VerificationStatus.APPROVED.value:
            raise Forbidden("Staff can only be added to approved hospitals")

        candidate = data.model_dump(exclude_none=True)
        candidate["email"] = normalize_email(data.email)
        profile = validate_staff(candidate)

        staff = StaffMember(created_by=actor.id)
        apply_profile(staff, profile)
        self.session.add(staff)
        await self._commit_staff(staff)
        logger.info(f"Added {staff.role} {staff.id} to hospital {staff.hospital_id}")
        return staff

    async def _merge_and_save(self, staff: StaffMember, updates: Dict[str, Any]) -> StaffMember:
        candidate = {**profile_fields(staff), **strip_immutable_fields(updates)}
        profile = validate_staff(candidate)
        apply_profile(staff, profile)
        staff.updated_at = utcnow()
        self.session.add(staff)
        await self._commit_staff(staff)
        return staff

    async def update_staff(self, staff: StaffMember, data: StaffUpdate) -> StaffMember:
        return await self._merge_and_save(staff, data.model_dump(exclude_unset=True, exclude_none=True))

    async def update_availability(self, staff: StaffMember, data: AvailabilityUpdate) -> StaffMember:
        updates = data.model_dump(exclude_none=True)
        if staff.role == StaffRole.DOCTOR.value and "availability" in updates:
            return await self._merge_and_save(staff, {"availability": updates["availability"]})
        if staff.role == StaffRole.RECEPTIONIST.value and "working_hours" in updates:
            return await self._merge_and_save(staff, {"working_hours": updates["working_hours"]})
        field = "availability" if staff.role == StaffRole.DOCTOR.value else "working_hours"
        raise ValidationFailed(
            f"{field} is required to update a {staff.role}'s schedule",
            [{"field": field, "message": "field required"}],
        )

    async def deactivate_staff(self, staff: StaffMember, actor: User) -> StaffMember:
        staff.is_active = False
        staff.updated_at = utcnow()
        self.session.add(staff)
        audit.record(
            self.session,
            "staff.deactivated",
            actor_id=actor.id,
            hospital_id=staff.hospital_id,
            payload={"staff_id": str(staff.id), "role": staff.role},
        )
        await self._commit_staff(staff)
        logger.info(f"Deactivated {staff.role} {staff.id} by {actor.id}")
        return staff

    async def list_by_hospital(
        self,
        hospital_id: UUID,
        role: Optional[StaffRole] = None,
        specialization: Optional[str] = None,
        active: bool = True,
    ) -> StaffListResponse:
        query = select(StaffMember).where(
            StaffMember.hospital_id == hospital_id,
            StaffMember.is_active == active,
        )
        if role:
            query = query.where(StaffMember.role == StaffRole(role).value)
        if specialization:
            query = query.where(func.lower(StaffMember.specialization).contains(specialization.lower()))
        query = query.order_by(StaffMember.role, StaffMember.first_name)
        result = await self.session.execute(query)
        staff = result.scalars().all()

        by_specialization: Dict[str, int] = {}
        doctors = [s for s in staff if s.role == StaffRole.DOCTOR.value]
        for doctor in doctors:
            specialty = doctor.specialization or "General Medicine"
            by_specialization[specialty] = by_specialization.get(specialty, 0) + 1

        return StaffListResponse(
            staff=[StaffResponse.model_validate(s) for s in staff],
            stats=StaffStats(
                total=len(staff),
                doctors=len(doctors),
                receptionists=len(staff) - len(doctors),
                by_specialization=by_specialization,
            ),
            count=len(staff),
        )

    async def list_available(self, hospital_id: UUID, role: StaffRole) -> List[StaffMember]:
        query = select(StaffMember).where(
            StaffMember.hospital_id == hospital_id,
            StaffMember.role == StaffRole(role).value,
            StaffMember.is_active == True,
            StaffMember.is_available_for_work == True,
        ).order_by(StaffMember.first_name)
        result = await self.session.execute(query)
        return result.scalars().all()
