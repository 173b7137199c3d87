import copy
import math
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select, func, or_

from carespot.core.exceptions import (
    Conflict,
    FieldLocked,
    Forbidden,
    MissingRequiredField,
    NotFound,
    StateTransitionInvalid,
    Unavailable,
    ValidationFailed,
)
from carespot.core.logger import get_logger
from carespot.core.utils import normalize_email, utcnow
from carespot.db.models import Hospital, StaffMember, User
from carespot.schemas.admin import DashboardStats, HospitalStats, UserStats
from carespot.schemas.hospital import (
    DocumentCreate,
    HospitalCreate,
    HospitalDashboard,
    HospitalDashboardStats,
    HospitalListResponse,
    HospitalResponse,
    HospitalSummary,
    HospitalUpdate,
    VerificationStatus,
)
from carespot.schemas.staff import StaffRole
from carespot.schemas.user import Role
from carespot.services import audit

logger = get_logger("hospitals")

PENDING = VerificationStatus.PENDING.value
UNDER_REVIEW = VerificationStatus.UNDER_REVIEW.value
APPROVED = VerificationStatus.APPROVED.value
REJECTED = VerificationStatus.REJECTED.value

# approved and rejected are terminal; re-applying the current status is handled as a no-op
ALLOWED_TRANSITIONS = {
    PENDING: {UNDER_REVIEW, APPROVED, REJECTED},
    UNDER_REVIEW: {APPROVED, REJECTED},
    APPROVED: set(),
    REJECTED: set(),
}

LOCKED_AFTER_APPROVAL = ("registration_number", "hospital_name", "hospital_type")

DEFAULT_OPERATING_HOURS = {
    "monday": {"open": "09:00", "close": "18:00", "is_open": True},
    "tuesday": {"open": "09:00", "close": "18:00", "is_open": True},
    "wednesday": {"open": "09:00", "close": "18:00", "is_open": True},
    "thursday": {"open": "09:00", "close": "18:00", "is_open": True},
    "friday": {"open": "09:00", "close": "18:00", "is_open": True},
    "saturday": {"open": "09:00", "close": "14:00", "is_open": True},
    "sunday": {"open": "10:00", "close": "14:00", "is_open": False},
}

def _plain(value: Any) -> Any:
    return getattr(value, "value", value)

def _apply_fields(hospital: Hospital, fields: Dict[str, Any]) -> List[str]:
    """Copy request fields onto the flat row. Returns the request keys applied."""
    applied = []
    for key, value in fields.items():
        if key == "location":
            hospital.address = value["address"]
            hospital.city = value["city"]
            hospital.state = value["state"]
            hospital.pincode = value["pincode"]
            hospital.country = value.get("country") or "India"
            hospital.latitude = value.get("latitude")
            hospital.longitude = value.get("longitude")
        elif key == "contact_info":
            hospital.contact_phone = value["phone"]
            hospital.contact_email = normalize_email(value["email"])
            hospital.website = value.get("website")
            hospital.emergency_number = value.get("emergency_number")
        elif key == "bed_count":
            hospital.bed_total = value["total"]
            hospital.bed_available = value["available"]
        elif key == "partnership_agreement":
            accepted = bool(value.get("accepted"))
            if accepted and not hospital.agreement_accepted:
                hospital.agreement_accepted_at = utcnow()
            hospital.agreement_accepted = accepted
            hospital.terms_version = value.get("terms_version")
        elif key == "operating_hours":
            hospital.operating_hours = dict(value)
        elif key in ("departments", "facilities"):
            setattr(hospital, key, list(value))
        else:
            setattr(hospital, key, _plain(value))
        applied.append(key)
    return applied

class HospitalService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_hospital(self, hospital_id: UUID) -> Hospital:
        hospital = await self.session.get(Hospital, hospital_id)
        if not hospital:
            raise NotFound("Hospital", hospital_id)
        return hospital

    async def _commit_hospital(self, hospital: Hospital):
        # read before commit; a rollback expires the instance
        key = (hospital.registration_number, hospital.contact_email, hospital.id)
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise await self.duplicate_hospital_error(*key)
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise Unavailable("database") from exc
        await self.session.refresh(hospital)

    async def duplicate_hospital_error(self, registration_number: str, contact_email: str, exclude_id: UUID) -> Conflict:
        """Name the field behind a unique-index violation on ``hospitals``."""
        stmt = select(Hospital).where(
            or_(Hospital.registration_number == registration_number, Hospital.contact_email == contact_email),
            Hospital.id != exclude_id,
        )
        result = await self.session.execute(stmt)
        existing = result.scalars().first()
        if existing is not None and existing.registration_number != registration_number:
            return Conflict(
                f'Hospital with email "{contact_email}" already exists',
                field="contact_email",
                value=contact_email,
            )
        return Conflict(
            f'Hospital with registration number "{registration_number}" already exists',
            field="registration_number",
            value=registration_number,
        )

    async def register_hospital(self, data: HospitalCreate) -> Hospital:
        # status, manager and partnership are never taken from the applicant
        hospital = Hospital(
            hospital_name=data.hospital_name,
            registration_number=data.registration_number,
            hospital_type=_plain(data.hospital_type),
            address=data.location.address,
            city=data.location.city,
            state=data.location.state,
            pincode=data.location.pincode,
            contact_phone=data.contact_info.phone,
            contact_email=normalize_email(data.contact_info.email),
            operating_hours=copy.deepcopy(DEFAULT_OPERATING_HOURS),
            verification_status=PENDING,
            manager_id=None,
            is_partnered=False,
            is_active=True,
        )
        fields = data.model_dump(exclude_none=True, exclude={"hospital_name", "registration_number", "hospital_type"})
        _apply_fields(hospital, fields)
        self.session.add(hospital)
        # single INSERT; the unique indexes decide duplicates
        await self._commit_hospital(hospital)
        logger.info(f"Hospital {hospital.id} registered ({hospital.registration_number}), awaiting verification")
        return hospital

    async def update_hospital(self, hospital_id: UUID, data: HospitalUpdate, actor: User) -> Hospital:
        """
        Apply a partial update.

        After approval, non-admins may not change the registration number, name
        or type. Those fields are left untouched, everything else in the payload
        is committed, and ``FieldLocked`` then reports the locked fields.
        """
        hospital = await self.get_hospital(hospital_id)
        updates = data.model_dump(exclude_unset=True, exclude_none=True)

        locked = []
        if hospital.verification_status == APPROVED and actor.role != Role.ADMIN.value:
            for field in LOCKED_AFTER_APPROVAL:
                if field not in updates:
                    continue
                if _plain(updates.pop(field)) != getattr(hospital, field):
                    locked.append(field)

        applied = _apply_fields(hospital, updates)
        if applied:
            hospital.updated_at = utcnow()
            self.session.add(hospital)
            await self._commit_hospital(hospital)

        if locked:
            logger.warning(f"Rejected locked fields {locked} on approved hospital {hospital.id} from {actor.id}")
            raise FieldLocked(locked, applied, HospitalResponse.from_model(hospital))
        return hospital

    async def set_verification(
        self,
        hospital_id: UUID,
        target: VerificationStatus,
        actor: User,
        notes: Optional[str] = None,
        rejection_reason: Optional[str] = None,
    ) -> Tuple[Hospital, bool]:
        """
        Move a hospital through the verification state machine.

        Returns the hospital and whether the call changed it. Re-applying the
        current status changes nothing. The write only lands if the status is
        still the one observed, so a concurrent decision cannot be overwritten.
        """
        if actor.role != Role.ADMIN.value:
            raise Forbidden("Only admins can verify hospitals")
        target = VerificationStatus(target).value
        if target == REJECTED and not (rejection_reason and rejection_reason.strip()):
            raise MissingRequiredField("rejection_reason", "A rejection reason is required")

        hospital = await self.get_hospital(hospital_id)
        current = hospital.verification_status
        if current == target:
            return hospital, False
        if target not in ALLOWED_TRANSITIONS[current]:
            raise StateTransitionInvalid(current, target)

        now = utcnow()
        values = {
            "verification_status": target,
            "verified_by": actor.id,
            "verified_at": now,
            "verification_notes": notes or "",
            "rejection_reason": rejection_reason.strip() if target == REJECTED else None,
            "updated_at": now,
        }
        if target == APPROVED:
            values["is_partnered"] = True

        stmt = (
            update(Hospital)
            .where(Hospital.id == hospital_id, Hospital.verification_status == current)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.session.execute(stmt)
            if result.rowcount == 0:
                await self.session.rollback()
                await self.session.refresh(hospital)
                if hospital.verification_status == target:
                    return hospital, False
                raise StateTransitionInvalid(hospital.verification_status, target)
            audit.record(
                self.session,
                "hospital.verification",
                actor_id=actor.id,
                hospital_id=hospital_id,
                payload={"from": current, "to": target, "notes": notes or ""},
            )
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise Unavailable("database") from exc

        await self.session.refresh(hospital)
        logger.info(f"Hospital {hospital_id} moved {current} -> {target} by {actor.id}")
        return hospital, True

    async def add_documents(self, hospital_id: UUID, documents: List[DocumentCreate]) -> Hospital:
        hospital = await self.get_hospital(hospital_id)
        if not documents:
            raise ValidationFailed("No documents supplied", [{"field": "documents", "message": "empty"}])
        uploaded_at = utcnow().isoformat()
        new_docs = [dict(doc.model_dump(mode="json"), uploaded_at=uploaded_at) for doc in documents]
        # reassign so the JSON column is flagged dirty
        hospital.documents = [*(hospital.documents or []), *new_docs]
        hospital.updated_at = utcnow()
        self.session.add(hospital)
        await self._commit_hospital(hospital)
        return hospital

    async def assign_manager(self, hospital_id: UUID, manager_id: UUID, actor: User) -> Hospital:
        hospital = await self.get_hospital(hospital_id)
        manager = await self.session.get(User, manager_id)
        if not manager:
            raise NotFound("Manager", manager_id)
        if manager.role != Role.HOSPITAL_MANAGER.value:
            raise ValidationFailed(
                "User must have hospital_manager role",
                [{"field": "manager_id", "message": "not a hospital manager"}],
            )
        now = utcnow()
        previous_manager_id = hospital.manager_id
        previous_hospital_id = manager.hospital_id

        # both links are one-to-one: unlink the replaced manager and the hospital
        # the moved manager used to run, in the same transaction as the new link
        try:
            await self.session.execute(
                update(User)
                .where(
                    User.hospital_id == hospital.id,
                    User.role == Role.HOSPITAL_MANAGER.value,
                    User.id != manager.id,
                )
                .values(hospital_id=None, updated_at=now)
            )
            await self.session.execute(
                update(Hospital)
                .where(Hospital.manager_id == manager.id, Hospital.id != hospital.id)
                .values(manager_id=None, updated_at=now)
            )
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise Unavailable("database") from exc

        hospital.manager_id = manager.id
        hospital.updated_at = now
        manager.hospital_id = hospital.id
        manager.updated_at = now
        self.session.add(hospital)
        self.session.add(manager)
        audit.record(
            self.session,
            "hospital.manager_assigned",
            actor_id=actor.id,
            hospital_id=hospital.id,
            payload={
                "manager_id": str(manager.id),
                "replaced_manager_id": str(previous_manager_id) if previous_manager_id else None,
                "previous_hospital_id": str(previous_hospital_id) if previous_hospital_id else None,
            },
        )
        await self._commit_hospital(hospital)
        logger.info(f"Manager {manager.id} assigned to hospital {hospital.id}")
        return hospital

    async def get_managed_hospital(self, user: User) -> Hospital:
        if user.role != Role.HOSPITAL_MANAGER.value:
            raise Forbidden("Only hospital managers have a hospital of their own")
        if user.hospital_id is None:
            raise NotFound("Hospital")
        return await self.get_hospital(user.hospital_id)

    async def hospital_dashboard(self, hospital_id: UUID) -> HospitalDashboard:
        hospital = await self.get_hospital(hospital_id)
        rows = await self.session.execute(
            select(StaffMember.role, StaffMember.is_active, func.count())
            .where(StaffMember.hospital_id == hospital_id)
            .group_by(StaffMember.role, StaffMember.is_active)
        )
        active = {}
        inactive = 0
        for role, is_active, count in rows.all():
            if is_active:
                active[role] = count
            else:
                inactive += count
        return HospitalDashboard(
            hospital=HospitalResponse.from_model(hospital),
            stats=HospitalDashboardStats(
                verification_status=hospital.verification_status,
                is_partnered=hospital.is_partnered,
                departments=len(hospital.departments or []),
                facilities=len(hospital.facilities or []),
                documents=len(hospital.documents or []),
                active_doctors=active.get(StaffRole.DOCTOR.value, 0),
                active_receptionists=active.get(StaffRole.RECEPTIONIST.value, 0),
                inactive_staff=inactive,
                last_updated=hospital.updated_at,
            ),
        )

    async def _paginate(self, query, count_query, page: int, limit: int) -> HospitalListResponse:
        query = query.order_by(Hospital.created_at.desc()).offset((page - 1) * limit).limit(limit)
        result = await self.session.execute(query)
        total = (await self.session.execute(count_query)).scalar() or 0
        return HospitalListResponse(
            hospitals=[HospitalSummary.model_validate(h) for h in result.scalars().all()],
            total=total,
            page=page,
            pages=math.ceil(total / limit) if limit else 0,
        )

    async def list_partner_hospitals(self, city: Optional[str] = None, page: int = 1, limit: int = 20) -> HospitalListResponse:
        conditions = [Hospital.verification_status == APPROVED, Hospital.is_partnered == True, Hospital.is_active == True]
        if city:
            conditions.append(func.lower(Hospital.city) == city.strip().lower())
        query = select(Hospital).where(*conditions)
        count_query = select(func.count()).select_from(Hospital).where(*conditions)
        return await self._paginate(query, count_query, page, limit)

    async def list_pending(self, page: int = 1, limit: int = 10) -> HospitalListResponse:
        condition = Hospital.verification_status.in_([PENDING, UNDER_REVIEW])
        query = select(Hospital).where(condition)
        count_query = select(func.count()).select_from(Hospital).where(condition)
        return await self._paginate(query, count_query, page, limit)

    async def dashboard_stats(self) -> DashboardStats:
        status_rows = await self.session.execute(
            select(Hospital.verification_status, func.count()).group_by(Hospital.verification_status)
        )
        by_status = {status: count for status, count in status_rows.all()}
        role_rows = await self.session.execute(select(User.role, func.count()).group_by(User.role))
        by_role = {role: count for role, count in role_rows.all()}
        recent = await self.list_pending(page=1, limit=10)
        return DashboardStats(
            hospitals=HospitalStats(
                total=sum(by_status.values()),
                pending=by_status.get(PENDING, 0),
                under_review=by_status.get(UNDER_REVIEW, 0),
                approved=by_status.get(APPROVED, 0),
                rejected=by_status.get(REJECTED, 0),
            ),
            users=UserStats(
                patients=by_role.get(Role.PATIENT.value, 0),
                doctors=by_role.get(Role.DOCTOR.value, 0),
                hospital_managers=by_role.get(Role.HOSPITAL_MANAGER.value, 0),
                admins=by_role.get(Role.ADMIN.value, 0),
            ),
            recent_applications=recent.hospitals,
        )
