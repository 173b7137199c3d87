"""
Hospital approval saga.

``verify_hospital`` runs three steps: the verification transition, the optional
hospital-manager account, and the notifications. Only a failed transition aborts
the call. Later failures are reported per step in the ``ProvisioningResult`` and
never undo earlier steps.
"""

from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from carespot.core.exceptions import CarespotError, Conflict, Unavailable, ValidationFailed
from carespot.core.logger import get_logger
from carespot.core.utils import generate_password, utcnow
from carespot.db.models import Hospital, User
from carespot.schemas.admin import (
    ManagerDetails,
    ProvisioningResult,
    ProvisioningStatus,
    ProvisioningStep,
    StepOutcome,
    VerificationRequest,
)
from carespot.schemas.hospital import HospitalResponse, VerificationStatus
from carespot.schemas.user import Role, UserCreate, UserResponse
from carespot.services import audit
from carespot.services.hospital_service import HospitalService
from carespot.services.notification_service import NotificationSender, dispatch
from carespot.services.user_service import UserService

logger = get_logger("provisioning")

ManagerOutcome = Tuple[Optional[UserResponse], Optional[str], ProvisioningStep, Optional[CarespotError]]

class ProvisioningService:
    def __init__(self, session: AsyncSession, notifier: NotificationSender):
        self.session = session
        self.notifier = notifier
        self.hospitals = HospitalService(session)
        self.users = UserService(session)

    async def verify_hospital(self, hospital_id: UUID, decision: VerificationRequest, actor: User) -> ProvisioningResult:
        # a rollback inside a step expires every loaded instance, the actor included
        actor_id = actor.id
        # step 1 raises on failure, before any side effect
        hospital, changed = await self.hospitals.set_verification(
            hospital_id,
            decision.status,
            actor,
            notes=decision.verification_notes,
            rejection_reason=decision.rejection_reason,
        )
        steps = [ProvisioningStep(
            step="transition",
            outcome=StepOutcome.SUCCEEDED if changed else StepOutcome.SKIPPED,
            detail=None if changed else f"already {hospital.verification_status}",
        )]

        manager, temp_password = None, None
        details = decision.manager_details()
        if hospital.verification_status != VerificationStatus.APPROVED.value:
            steps.append(ProvisioningStep(step="create_manager", outcome=StepOutcome.SKIPPED, detail="hospital not approved"))
        elif details is None:
            steps.append(ProvisioningStep(step="create_manager", outcome=StepOutcome.SKIPPED, detail="no manager details"))
        else:
            manager, temp_password, step, _ = await self._create_manager(hospital, details, actor_id)
            steps.append(step)

        # notifications run after every commit above
        steps.append(await self._notify_hospital(hospital, changed))
        steps.append(await self._notify_manager(hospital, manager, temp_password))
        return self._result(hospital, changed, steps, manager, temp_password)

    async def provision_manager(self, hospital_id: UUID, details: ManagerDetails, actor: User) -> ProvisioningResult:
        """Steps 2 and 3 alone, for retrying a failed manager creation."""
        hospital = await self.hospitals.get_hospital(hospital_id)
        if hospital.verification_status != VerificationStatus.APPROVED.value:
            raise ValidationFailed(
                "A manager can only be provisioned for an approved hospital",
                [{"field": "hospital_id", "message": f"hospital is {hospital.verification_status}"}],
            )
        if hospital.manager_id is not None:
            raise Conflict("Hospital already has a manager", field="manager_id", value=str(hospital.manager_id))

        manager, temp_password, step, error = await self._create_manager(hospital, details, actor.id)
        if error is not None:
            raise error
        steps = [step, await self._notify_manager(hospital, manager, temp_password)]
        return self._result(hospital, False, steps, manager, temp_password)

    async def _create_manager(self, hospital: Hospital, details: ManagerDetails, actor_id: UUID) -> ManagerOutcome:
        if hospital.manager_id is not None:
            return None, None, ProvisioningStep(
                step="create_manager", outcome=StepOutcome.SKIPPED, detail="hospital already has a manager"
            ), None

        temp_password = generate_password()
        user = await self.users.build_identity(UserCreate(
            name=details.name,
            email=details.email,
            phone=details.phone,
            password=temp_password,
            role=Role.HOSPITAL_MANAGER,
            hospital_id=hospital.id,
            must_change_password=True,
            created_by=actor_id,
        ))
        email, phone, hospital_id = user.email, user.phone, hospital.id

        try:
            self.session.add(user)
            await self.session.flush()
            # link only if no concurrent approval linked a manager first
            stmt = (
                update(Hospital)
                .where(Hospital.id == hospital_id, Hospital.manager_id.is_(None))
                .values(manager_id=user.id, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            result = await self.session.execute(stmt)
            if result.rowcount == 0:
                await self.session.rollback()
                await self.session.refresh(hospital)
                return None, None, ProvisioningStep(
                    step="create_manager", outcome=StepOutcome.SKIPPED, detail="hospital already has a manager"
                ), None
            audit.record(
                self.session,
                "hospital.manager_provisioned",
                actor_id=actor_id,
                hospital_id=hospital_id,
                payload={"manager_id": str(user.id), "email": email},
            )
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            error = await self.users.duplicate_identity_error(email, phone)
        except SQLAlchemyError:
            await self.session.rollback()
            logger.exception(f"Manager creation for hospital {hospital_id} hit a database error")
            error = Unavailable("database")
        else:
            await self.session.refresh(hospital)
            await self.session.refresh(user)
            logger.info(f"Provisioned manager {user.id} for hospital {hospital_id}")
            return UserResponse.model_validate(user), temp_password, ProvisioningStep(
                step="create_manager", outcome=StepOutcome.SUCCEEDED, detail=email
            ), None

        await self.session.refresh(hospital)
        logger.warning(f"Hospital {hospital_id} kept its decision but manager creation failed: {error.message}")
        return None, None, ProvisioningStep(
            step="create_manager", outcome=StepOutcome.FAILED, detail=error.message
        ), error

    async def _notify_hospital(self, hospital: Hospital, changed: bool) -> ProvisioningStep:
        status = hospital.verification_status
        if not changed or status not in (VerificationStatus.APPROVED.value, VerificationStatus.REJECTED.value):
            return ProvisioningStep(step="notify_hospital", outcome=StepOutcome.SKIPPED)
        if status == VerificationStatus.APPROVED.value:
            template_id = "hospital_approval"
            data = {"hospital_name": hospital.hospital_name, "verification_notes": hospital.verification_notes}
        else:
            template_id = "hospital_rejection"
            data = {"hospital_name": hospital.hospital_name, "rejection_reason": hospital.rejection_reason}
        delivered, detail = await dispatch(self.notifier, hospital.contact_email, template_id, data)
        return ProvisioningStep(
            step="notify_hospital",
            outcome=StepOutcome.SUCCEEDED if delivered else StepOutcome.FAILED,
            detail=detail,
        )

    async def _notify_manager(
        self, hospital: Hospital, manager: Optional[UserResponse], temp_password: Optional[str]
    ) -> ProvisioningStep:
        if manager is None:
            return ProvisioningStep(step="notify_manager", outcome=StepOutcome.SKIPPED)
        delivered, detail = await dispatch(self.notifier, manager.email, "manager_welcome", {
            "name": manager.name,
            "hospital_name": hospital.hospital_name,
            "email": manager.email,
            "temp_password": temp_password,
        })
        return ProvisioningStep(
            step="notify_manager",
            outcome=StepOutcome.SUCCEEDED if delivered else StepOutcome.FAILED,
            detail=detail,
        )

    def _result(
        self,
        hospital: Hospital,
        changed: bool,
        steps: List[ProvisioningStep],
        manager: Optional[UserResponse],
        temp_password: Optional[str],
    ) -> ProvisioningResult:
        failed = any(step.outcome == StepOutcome.FAILED for step in steps)
        return ProvisioningResult(
            status=ProvisioningStatus.PARTIAL_SUCCESS if failed else ProvisioningStatus.SUCCESS,
            changed=changed,
            hospital=HospitalResponse.from_model(hospital),
            steps=steps,
            manager=manager,
            temporary_password=temp_password,
        )
