import pytest
from sqlmodel import select

from carespot.core.exceptions import Forbidden, MissingRequiredField, StateTransitionInvalid
from carespot.db.models import AuditLog, Hospital, User
from carespot.schemas.hospital import VerificationStatus
from carespot.schemas.user import Role
from carespot.services.hospital_service import HospitalService

API = "/api/v1"


@pytest.mark.asyncio
@pytest.mark.parametrize("path", [
    ["under_review"],
    ["approved"],
    ["rejected"],
    ["under_review", "approved"],
    ["under_review", "rejected"],
])
async def test_allowed_transitions(session, admin, create_hospital, path):
    hospital = await create_hospital()
    service = HospitalService(session)
    for target in path:
        reason = "Missing license" if target == "rejected" else None
        hospital, changed = await service.set_verification(hospital.id, target, admin, rejection_reason=reason)
        assert changed is True
    assert hospital.verification_status == path[-1]
    assert hospital.verified_by == admin.id
    assert hospital.verified_at is not None


@pytest.mark.asyncio
@pytest.mark.parametrize("start,target", [
    ("approved", "pending"),
    ("approved", "rejected"),
    ("approved", "under_review"),
    ("rejected", "approved"),
    ("rejected", "pending"),
    ("under_review", "pending"),
])
async def test_forbidden_transitions(session, admin, create_hospital, start, target):
    hospital = await create_hospital(VerificationStatus(start))
    with pytest.raises(StateTransitionInvalid) as exc:
        await HospitalService(session).set_verification(hospital.id, target, admin, rejection_reason="x")
    assert exc.value.current == start
    assert exc.value.target == target


@pytest.mark.asyncio
async def test_approval_sets_partnership(session, admin, create_hospital):
    hospital = await create_hospital()
    hospital, _ = await HospitalService(session).set_verification(hospital.id, "approved", admin, notes="All good")
    assert hospital.is_partnered is True
    assert hospital.verification_notes == "All good"
    assert hospital.rejection_reason is None


@pytest.mark.asyncio
async def test_rejection_requires_reason(session, admin, create_hospital):
    hospital = await create_hospital()
    with pytest.raises(MissingRequiredField) as exc:
        await HospitalService(session).set_verification(hospital.id, "rejected", admin, rejection_reason="   ")
    assert exc.value.field == "rejection_reason"


@pytest.mark.asyncio
async def test_only_admins_verify(session, create_hospital, create_user):
    hospital = await create_hospital()
    manager = await create_user(Role.HOSPITAL_MANAGER, hospital_id=hospital.id)
    with pytest.raises(Forbidden):
        await HospitalService(session).set_verification(hospital.id, "approved", manager)


@pytest.mark.asyncio
async def test_reapplying_status_changes_nothing(session, admin, create_hospital, reload):
    hospital = await create_hospital(VerificationStatus.APPROVED)
    before = await reload(Hospital, hospital.id)

    hospital, changed = await HospitalService(session).set_verification(hospital.id, "approved", admin, notes="again")
    assert changed is False

    after = await reload(Hospital, hospital.id)
    assert after.verified_at == before.verified_at
    assert after.updated_at == before.updated_at
    assert after.verification_notes == before.verification_notes


@pytest.mark.asyncio
async def test_decision_is_audited(session, admin, create_hospital):
    hospital = await create_hospital(VerificationStatus.UNDER_REVIEW)
    await HospitalService(session).set_verification(hospital.id, "approved", admin)

    result = await session.execute(
        select(AuditLog).where(AuditLog.hospital_id == hospital.id, AuditLog.action == "hospital.verification")
    )
    entries = result.scalars().all()
    assert [(e.payload["from"], e.payload["to"]) for e in entries] == [
        ("pending", "under_review"),
        ("under_review", "approved"),
    ]


@pytest.mark.asyncio
async def test_concurrent_decision_is_not_overwritten(session_factory, admin, create_hospital, reload):
    hospital = await create_hospital()

    async with session_factory() as slow, session_factory() as fast:
        # the slow reviewer has already read the hospital as pending
        await slow.get(Hospital, hospital.id)
        slow_admin = await slow.get(User, admin.id)
        fast_admin = await fast.get(User, admin.id)

        await HospitalService(fast).set_verification(hospital.id, "approved", fast_admin)

        with pytest.raises(StateTransitionInvalid) as exc:
            await HospitalService(slow).set_verification(hospital.id, "rejected", slow_admin, rejection_reason="late")
        assert exc.value.current == "approved"

    stored = await reload(Hospital, hospital.id)
    assert stored.verification_status == "approved"
    assert stored.rejection_reason is None


@pytest.mark.asyncio
async def test_concurrent_identical_decision_is_a_no_op(session_factory, admin, create_hospital):
    hospital = await create_hospital()

    async with session_factory() as slow, session_factory() as fast:
        await slow.get(Hospital, hospital.id)
        slow_admin = await slow.get(User, admin.id)
        fast_admin = await fast.get(User, admin.id)

        _, fast_changed = await HospitalService(fast).set_verification(hospital.id, "approved", fast_admin)
        stored, slow_changed = await HospitalService(slow).set_verification(hospital.id, "approved", slow_admin)

    assert fast_changed is True
    assert slow_changed is False
    assert stored.verification_status == "approved"


@pytest.mark.asyncio
async def test_verify_endpoint_errors(client, admin, create_user, create_hospital, auth_headers):
    hospital = await create_hospital(VerificationStatus.APPROVED)
    url = f"{API}/admin/hospitals/{hospital.id}/verify"

    response = await client.put(url, json={"status": "rejected", "rejection_reason": "late"}, headers=await auth_headers(admin))
    assert response.status_code == 409
    assert response.json()["error"] == "STATE_TRANSITION_INVALID"

    pending = await create_hospital()
    response = await client.put(
        f"{API}/admin/hospitals/{pending.id}/verify", json={"status": "rejected"}, headers=await auth_headers(admin)
    )
    assert response.status_code == 422
    assert response.json()["error"] == "MISSING_REQUIRED_FIELD"

    patient = await create_user(Role.PATIENT)
    response = await client.put(url, json={"status": "approved"}, headers=await auth_headers(patient))
    assert response.status_code == 403
