import pytest

from carespot.db.models import Hospital, User
from carespot.schemas.hospital import VerificationStatus
from carespot.schemas.user import Role

API = "/api/v1"


@pytest.mark.asyncio
async def test_registration_is_always_pending(client, hospital_payload):
    payload = hospital_payload(
        verification_status="approved",
        is_partnered=True,
        manager_id="7d3c7a4e-8a8b-4b8e-9a55-5d2c1f7f3b10",
    )
    response = await client.post(f"{API}/hospitals/register", json=payload)
    assert response.status_code == 201
    data = response.json()
    assert data["verification_status"] == "pending"
    assert data["is_partnered"] is False
    assert data["manager_id"] is None
    assert data["operating_hours"]["sunday"]["is_open"] is False
    assert data["contact_info"]["email"] == payload["contact_info"]["email"]


@pytest.mark.asyncio
async def test_duplicate_registration_number_conflicts(client, hospital_payload):
    first = hospital_payload(registration_number="REG-001")
    assert (await client.post(f"{API}/hospitals/register", json=first)).status_code == 201

    second = hospital_payload(registration_number="REG-001")
    response = await client.post(f"{API}/hospitals/register", json=second)
    assert response.status_code == 409
    body = response.json()
    assert body["error"] == "CONFLICT"
    assert body["details"]["field"] == "registration_number"


@pytest.mark.asyncio
async def test_duplicate_contact_email_conflicts(client, hospital_payload):
    contact = {"phone": "4842123456", "email": "same@hospital.com"}
    assert (await client.post(f"{API}/hospitals/register", json=hospital_payload(contact_info=contact))).status_code == 201
    response = await client.post(f"{API}/hospitals/register", json=hospital_payload(contact_info=contact))
    assert response.status_code == 409
    assert response.json()["details"]["field"] == "contact_email"


@pytest.mark.asyncio
async def test_registration_validation_errors_are_field_attributed(client, hospital_payload):
    payload = hospital_payload(departments=[], bed_count={"total": 5, "available": 9})
    response = await client.post(f"{API}/hospitals/register", json=payload)
    assert response.status_code == 422
    body = response.json()
    assert body["error"] == "VALIDATION_FAILED"
    fields = {error["field"] for error in body["details"]["errors"]}
    assert "departments" in fields
    assert "bed_count" in fields


@pytest.mark.asyncio
async def test_public_listing_only_shows_approved(client, create_hospital):
    approved = await create_hospital(VerificationStatus.APPROVED)
    await create_hospital()
    await create_hospital(VerificationStatus.REJECTED)

    response = await client.get(f"{API}/hospitals/", params={"city": "kochi"})
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    assert data["hospitals"][0]["id"] == str(approved.id)


@pytest.mark.asyncio
async def test_manager_cannot_change_locked_fields_after_approval(
    client, create_hospital, create_user, auth_headers, reload
):
    hospital = await create_hospital(VerificationStatus.APPROVED)
    manager = await create_user(Role.HOSPITAL_MANAGER, hospital_id=hospital.id)
    headers = await auth_headers(manager)

    response = await client.put(
        f"{API}/hospitals/{hospital.id}",
        json={"hospital_name": "Renamed Hospital", "facilities": ["ICU", "Pharmacy"]},
        headers=headers,
    )
    assert response.status_code == 423
    body = response.json()
    assert body["error"] == "FIELD_LOCKED"
    assert body["details"]["fields"] == ["hospital_name"]
    assert body["details"]["applied"] == ["facilities"]
    assert body["resource"]["facilities"] == ["ICU", "Pharmacy"]

    stored = await reload(Hospital, hospital.id)
    assert stored.hospital_name == hospital.hospital_name
    assert stored.facilities == ["ICU", "Pharmacy"]


@pytest.mark.asyncio
async def test_resending_locked_value_is_not_a_change(client, create_hospital, create_user, auth_headers):
    hospital = await create_hospital(VerificationStatus.APPROVED)
    manager = await create_user(Role.HOSPITAL_MANAGER, hospital_id=hospital.id)

    response = await client.put(
        f"{API}/hospitals/{hospital.id}",
        json={
            "hospital_name": hospital.hospital_name,
            "registration_number": hospital.registration_number,
            "bed_count": {"total": 120, "available": 30},
        },
        headers=await auth_headers(manager),
    )
    assert response.status_code == 200
    assert response.json()["bed_count"] == {"total": 120, "available": 30}


@pytest.mark.asyncio
async def test_admin_may_change_locked_fields(client, create_hospital, admin, auth_headers):
    hospital = await create_hospital(VerificationStatus.APPROVED)
    response = await client.put(
        f"{API}/hospitals/{hospital.id}",
        json={"hospital_name": "Corrected Name", "hospital_type": "teaching"},
        headers=await auth_headers(admin),
    )
    assert response.status_code == 200
    assert response.json()["hospital_name"] == "Corrected Name"
    assert response.json()["hospital_type"] == "teaching"


@pytest.mark.asyncio
async def test_pending_hospital_is_fully_editable(client, create_hospital, create_user, auth_headers):
    hospital = await create_hospital()
    manager = await create_user(Role.HOSPITAL_MANAGER, hospital_id=hospital.id)
    response = await client.put(
        f"{API}/hospitals/{hospital.id}",
        json={"hospital_name": "New Name"},
        headers=await auth_headers(manager),
    )
    assert response.status_code == 200
    assert response.json()["hospital_name"] == "New Name"


@pytest.mark.asyncio
async def test_documents_are_appended(client, create_hospital, create_user, auth_headers):
    hospital = await create_hospital()
    manager = await create_user(Role.HOSPITAL_MANAGER, hospital_id=hospital.id)
    headers = await auth_headers(manager)
    docs = [{"filename": "license.pdf", "url": "https://files.example.com/license.pdf", "document_type": "license"}]

    await client.post(f"{API}/hospitals/{hospital.id}/documents", json=docs, headers=headers)
    response = await client.post(f"{API}/hospitals/{hospital.id}/documents", json=docs, headers=headers)
    assert response.status_code == 200
    documents = response.json()["documents"]
    assert len(documents) == 2
    assert documents[0]["document_type"] == "license"
    assert documents[0]["uploaded_at"]


@pytest.mark.asyncio
async def test_registry_scenario(client, hospital_payload, admin, create_hospital, create_user, auth_headers):
    a = hospital_payload(registration_number="REG-001", contact_info={"phone": "4842123456", "email": "a@h.com"})
    response = await client.post(f"{API}/hospitals/register", json=a)
    assert response.status_code == 201
    hospital_a = response.json()
    assert hospital_a["verification_status"] == "pending"

    b = hospital_payload(registration_number="REG-001")
    assert (await client.post(f"{API}/hospitals/register", json=b)).status_code == 409

    admin_headers = await auth_headers(admin)
    verify_url = f"{API}/admin/hospitals/{hospital_a['id']}/verify"
    first = await client.put(verify_url, json={"status": "approved"}, headers=admin_headers)
    assert first.status_code == 200
    assert first.json()["hospital"]["verification_status"] == "approved"
    assert first.json()["hospital"]["is_partnered"] is True
    assert first.json()["hospital"]["manager_id"] is None

    again = await client.put(verify_url, json={"status": "approved"}, headers=admin_headers)
    assert again.status_code == 200
    assert again.json()["changed"] is False
    assert again.json()["hospital"] == first.json()["hospital"]

    hospital_c = await create_hospital(VerificationStatus.APPROVED)
    other_manager = await create_user(Role.HOSPITAL_MANAGER, hospital_id=hospital_c.id)
    response = await client.put(
        f"{API}/hospitals/{hospital_a['id']}",
        json={"facilities": ["Blood Bank"]},
        headers=await auth_headers(other_manager),
    )
    assert response.status_code == 403
    assert response.json()["error"] == "FORBIDDEN"


async def assign(client, admin_headers, hospital_id, manager_id):
    response = await client.put(
        f"{API}/admin/hospitals/{hospital_id}/assign-manager",
        json={"manager_id": str(manager_id)},
        headers=admin_headers,
    )
    assert response.status_code == 200
    return response.json()


@pytest.mark.asyncio
async def test_replaced_manager_loses_hospital_scope(client, admin, create_hospital, create_user, auth_headers, reload):
    hospital = await create_hospital(VerificationStatus.APPROVED)
    old = await create_user(Role.HOSPITAL_MANAGER)
    new = await create_user(Role.HOSPITAL_MANAGER)
    admin_headers = await auth_headers(admin)
    old_headers = await auth_headers(old)

    await assign(client, admin_headers, hospital.id, old.id)
    assert (await client.get(f"{API}/hospitals/{hospital.id}", headers=old_headers)).status_code == 200

    body = await assign(client, admin_headers, hospital.id, new.id)
    assert body["manager_id"] == str(new.id)

    response = await client.put(f"{API}/hospitals/{hospital.id}", json={"facilities": ["Hijacked"]}, headers=old_headers)
    assert response.status_code == 403
    assert (await reload(User, old.id)).hospital_id is None
    assert (await reload(Hospital, hospital.id)).facilities == ["ICU"]

    response = await client.put(
        f"{API}/hospitals/{hospital.id}", json={"facilities": ["ICU", "Pharmacy"]}, headers=await auth_headers(new)
    )
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_moved_manager_frees_previous_hospital(client, admin, create_hospital, create_user, auth_headers, reload):
    hospital_a = await create_hospital(VerificationStatus.APPROVED)
    hospital_b = await create_hospital(VerificationStatus.APPROVED)
    manager = await create_user(Role.HOSPITAL_MANAGER)
    admin_headers = await auth_headers(admin)

    await assign(client, admin_headers, hospital_a.id, manager.id)
    await assign(client, admin_headers, hospital_b.id, manager.id)

    assert (await reload(Hospital, hospital_a.id)).manager_id is None
    assert (await reload(Hospital, hospital_b.id)).manager_id == manager.id
    assert (await reload(User, manager.id)).hospital_id == hospital_b.id

    # hospital A can be given a fresh manager again
    response = await client.post(f"{API}/admin/hospital-managers", json={
        "hospital_id": str(hospital_a.id),
        "name": "Fresh Manager",
        "email": "fresh@hospital.com",
        "phone": "9847077777",
    }, headers=admin_headers)
    assert response.status_code == 201


@pytest.mark.asyncio
async def test_assign_manager_requires_manager_role(client, admin, create_hospital, create_user, auth_headers):
    hospital = await create_hospital(VerificationStatus.APPROVED)
    patient = await create_user(Role.PATIENT)
    response = await client.put(
        f"{API}/admin/hospitals/{hospital.id}/assign-manager",
        json={"manager_id": str(patient.id)},
        headers=await auth_headers(admin),
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_my_hospital(client, create_hospital, create_user, auth_headers):
    hospital = await create_hospital()
    manager = await create_user(Role.HOSPITAL_MANAGER, hospital_id=hospital.id)
    response = await client.get(f"{API}/hospitals/my-hospital", headers=await auth_headers(manager))
    assert response.status_code == 200
    assert response.json()["id"] == str(hospital.id)

    unassigned = await create_user(Role.HOSPITAL_MANAGER)
    response = await client.get(f"{API}/hospitals/my-hospital", headers=await auth_headers(unassigned))
    assert response.status_code == 404

    patient = await create_user(Role.PATIENT)
    response = await client.get(f"{API}/hospitals/my-hospital", headers=await auth_headers(patient))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_hospital_dashboard(client, create_hospital, create_user, auth_headers):
    hospital = await create_hospital(VerificationStatus.APPROVED)
    manager = await create_user(Role.HOSPITAL_MANAGER, hospital_id=hospital.id)
    headers = await auth_headers(manager)

    await client.post(f"{API}/staff/", json={
        "hospital_id": str(hospital.id),
        "role": "doctor",
        "first_name": "Anita",
        "email": "d@h.com",
        "phone": "9847012345",
        "specialization": "Cardiology",
        "qualifications": "MBBS",
        "license_number": "KMC-1001",
    }, headers=headers)
    receptionist = await client.post(f"{API}/staff/", json={
        "hospital_id": str(hospital.id),
        "role": "receptionist",
        "first_name": "Ravi",
        "email": "r@h.com",
        "phone": "9847054321",
    }, headers=headers)
    await client.delete(f"{API}/staff/{receptionist.json()['id']}", headers=headers)

    response = await client.get(f"{API}/hospitals/{hospital.id}/dashboard", headers=headers)
    assert response.status_code == 200
    body = response.json()
    assert body["hospital"]["id"] == str(hospital.id)
    stats = body["stats"]
    assert stats["verification_status"] == "approved"
    assert stats["departments"] == 2
    assert stats["facilities"] == 1
    assert stats["documents"] == 0
    assert stats["active_doctors"] == 1
    assert stats["active_receptionists"] == 0
    assert stats["inactive_staff"] == 1

    other = await create_hospital(VerificationStatus.APPROVED)
    response = await client.get(f"{API}/hospitals/{other.id}/dashboard", headers=headers)
    assert response.status_code == 403
