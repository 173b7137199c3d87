"""
Role-conditional rules for staff records.

``validate_staff`` turns a loose candidate dict into a ``DoctorProfile`` or a
``ReceptionistProfile``. It never touches storage and never mutates its input,
so create and update share it and identical candidates always produce
identical profiles.
"""

import copy
from typing import Any, Dict, Iterable, List, Union

from pydantic import TypeAdapter, ValidationError

from carespot.core.exceptions import MissingRequiredField, ValidationFailed
from carespot.schemas.staff import (
    DoctorProfile,
    ReceptionistProfile,
    StaffDepartment,
    StaffProfile,
    StaffRole,
)

DOCTOR_REQUIRED_FIELDS = ("specialization", "qualifications", "license_number")
DOCTOR_ONLY_FIELDS = ("specialization", "qualifications", "license_number", "consultation_fee", "availability")
RECEPTIONIST_ONLY_FIELDS = ("working_hours",)
IMMUTABLE_FIELDS = ("hospital_id", "email", "role")
RECEPTIONIST_DEPARTMENTS = (StaffDepartment.RECEPTION.value, StaffDepartment.ADMINISTRATION.value)

DEFAULT_CONSULTATION_FEE = 500
DEFAULT_DOCTOR_DEPARTMENT = StaffDepartment.GENERAL_MEDICINE.value
DEFAULT_LANGUAGES = ("English", "Hindi")
DEFAULT_WORKING_DAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")

_DOCTOR_AVAILABILITY_TEMPLATE = (
    ("Monday", "09:00", "17:00"),
    ("Tuesday", "09:00", "17:00"),
    ("Wednesday", "09:00", "17:00"),
    ("Thursday", "09:00", "17:00"),
    ("Friday", "09:00", "17:00"),
    ("Saturday", "09:00", "14:00"),
)

_profile_adapter = TypeAdapter(StaffProfile)

def default_doctor_availability() -> List[Dict[str, Any]]:
    return [
        {"day": day, "start_time": start, "end_time": end, "is_available": True}
        for day, start, end in _DOCTOR_AVAILABILITY_TEMPLATE
    ]

def default_receptionist_hours() -> Dict[str, Any]:
    return {"start_time": "08:00", "end_time": "18:00", "working_days": list(DEFAULT_WORKING_DAYS)}

def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())

def _drop(data: Dict[str, Any], fields: Iterable[str]) -> None:
    for field in fields:
        data.pop(field, None)

def strip_immutable_fields(updates: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of ``updates`` without hospital, email and role."""
    return {key: value for key, value in updates.items() if key not in IMMUTABLE_FIELDS}

def _fill_doctor(data: Dict[str, Any]) -> None:
    for field in DOCTOR_REQUIRED_FIELDS:
        if _blank(data.get(field)):
            raise MissingRequiredField(field, f"{field} is required for doctors")
    _drop(data, RECEPTIONIST_ONLY_FIELDS)
    if not data.get("availability"):
        data["availability"] = default_doctor_availability()
    if data.get("consultation_fee") is None:
        data["consultation_fee"] = DEFAULT_CONSULTATION_FEE
    if _blank(data.get("department")):
        data["department"] = DEFAULT_DOCTOR_DEPARTMENT

def _fill_receptionist(data: Dict[str, Any]) -> None:
    _drop(data, DOCTOR_ONLY_FIELDS)
    # receptionists only ever sit in Reception or Administration
    if data.get("department") not in RECEPTIONIST_DEPARTMENTS:
        data["department"] = StaffDepartment.RECEPTION.value
    hours = data.get("working_hours")
    if hours is None:
        data["working_hours"] = default_receptionist_hours()
        return
    hours = dict(hours)
    if not hours.get("start_time"):
        hours["start_time"] = "09:00"
    if not hours.get("end_time"):
        hours["end_time"] = "18:00"
    if not hours.get("working_days"):
        hours["working_days"] = list(DEFAULT_WORKING_DAYS)
    data["working_hours"] = hours

def validate_staff(candidate: Dict[str, Any]) -> Union[DoctorProfile, ReceptionistProfile]:
    data = copy.deepcopy(candidate)
    role = data.get("role")
    if isinstance(role, StaffRole):
        role = role.value
        data["role"] = role

    if role == StaffRole.DOCTOR.value:
        _fill_doctor(data)
    elif role == StaffRole.RECEPTIONIST.value:
        _fill_receptionist(data)
    else:
        raise ValidationFailed(
            "Only doctors and receptionists can be added as staff",
            [{"field": "role", "message": "must be doctor or receptionist"}],
        )

    if not data.get("languages"):
        data["languages"] = list(DEFAULT_LANGUAGES)
    if data.get("experience_years") is None:
        data["experience_years"] = 0
    if data.get("is_available_for_work") is None:
        data.pop("is_available_for_work", None)

    try:
        return _profile_adapter.validate_python(data)
    except ValidationError as exc:
        errors = [
            {
                "field": ".".join(str(part) for part in err["loc"][1:] or err["loc"]),
                "message": err["msg"],
            }
            for err in exc.errors()
        ]
        raise ValidationFailed(f"Invalid {role} record", errors)
