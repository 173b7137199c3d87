from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from carespot.api.deps import authorize_hospital_scope, get_current_user, get_scoped_staff, require_roles
from carespot.db.models import StaffMember, User
from carespot.db.session import get_session
from carespot.schemas.staff import (
    AvailabilityUpdate,
    StaffCreate,
    StaffListResponse,
    StaffResponse,
    StaffRole,
    StaffUpdate,
)
from carespot.schemas.user import Role
from carespot.services.staff_service import StaffService

router = APIRouter()

require_manager = require_roles(Role.ADMIN, Role.HOSPITAL_MANAGER)

@router.post("/", response_model=StaffResponse, status_code=status.HTTP_201_CREATED)
async def create_staff(
    staff_data: StaffCreate,
    current_user: User = Depends(require_manager),
    session: AsyncSession = Depends(get_session)
):
    authorize_hospital_scope(current_user, staff_data.hospital_id)
    service = StaffService(session)
    staff = await service.create_staff(staff_data, current_user)
    return StaffResponse.model_validate(staff)

@router.get("/hospital/{hospital_id}", response_model=StaffListResponse)
async def read_hospital_staff(
    hospital_id: UUID,
    role: Optional[StaffRole] = None,
    specialization: Optional[str] = None,
    active: bool = True,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session)
):
    authorize_hospital_scope(current_user, hospital_id)
    service = StaffService(session)
    return await service.list_by_hospital(hospital_id, role, specialization, active)

@router.get("/hospital/{hospital_id}/role/{role}", response_model=List[StaffResponse])
async def read_available_staff(
    hospital_id: UUID,
    role: StaffRole,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session)
):
    authorize_hospital_scope(current_user, hospital_id)
    service = StaffService(session)
    staff = await service.list_available(hospital_id, role)
    return [StaffResponse.model_validate(s) for s in staff]

@router.get("/{staff_id}", response_model=StaffResponse)
async def read_staff(staff: StaffMember = Depends(get_scoped_staff)):
    return StaffResponse.model_validate(staff)

@router.put("/{staff_id}", response_model=StaffResponse)
async def update_staff(
    staff_data: StaffUpdate,
    staff: StaffMember = Depends(get_scoped_staff),
    current_user: User = Depends(require_manager),
    session: AsyncSession = Depends(get_session)
):
    service = StaffService(session)
    staff = await service.update_staff(staff, staff_data)
    return StaffResponse.model_validate(staff)

@router.put("/{staff_id}/availability", response_model=StaffResponse)
async def update_availability(
    availability_data: AvailabilityUpdate,
    staff: StaffMember = Depends(get_scoped_staff),
    current_user: User = Depends(require_manager),
    session: AsyncSession = Depends(get_session)
):
    service = StaffService(session)
    staff = await service.update_availability(staff, availability_data)
    return StaffResponse.model_validate(staff)

@router.delete("/{staff_id}", response_model=StaffResponse)
async def deactivate_staff(
    staff: StaffMember = Depends(get_scoped_staff),
    current_user: User = Depends(require_manager),
    session: AsyncSession = Depends(get_session)
):
    service = StaffService(session)
    staff = await service.deactivate_staff(staff, current_user)
    return StaffResponse.model_validate(staff)
