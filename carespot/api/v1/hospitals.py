from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from carespot.api.deps import authorize_hospital_scope, get_current_user, require_roles
from carespot.db.models import User
from carespot.db.session import get_session
from carespot.schemas.hospital import (
    DocumentCreate,
    HospitalCreate,
    HospitalDashboard,
    HospitalListResponse,
    HospitalResponse,
    HospitalUpdate,
)
from carespot.schemas.user import Role
from carespot.services.hospital_service import HospitalService

router = APIRouter()

require_manager = require_roles(Role.ADMIN, Role.HOSPITAL_MANAGER)

@router.post("/register", response_model=HospitalResponse, status_code=status.HTTP_201_CREATED)
async def register_hospital(
    hospital_data: HospitalCreate,
    session: AsyncSession = Depends(get_session)
):
    service = HospitalService(session)
    hospital = await service.register_hospital(hospital_data)
    return HospitalResponse.from_model(hospital)

@router.get("/", response_model=HospitalListResponse)
async def read_hospitals(
    city: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    session: AsyncSession = Depends(get_session)
):
    service = HospitalService(session)
    return await service.list_partner_hospitals(city, page, limit)

@router.get("/my-hospital", response_model=HospitalResponse)
async def read_my_hospital(
    current_user: User = Depends(require_roles(Role.HOSPITAL_MANAGER)),
    session: AsyncSession = Depends(get_session)
):
    service = HospitalService(session)
    hospital = await service.get_managed_hospital(current_user)
    return HospitalResponse.from_model(hospital)

@router.get("/{hospital_id}", response_model=HospitalResponse)
async def read_hospital(
    hospital_id: UUID,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session)
):
    authorize_hospital_scope(current_user, hospital_id)
    service = HospitalService(session)
    hospital = await service.get_hospital(hospital_id)
    return HospitalResponse.from_model(hospital)

@router.put("/{hospital_id}", response_model=HospitalResponse)
async def update_hospital(
    hospital_id: UUID,
    hospital_data: HospitalUpdate,
    current_user: User = Depends(require_manager),
    session: AsyncSession = Depends(get_session)
):
    authorize_hospital_scope(current_user, hospital_id)
    service = HospitalService(session)
    hospital = await service.update_hospital(hospital_id, hospital_data, current_user)
    return HospitalResponse.from_model(hospital)

@router.post("/{hospital_id}/documents", response_model=HospitalResponse)
async def upload_documents(
    hospital_id: UUID,
    documents: List[DocumentCreate],
    current_user: User = Depends(require_manager),
    session: AsyncSession = Depends(get_session)
):
    authorize_hospital_scope(current_user, hospital_id)
    service = HospitalService(session)
    hospital = await service.add_documents(hospital_id, documents)
    return HospitalResponse.from_model(hospital)

@router.get("/{hospital_id}/dashboard", response_model=HospitalDashboard)
async def hospital_dashboard(
    hospital_id: UUID,
    current_user: User = Depends(require_manager),
    session: AsyncSession = Depends(get_session)
):
    authorize_hospital_scope(current_user, hospital_id)
    service = HospitalService(session)
    return await service.hospital_dashboard(hospital_id)
