from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from carespot.api.deps import get_notifier, require_admin_level, require_roles
from carespot.core.utils import generate_admin_credentials
from carespot.db.models import User
from carespot.db.session import get_session
from carespot.schemas.admin import (
    DashboardStats,
    HospitalManagerCreate,
    ManagerAssign,
    ManagerDetails,
    ProvisioningResult,
    ProvisioningStatus,
    VerificationRequest,
)
from carespot.schemas.auth import LoginRequest, LoginResponse, MessageResponse
from carespot.schemas.hospital import HospitalListResponse, HospitalResponse
from carespot.schemas.user import (
    AdminCreate,
    AdminLevel,
    AdminStatusUpdate,
    GeneratedCredentials,
    Role,
    UserListResponse,
    UserResponse,
)
from carespot.services.auth_service import AuthService
from carespot.services.hospital_service import HospitalService
from carespot.services.notification_service import NotificationSender
from carespot.services.provisioning_service import ProvisioningService
from carespot.services.user_service import UserService

router = APIRouter()

require_admin = require_roles(Role.ADMIN)
require_super_admin = require_admin_level(AdminLevel.SUPER_ADMIN)

def provisioning_response(result: ProvisioningResult, success_code: int = status.HTTP_200_OK):
    # 207 tells the caller that some later step needs a retry
    status_code = success_code
    if result.status == ProvisioningStatus.PARTIAL_SUCCESS:
        status_code = status.HTTP_207_MULTI_STATUS
    return JSONResponse(status_code=status_code, content=jsonable_encoder(result))

@router.post("/login", response_model=LoginResponse)
async def admin_login(
    login_data: LoginRequest,
    session: AsyncSession = Depends(get_session)
):
    service = AuthService(session)
    return await service.admin_login(login_data)

@router.get("/dashboard", response_model=DashboardStats)
async def dashboard(
    current_user: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session)
):
    service = HospitalService(session)
    return await service.dashboard_stats()

@router.get("/hospitals/pending", response_model=HospitalListResponse)
async def pending_hospitals(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session)
):
    service = HospitalService(session)
    return await service.list_pending(page, limit)

@router.get("/hospitals/{hospital_id}/details", response_model=HospitalResponse)
async def hospital_details(
    hospital_id: UUID,
    current_user: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session)
):
    service = HospitalService(session)
    hospital = await service.get_hospital(hospital_id)
    return HospitalResponse.from_model(hospital)

@router.put("/hospitals/{hospital_id}/verify", response_model=ProvisioningResult,
            responses={207: {"model": ProvisioningResult}})
async def verify_hospital(
    hospital_id: UUID,
    decision: VerificationRequest,
    current_user: User = Depends(require_admin),
    notifier: NotificationSender = Depends(get_notifier),
    session: AsyncSession = Depends(get_session)
):
    service = ProvisioningService(session, notifier)
    result = await service.verify_hospital(hospital_id, decision, current_user)
    return provisioning_response(result)

@router.put("/hospitals/{hospital_id}/assign-manager", response_model=HospitalResponse)
async def assign_manager(
    hospital_id: UUID,
    assignment: ManagerAssign,
    current_user: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session)
):
    service = HospitalService(session)
    hospital = await service.assign_manager(hospital_id, assignment.manager_id, current_user)
    return HospitalResponse.from_model(hospital)

@router.post("/hospital-managers", response_model=ProvisioningResult, status_code=status.HTTP_201_CREATED,
             responses={207: {"model": ProvisioningResult}})
async def create_hospital_manager(
    manager_data: HospitalManagerCreate,
    current_user: User = Depends(require_admin),
    notifier: NotificationSender = Depends(get_notifier),
    session: AsyncSession = Depends(get_session)
):
    service = ProvisioningService(session, notifier)
    details = ManagerDetails(name=manager_data.name, email=manager_data.email, phone=manager_data.phone)
    result = await service.provision_manager(manager_data.hospital_id, details, current_user)
    return provisioning_response(result, status.HTTP_201_CREATED)

@router.get("/users", response_model=UserListResponse)
async def list_users(
    role: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session)
):
    service = UserService(session)
    return await service.list_users(role, page, limit)

@router.put("/users/{user_id}/toggle-status", response_model=UserResponse)
async def toggle_user_status(
    user_id: UUID,
    current_user: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session)
):
    service = UserService(session)
    return await service.toggle_user_status(user_id, current_user)

@router.post("/admins", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_admin(
    admin_data: AdminCreate,
    current_user: User = Depends(require_super_admin),
    session: AsyncSession = Depends(get_session)
):
    service = UserService(session)
    return await service.create_admin(admin_data, current_user)

@router.get("/my-admins", response_model=UserListResponse)
async def list_my_admins(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(require_super_admin),
    session: AsyncSession = Depends(get_session)
):
    service = UserService(session)
    return await service.list_created_admins(current_user, page, limit)

@router.put("/admins/{admin_id}/status", response_model=UserResponse)
async def update_admin_status(
    admin_id: UUID,
    status_data: AdminStatusUpdate,
    current_user: User = Depends(require_super_admin),
    session: AsyncSession = Depends(get_session)
):
    service = UserService(session)
    return await service.set_admin_status(admin_id, status_data.is_active, current_user)

@router.delete("/admins/{admin_id}", response_model=MessageResponse)
async def delete_admin(
    admin_id: UUID,
    current_user: User = Depends(require_super_admin),
    session: AsyncSession = Depends(get_session)
):
    service = UserService(session)
    await service.delete_admin(admin_id, current_user)
    return MessageResponse(message="Admin user deleted successfully")

@router.post("/generate-credentials", response_model=GeneratedCredentials)
async def generate_credentials(current_user: User = Depends(require_super_admin)):
    return GeneratedCredentials(**generate_admin_credentials())
