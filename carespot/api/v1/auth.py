from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from carespot.api.deps import get_current_user, get_token
from carespot.db.models import User
from carespot.db.session import get_session
from carespot.schemas.auth import LoginRequest, LoginResponse, MessageResponse, PasswordChange
from carespot.schemas.user import PatientRegister, ProfileUpdate, UserResponse
from carespot.services.auth_service import AuthService
from carespot.services.user_service import UserService

router = APIRouter()

@router.post("/register", response_model=LoginResponse, status_code=status.HTTP_201_CREATED)
async def register(
    register_data: PatientRegister,
    session: AsyncSession = Depends(get_session)
):
    service = AuthService(session)
    return await service.register_patient(register_data)

@router.post("/login", response_model=LoginResponse)
async def login(
    login_data: LoginRequest,
    session: AsyncSession = Depends(get_session)
):
    service = AuthService(session)
    return await service.login(login_data)

@router.post("/logout", response_model=MessageResponse)
async def logout(
    token: str = Depends(get_token),
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session)
):
    service = AuthService(session)
    await service.revoke_token(token)
    return MessageResponse(message="Logged out successfully")

@router.get("/me", response_model=UserResponse)
async def read_me(current_user: User = Depends(get_current_user)):
    return UserResponse.model_validate(current_user)

@router.put("/password", response_model=UserResponse)
async def change_password(
    password_data: PasswordChange,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session)
):
    service = AuthService(session)
    return await service.change_password(current_user, password_data)

@router.put("/profile", response_model=UserResponse)
async def update_profile(
    profile_data: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session)
):
    service = UserService(session)
    return await service.update_profile(current_user, profile_data)
