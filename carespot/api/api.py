from fastapi import APIRouter
from carespot.api.v1 import admin, auth, hospitals, staff

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
api_router.include_router(hospitals.router, prefix="/hospitals", tags=["hospitals"])
api_router.include_router(staff.router, prefix="/staff", tags=["staff"])
