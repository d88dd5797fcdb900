from fastapi import APIRouter

from app.api.v1.endpoints import auth
from app.api.v1.endpoints import dashboard
from app.api.v1.endpoints import visits

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(dashboard.router, prefix="/dashboard", tags=["dashboard"])
api_router.include_router(visits.router, prefix="/visits", tags=["visits"])
