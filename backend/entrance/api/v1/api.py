"""
API v1 router combining all v1 endpoints.
"""
from fastapi import APIRouter
from entrance.api.v1 import admin, admin_config, health, tests

api_router = APIRouter()

# Include all v1 routers
api_router.include_router(health.router, tags=["health"])
api_router.include_router(tests.router, prefix="/tests", tags=["tests"])
api_router.include_router(admin.router, prefix="/admin/tests", tags=["admin"])
api_router.include_router(admin_config.router, prefix="/admin/config", tags=["admin"])
