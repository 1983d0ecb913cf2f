from fastapi import APIRouter
from . import onboarding, admin_users, admin_invitations, admin_dashboard, health

api_router = APIRouter(prefix="/api")

api_router.include_router(onboarding.router, prefix="/onboarding", tags=["onboarding"])
api_router.include_router(admin_users.router, prefix="/admin/users", tags=["admin"])
api_router.include_router(admin_invitations.router, prefix="/admin/invitations", tags=["admin"])
api_router.include_router(admin_dashboard.router, prefix="/admin/dashboard", tags=["admin"])
api_router.include_router(health.router, tags=["health"])
