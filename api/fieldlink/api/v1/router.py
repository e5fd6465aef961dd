"""
API v1 router
"""
from fastapi import APIRouter
from fieldlink.api.v1 import (
    analytics,
    auth,
    invitations,
    organizations,
    process_templates,
    recordings,
    transcriptions,
    users,
)

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(organizations.router, prefix="/organization", tags=["organization"])
api_router.include_router(recordings.router, prefix="/recordings", tags=["recordings"])
api_router.include_router(transcriptions.router, prefix="/transcriptions", tags=["transcriptions"])
api_router.include_router(analytics.router, prefix="/analytics", tags=["analytics"])
api_router.include_router(process_templates.router, prefix="/process-templates", tags=["process-templates"])
api_router.include_router(invitations.router, prefix="/invitations", tags=["invitations"])
