"""
Organization endpoints
"""
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends
from sqlalchemy import func

from fieldlink.core.database import utcnow
from fieldlink.core.dependencies import get_tenant, require_roles
from fieldlink.core.errors import NotFoundError, ValidationError
from fieldlink.core.tenancy import TenantRepository
from fieldlink.models.invitation import Invitation
from fieldlink.models.organization import Organization
from fieldlink.models.process_template import ProcessTemplate
from fieldlink.models.recording import Recording, RecordingStatus
from fieldlink.models.user import User, UserRole
from fieldlink.schemas.common import ApiResponse
from fieldlink.schemas.organization import OrganizationResponse, OrganizationStats, OrganizationUpdate

router = APIRouter()


async def load_organization(repo: TenantRepository) -> Organization:
    organization = await repo.db.get(Organization, repo.organization_id)
    if organization is None:
        raise NotFoundError("Organization not found")
    return organization


@router.get("", response_model=ApiResponse[OrganizationResponse])
async def get_organization(repo: TenantRepository = Depends(get_tenant)):
    organization = await load_organization(repo)
    return ApiResponse(data=OrganizationResponse.model_validate(organization))


@router.patch("", response_model=ApiResponse[OrganizationResponse])
async def update_organization(
    data: OrganizationUpdate,
    repo: TenantRepository = Depends(get_tenant),
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
):
    organization = await load_organization(repo)
    for key, value in data.model_dump(exclude_unset=True).items():
        setattr(organization, key, value)
    await repo.db.commit()
    await repo.db.refresh(organization)
    return ApiResponse(
        data=OrganizationResponse.model_validate(organization),
        message="Organization updated successfully",
    )


@router.get("/stats", response_model=ApiResponse[OrganizationStats])
async def get_organization_stats(repo: TenantRepository = Depends(get_tenant)):
    stats = OrganizationStats(
        total_users=await repo.count(User),
        active_users=await repo.count(User, User.is_active.is_(True)),
        total_recordings=await repo.count(Recording),
        completed_recordings=await repo.count(Recording, Recording.status == RecordingStatus.COMPLETED),
        total_duration=int(await repo.scalar(Recording, func.coalesce(func.sum(Recording.duration), 0)) or 0),
        total_storage=int(await repo.scalar(Recording, func.coalesce(func.sum(Recording.file_size), 0)) or 0),
        process_templates=await repo.count(ProcessTemplate),
        pending_invitations=await repo.count(
            Invitation, Invitation.accepted_at.is_(None), Invitation.expires_at > utcnow()
        ),
    )
    return ApiResponse(data=stats)


@router.get("/settings", response_model=ApiResponse[Dict[str, Any]])
async def get_settings(repo: TenantRepository = Depends(get_tenant)):
    organization = await load_organization(repo)
    return ApiResponse(data=organization.settings or {})


@router.patch("/settings", response_model=ApiResponse[Dict[str, Any]])
async def update_settings(
    changes: Dict[str, Any] = Body(...),
    repo: TenantRepository = Depends(get_tenant),
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
):
    """Merge `changes` into the stored settings"""
    organization = await load_organization(repo)

    template_id = changes.get("defaultProcessTemplateId")
    if template_id is not None and await repo.get(ProcessTemplate, template_id) is None:
        raise ValidationError("Invalid default process template ID")

    # Reassign so the JSON column is flagged dirty
    organization.settings = {**(organization.settings or {}), **changes}
    await repo.db.commit()
    await repo.db.refresh(organization)
    return ApiResponse(data=organization.settings, message="Settings updated successfully")
