"""
Process template endpoints
"""
import logging
import uuid
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Query, status
from sqlalchemy import func, update

from fieldlink.core.dependencies import get_tenant, require_roles
from fieldlink.core.errors import ConflictError, ValidationError
from fieldlink.core.tenancy import TenantRepository
from fieldlink.models.process_template import ProcessTemplate
from fieldlink.models.user import User, UserRole
from fieldlink.schemas.common import ApiResponse, MessageResponse
from fieldlink.schemas.process_template import (
    ProcessTemplateCreate,
    ProcessTemplateDuplicate,
    ProcessTemplateResponse,
    ProcessTemplateStats,
    ProcessTemplateUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter()

editors = require_roles(UserRole.ADMIN, UserRole.MANAGER)

DUPLICATE_NAME = "A template with this name already exists in your organization"


async def ensure_unique_name(repo: TenantRepository, name: str, exclude_id: Optional[uuid.UUID] = None) -> None:
    criteria = [ProcessTemplate.name == name]
    if exclude_id is not None:
        criteria.append(ProcessTemplate.id != exclude_id)
    if await repo.first(ProcessTemplate, *criteria):
        raise ConflictError(DUPLICATE_NAME)


async def clear_default(repo: TenantRepository, keep_id: Optional[uuid.UUID] = None) -> None:
    """Unset is_default on every other template of the organization; caller commits"""
    criteria = [ProcessTemplate.organization_id == repo.organization_id, ProcessTemplate.is_default.is_(True)]
    if keep_id is not None:
        criteria.append(ProcessTemplate.id != keep_id)
    await repo.db.execute(update(ProcessTemplate).where(*criteria).values(is_default=False))


@router.get("", response_model=ApiResponse[List[ProcessTemplateResponse]])
async def list_templates(
    include_inactive: bool = Query(False, alias="includeInactive"),
    repo: TenantRepository = Depends(get_tenant),
):
    """Default template first, then most used"""
    query = repo.select(ProcessTemplate)
    if not include_inactive:
        query = query.where(ProcessTemplate.is_active.is_(True))
    templates = await repo.all(
        query.order_by(
            ProcessTemplate.is_default.desc(),
            ProcessTemplate.usage_count.desc(),
            ProcessTemplate.created_at.desc(),
        )
    )
    return ApiResponse(data=[ProcessTemplateResponse.model_validate(t) for t in templates])


@router.get("/{template_id}", response_model=ApiResponse[ProcessTemplateResponse])
async def get_template(template_id: str, repo: TenantRepository = Depends(get_tenant)):
    template = await repo.get_or_404(ProcessTemplate, template_id)
    return ApiResponse(data=ProcessTemplateResponse.model_validate(template))


@router.post("", response_model=ApiResponse[ProcessTemplateResponse], status_code=status.HTTP_201_CREATED)
async def create_template(
    data: ProcessTemplateCreate,
    repo: TenantRepository = Depends(get_tenant),
    current_user: User = Depends(editors),
):
    await ensure_unique_name(repo, data.name)
    if data.is_default:
        await clear_default(repo)

    template = ProcessTemplate(
        organization_id=repo.organization_id,
        name=data.name,
        description=data.description,
        steps=[step.model_dump() for step in data.steps],
        is_active=data.is_active or data.is_default,
        is_default=data.is_default,
        usage_count=0,
    )
    repo.db.add(template)
    await repo.db.commit()
    await repo.db.refresh(template)
    logger.info("Process template created", extra={"template_id": str(template.id)})
    return ApiResponse(
        data=ProcessTemplateResponse.model_validate(template),
        message="Process template created successfully",
    )


@router.patch("/{template_id}", response_model=ApiResponse[ProcessTemplateResponse])
async def update_template(
    template_id: str,
    data: ProcessTemplateUpdate,
    repo: TenantRepository = Depends(get_tenant),
    current_user: User = Depends(editors),
):
    template = await repo.get_or_404(ProcessTemplate, template_id)
    changes = data.model_dump(exclude_unset=True)

    if changes.get("name") and changes["name"] != template.name:
        await ensure_unique_name(repo, changes["name"], exclude_id=template.id)
    if changes.get("is_default"):
        await clear_default(repo, keep_id=template.id)
        changes["is_active"] = True
    if "steps" in changes:
        changes["steps"] = [step.model_dump() for step in data.steps]

    for key, value in changes.items():
        setattr(template, key, value)
    await repo.db.commit()
    await repo.db.refresh(template)
    return ApiResponse(
        data=ProcessTemplateResponse.model_validate(template),
        message="Process template updated successfully",
    )


@router.delete("/{template_id}", response_model=MessageResponse)
async def delete_template(
    template_id: str,
    repo: TenantRepository = Depends(get_tenant),
    current_user: User = Depends(editors),
):
    template = await repo.get_or_404(ProcessTemplate, template_id)
    if template.is_default:
        raise ValidationError("Cannot delete the default template. Set another template as default first.")

    await repo.db.delete(template)
    await repo.db.commit()
    return MessageResponse(message="Process template deleted successfully")


@router.post("/{template_id}/set-default", response_model=ApiResponse[ProcessTemplateResponse])
async def set_default_template(
    template_id: str,
    repo: TenantRepository = Depends(get_tenant),
    current_user: User = Depends(editors),
):
    """Make this the only default template; the swap commits once"""
    template = await repo.get_or_404(ProcessTemplate, template_id)
    await clear_default(repo, keep_id=template.id)
    template.is_default = True
    template.is_active = True
    await repo.db.commit()
    await repo.db.refresh(template)
    return ApiResponse(
        data=ProcessTemplateResponse.model_validate(template),
        message="Default template updated successfully",
    )


@router.post("/{template_id}/duplicate", response_model=ApiResponse[ProcessTemplateResponse],
             status_code=status.HTTP_201_CREATED)
async def duplicate_template(
    template_id: str,
    data: Optional[ProcessTemplateDuplicate] = Body(None),
    repo: TenantRepository = Depends(get_tenant),
    current_user: User = Depends(editors),
):
    source = await repo.get_or_404(ProcessTemplate, template_id)
    name = (data.name if data else None) or f"{source.name} (Copy)"
    await ensure_unique_name(repo, name)

    template = ProcessTemplate(
        organization_id=repo.organization_id,
        name=name,
        description=source.description,
        steps=[dict(step) for step in source.steps or []],
        is_active=True,
        is_default=False,
        usage_count=0,
    )
    repo.db.add(template)
    await repo.db.commit()
    await repo.db.refresh(template)
    return ApiResponse(
        data=ProcessTemplateResponse.model_validate(template),
        message="Process template duplicated successfully",
    )


@router.get("/{template_id}/stats", response_model=ApiResponse[ProcessTemplateStats])
async def get_template_stats(template_id: str, repo: TenantRepository = Depends(get_tenant)):
    template = await repo.get_or_404(ProcessTemplate, template_id)
    total_templates = await repo.count(ProcessTemplate, ProcessTemplate.is_active.is_(True))
    total_usage = int(await repo.scalar(ProcessTemplate, func.coalesce(func.sum(ProcessTemplate.usage_count), 0)) or 0)

    return ApiResponse(
        data=ProcessTemplateStats(
            template_id=template.id,
            name=template.name,
            is_default=template.is_default,
            is_active=template.is_active,
            step_count=len(template.steps or []),
            usage_count=template.usage_count,
            usage_percentage=round(template.usage_count / total_usage * 100, 2) if total_usage else 0.0,
            total_templates=total_templates,
            total_organization_usage=total_usage,
            created_at=template.created_at,
            last_updated=template.updated_at,
        )
    )
