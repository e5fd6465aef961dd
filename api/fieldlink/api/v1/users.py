"""
User management endpoints
"""
import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, or_, select
from typing import Optional

from fieldlink.core.database import utcnow
from fieldlink.core.dependencies import get_current_user, get_pagination, get_tenant, require_roles
from fieldlink.core.errors import AuthorizationError, ConflictError
from fieldlink.core.security import get_password_hash
from fieldlink.core.tenancy import TenantRepository, sort_clause
from fieldlink.models.recording import Recording
from fieldlink.models.user import User, UserRole
from fieldlink.schemas.auth import UserResponse
from fieldlink.schemas.common import ApiResponse, MessageResponse, PaginatedResponse, PaginationParams
from fieldlink.schemas.user import RoleUpdate, UserActivity, UserCreate, UserStats, UserUpdate

logger = logging.getLogger(__name__)

router = APIRouter()

SORT_COLUMNS = {
    "createdAt": "created_at",
    "email": "email",
    "firstName": "first_name",
    "lastName": "last_name",
    "role": "role",
}


@router.get("", response_model=PaginatedResponse[UserResponse])
async def list_users(
    search: Optional[str] = Query(None),
    role: Optional[UserRole] = Query(None),
    is_active: Optional[bool] = Query(None, alias="isActive"),
    params: PaginationParams = Depends(get_pagination),
    repo: TenantRepository = Depends(get_tenant),
):
    """List users of the organization"""
    query = repo.select(User)
    if search:
        pattern = f"%{search}%"
        query = query.where(
            or_(User.email.ilike(pattern), User.first_name.ilike(pattern), User.last_name.ilike(pattern))
        )
    if role:
        query = query.where(User.role == role)
    if is_active is not None:
        query = query.where(User.is_active.is_(is_active))

    total = await repo.total(query)
    query = query.order_by(sort_clause(User, params.sort_by, params.order, SORT_COLUMNS))
    users = await repo.all(query.offset(params.offset).limit(params.limit))

    return PaginatedResponse(
        data=[UserResponse.model_validate(u) for u in users],
        pagination=params.pagination(total),
    )


@router.post("", response_model=ApiResponse[UserResponse], status_code=status.HTTP_201_CREATED)
async def create_user(
    data: UserCreate,
    repo: TenantRepository = Depends(get_tenant),
    current_user: User = Depends(require_roles(UserRole.ADMIN, UserRole.MANAGER)),
):
    """Add a user to the current organization"""
    existing = await repo.db.execute(select(User).where(User.email == data.email.lower()))
    if existing.scalar_one_or_none():
        raise ConflictError("User with this email already exists")
    if data.role != UserRole.USER and current_user.role != UserRole.ADMIN:
        raise AuthorizationError("Only admins can create admin or manager users")

    user = User(
        organization_id=repo.organization_id,
        email=data.email.lower(),
        password_hash=get_password_hash(data.password),
        first_name=data.first_name,
        last_name=data.last_name,
        role=data.role,
        is_active=True,
    )
    repo.db.add(user)
    await repo.db.commit()
    await repo.db.refresh(user)
    logger.info("User created", extra={"user_id": str(user.id), "created_by": str(current_user.id)})
    return ApiResponse(data=UserResponse.model_validate(user), message="User created successfully")


@router.get("/{user_id}", response_model=ApiResponse[UserResponse])
async def get_user(
    user_id: str,
    repo: TenantRepository = Depends(get_tenant),
):
    user = await repo.get_or_404(User, user_id)
    return ApiResponse(data=UserResponse.model_validate(user))


@router.get("/{user_id}/stats", response_model=ApiResponse[UserStats])
async def get_user_stats(
    user_id: str,
    repo: TenantRepository = Depends(get_tenant),
):
    """Recording activity for one user"""
    user = await repo.get_or_404(User, user_id)
    total = await repo.count(Recording, Recording.user_id == user.id)
    recent = await repo.count(
        Recording, Recording.user_id == user.id, Recording.created_at >= utcnow() - timedelta(days=30)
    )
    duration = await repo.scalar(Recording, func.coalesce(func.sum(Recording.duration), 0), Recording.user_id == user.id)

    result = await repo.db.execute(
        select(Recording.status, func.count(Recording.id))
        .where(Recording.organization_id == repo.organization_id, Recording.user_id == user.id)
        .group_by(Recording.status)
    )
    breakdown = {row[0].value: row[1] for row in result.all()}

    return ApiResponse(
        data=UserStats(
            user=UserResponse.model_validate(user),
            stats=UserActivity(
                total_recordings=total,
                recent_recordings=recent,
                total_duration=int(duration or 0),
                status_breakdown=breakdown,
            ),
        )
    )


@router.patch("/{user_id}", response_model=ApiResponse[UserResponse])
async def update_user(
    user_id: str,
    data: UserUpdate,
    repo: TenantRepository = Depends(get_tenant),
    current_user: User = Depends(get_current_user),
):
    """Users may edit their own profile; admins and managers may edit anyone in the organization"""
    user = await repo.get_or_404(User, user_id)
    if user.id != current_user.id and current_user.role not in (UserRole.ADMIN, UserRole.MANAGER):
        raise AuthorizationError()

    changes = data.model_dump(exclude_unset=True)
    if ("role" in changes or "is_active" in changes) and current_user.role != UserRole.ADMIN:
        raise AuthorizationError("Only admins can modify user roles and status")

    for key, value in changes.items():
        setattr(user, key, value)
    await repo.db.commit()
    await repo.db.refresh(user)
    return ApiResponse(data=UserResponse.model_validate(user), message="User updated successfully")


@router.patch("/{user_id}/role", response_model=ApiResponse[UserResponse])
async def update_user_role(
    user_id: str,
    data: RoleUpdate,
    repo: TenantRepository = Depends(get_tenant),
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
):
    user = await repo.get_or_404(User, user_id)
    if user.id == current_user.id:
        raise AuthorizationError("Cannot change your own role")

    user.role = data.role
    await repo.db.commit()
    await repo.db.refresh(user)
    logger.info("User role changed", extra={"user_id": str(user.id), "role": data.role.value})
    return ApiResponse(data=UserResponse.model_validate(user), message="User role updated successfully")


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: str,
    repo: TenantRepository = Depends(get_tenant),
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
):
    """Soft delete: the account is deactivated, its recordings are kept"""
    user = await repo.get_or_404(User, user_id)
    if user.id == current_user.id:
        raise AuthorizationError("Cannot delete your own account")

    user.is_active = False
    await repo.db.commit()
    return MessageResponse(message="User deactivated successfully")
