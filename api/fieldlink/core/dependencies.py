"""
FastAPI dependencies
"""
from typing import Optional

from fastapi import Depends, Cookie, Header, Query, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fieldlink.core.database import get_db
from fieldlink.core.errors import AuthenticationError, AuthorizationError
from fieldlink.core.security import decode_access_token
from fieldlink.core.tenancy import TenantRepository, parse_uuid
from fieldlink.models.user import User, UserRole
from fieldlink.schemas.common import PaginationParams
from fieldlink.services.providers import Providers


async def get_current_user(
    authorization: Optional[str] = Header(None),
    access_token: Optional[str] = Cookie(None),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Authenticated user from the bearer token, falling back to the login cookie"""
    token = None
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization[7:].strip()
    elif access_token:
        token = access_token
    if not token:
        raise AuthenticationError("No token provided")

    payload = decode_access_token(token)
    user_id = parse_uuid(payload.get("sub"))
    if user_id is None:
        raise AuthenticationError("Invalid token")

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None:
        raise AuthenticationError("User not found")
    if not user.is_active:
        raise AuthenticationError("Account is deactivated")

    return user


def require_roles(*roles: UserRole):
    """Dependency factory: 403 unless the current user has one of `roles`"""

    async def check(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            raise AuthorizationError()
        return current_user

    return check


async def get_tenant(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> TenantRepository:
    """Repository scoped to the current user's organization"""
    return TenantRepository(db, current_user.organization_id)


def get_providers(request: Request) -> Providers:
    return request.app.state.providers


def get_pagination(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort_by: str = Query("createdAt", alias="sortBy"),
    order: str = Query("desc", pattern="^(asc|desc)$"),
) -> PaginationParams:
    return PaginationParams(page=page, limit=limit, sort_by=sort_by, order=order)
