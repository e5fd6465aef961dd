"""
Authentication endpoints
"""
import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from fieldlink.core.config import settings
from fieldlink.core.database import get_db, utcnow, as_utc
from fieldlink.core.dependencies import get_current_user
from fieldlink.core.errors import AuthenticationError, ConflictError, NotFoundError
from fieldlink.core.security import (
    generate_token,
    get_password_hash,
    hash_token,
    token_for_user,
    verify_password,
)
from fieldlink.models.organization import Organization
from fieldlink.models.user import User, UserRole
from fieldlink.schemas.auth import (
    AuthPayload,
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    OrganizationSummary,
    RegisterRequest,
    ResetPasswordRequest,
    TokenPayload,
    UserResponse,
)
from fieldlink.schemas.common import ApiResponse, MessageResponse

logger = logging.getLogger(__name__)

router = APIRouter()

RESET_TOKEN_TTL = timedelta(hours=1)


def set_auth_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key="access_token",
        value=token,
        httponly=True,
        secure=settings.ENVIRONMENT == "production",
        samesite="lax",
        max_age=settings.JWT_EXPIRATION_HOURS * 60 * 60,
    )


def auth_payload(user: User, organization: Organization = None) -> AuthPayload:
    return AuthPayload(
        token=token_for_user(user),
        user=UserResponse.model_validate(user),
        organization=OrganizationSummary.model_validate(organization) if organization else None,
    )


@router.post("/register", response_model=ApiResponse[AuthPayload], status_code=status.HTTP_201_CREATED)
async def register(
    data: RegisterRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    """Create an organization and its first admin user"""
    result = await db.execute(select(User).where(User.email == data.email.lower()))
    if result.scalar_one_or_none():
        raise ConflictError("User with this email already exists")

    organization = Organization(name=data.organization_name, industry=data.industry, settings={})
    db.add(organization)
    await db.flush()

    user = User(
        organization_id=organization.id,
        email=data.email.lower(),
        password_hash=get_password_hash(data.password),
        first_name=data.first_name,
        last_name=data.last_name,
        role=UserRole.ADMIN,
        is_active=True,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)

    logger.info("Organization registered", extra={"organization_id": str(organization.id)})
    payload = auth_payload(user, organization)
    set_auth_cookie(response, payload.token)
    return ApiResponse(data=payload, message="Registration successful")


@router.post("/login", response_model=ApiResponse[AuthPayload])
async def login(
    credentials: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    """Login endpoint - returns a bearer token and sets an HttpOnly cookie"""
    result = await db.execute(
        select(User).options(selectinload(User.organization)).where(User.email == credentials.email.lower())
    )
    user = result.scalar_one_or_none()

    if not user or not verify_password(credentials.password, user.password_hash):
        raise AuthenticationError("Invalid credentials")
    if not user.is_active:
        raise AuthenticationError("Account is deactivated")

    payload = auth_payload(user, user.organization)
    set_auth_cookie(response, payload.token)
    return ApiResponse(data=payload, message="Login successful")


@router.post("/logout", response_model=MessageResponse)
async def logout(response: Response):
    """Logout endpoint - clears cookie"""
    response.delete_cookie(key="access_token", httponly=True, samesite="lax")
    return MessageResponse(message="Logged out successfully")


@router.get("/me", response_model=ApiResponse[AuthPayload])
async def get_me(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Current user, organization and a fresh token"""
    organization = await db.get(Organization, current_user.organization_id)
    return ApiResponse(data=auth_payload(current_user, organization))


@router.post("/refresh", response_model=ApiResponse[TokenPayload])
async def refresh_token(
    response: Response,
    current_user: User = Depends(get_current_user),
):
    token = token_for_user(current_user)
    set_auth_cookie(response, token)
    return ApiResponse(data=TokenPayload(token=token))


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    data: ChangePasswordRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not verify_password(data.current_password, current_user.password_hash):
        raise AuthenticationError("Current password is incorrect")

    current_user.password_hash = get_password_hash(data.new_password)
    await db.commit()
    return MessageResponse(message="Password changed successfully")


@router.post("/forgot-password", response_model=ApiResponse[dict])
async def forgot_password(
    data: ForgotPasswordRequest,
    db: AsyncSession = Depends(get_db),
):
    """Always succeeds so the endpoint cannot be used to probe for accounts"""
    message = "If the email exists, a password reset link has been sent"
    result = await db.execute(select(User).where(User.email == data.email.lower()))
    user = result.scalar_one_or_none()
    if user is None or not user.is_active:
        return ApiResponse(data={}, message=message)

    token = generate_token()
    user.reset_token_hash = hash_token(token)
    user.reset_token_expires_at = utcnow() + RESET_TOKEN_TTL
    await db.commit()
    logger.info("Password reset requested", extra={"user_id": str(user.id)})

    # No mail delivery; development builds hand the token back directly
    data = {"resetToken": token} if settings.is_development else {}
    return ApiResponse(data=data, message=message)


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    data: ResetPasswordRequest,
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(select(User).where(User.reset_token_hash == hash_token(data.token)))
    user = result.scalar_one_or_none()
    if user is None or not user.reset_token_expires_at or as_utc(user.reset_token_expires_at) < utcnow():
        raise AuthenticationError("Invalid or expired reset token")
    if not user.is_active:
        raise NotFoundError("User not found")

    user.password_hash = get_password_hash(data.password)
    user.reset_token_hash = None
    user.reset_token_expires_at = None
    await db.commit()
    return MessageResponse(message="Password reset successfully")
