"""
Invitation endpoints
"""
import logging
from datetime import timedelta
from typing import List

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from fieldlink.api.v1.auth import auth_payload, set_auth_cookie
from fieldlink.core.config import settings
from fieldlink.core.database import as_utc, get_db, utcnow
from fieldlink.core.dependencies import get_tenant, require_roles
from fieldlink.core.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from fieldlink.core.security import generate_token, get_password_hash
from fieldlink.core.tenancy import TenantRepository
from fieldlink.models.invitation import Invitation
from fieldlink.models.user import User, UserRole
from fieldlink.schemas.auth import AuthPayload
from fieldlink.schemas.common import ApiResponse, MessageResponse
from fieldlink.schemas.invitation import InvitationAccept, InvitationCreate, InvitationResponse, InvitationVerify

logger = logging.getLogger(__name__)

router = APIRouter()

INVITATION_TTL = timedelta(days=7)

inviters = require_roles(UserRole.ADMIN, UserRole.MANAGER)


def invitation_response(invitation: Invitation) -> InvitationResponse:
    response = InvitationResponse.model_validate(invitation)
    # No mail delivery; the token is only handed back in development
    if not settings.is_development:
        response.token = None
    return response


async def pending_invitation(db: AsyncSession, token: str) -> Invitation:
    result = await db.execute(
        select(Invitation)
        .options(selectinload(Invitation.organization))
        .where(Invitation.token == token, Invitation.accepted_at.is_(None), Invitation.expires_at > utcnow())
    )
    invitation = result.scalar_one_or_none()
    if invitation is None:
        raise NotFoundError("Invalid or expired invitation")
    return invitation


@router.post("", response_model=ApiResponse[InvitationResponse], status_code=status.HTTP_201_CREATED)
async def create_invitation(
    data: InvitationCreate,
    repo: TenantRepository = Depends(get_tenant),
    current_user: User = Depends(inviters),
):
    if data.role in (UserRole.ADMIN, UserRole.MANAGER) and current_user.role != UserRole.ADMIN:
        raise AuthorizationError("Only administrators can invite other administrators or managers")

    email = data.email.lower()
    result = await repo.db.execute(select(User).where(User.email == email))
    existing = result.scalar_one_or_none()
    if existing is not None:
        if existing.organization_id == repo.organization_id:
            raise ConflictError("User with this email is already a member of your organization")
        raise ConflictError("An account with this email already exists")

    if await repo.first(Invitation, Invitation.email == email, Invitation.accepted_at.is_(None),
                        Invitation.expires_at > utcnow()):
        raise ConflictError("An active invitation for this email already exists")

    invitation = Invitation(
        organization_id=repo.organization_id,
        invited_by_id=current_user.id,
        email=email,
        role=data.role,
        token=generate_token(),
        expires_at=utcnow() + INVITATION_TTL,
    )
    invitation.invited_by = current_user
    repo.db.add(invitation)
    await repo.db.commit()
    logger.info("Invitation created", extra={"invitation_id": str(invitation.id), "role": data.role.value})
    return ApiResponse(data=invitation_response(invitation), message="Invitation sent successfully")


@router.get("", response_model=ApiResponse[List[InvitationResponse]])
async def list_invitations(
    include_expired: bool = Query(False, alias="includeExpired"),
    include_accepted: bool = Query(False, alias="includeAccepted"),
    repo: TenantRepository = Depends(get_tenant),
    current_user: User = Depends(inviters),
):
    """Pending invitations unless the include flags say otherwise"""
    query = repo.select(Invitation).options(selectinload(Invitation.invited_by))
    if not include_accepted:
        query = query.where(Invitation.accepted_at.is_(None))
    if not include_expired:
        query = query.where(Invitation.expires_at > utcnow())
    invitations = await repo.all(query.order_by(Invitation.created_at.desc()))
    return ApiResponse(data=[invitation_response(i) for i in invitations])


@router.post("/{invitation_id}/resend", response_model=ApiResponse[InvitationResponse])
async def resend_invitation(
    invitation_id: str,
    repo: TenantRepository = Depends(get_tenant),
    current_user: User = Depends(inviters),
):
    """Expired invitations get a fresh seven-day window"""
    invitation = await repo.get_or_404(Invitation, invitation_id, selectinload(Invitation.invited_by))
    if invitation.accepted_at is not None:
        raise ValidationError("This invitation has already been accepted")

    if as_utc(invitation.expires_at) <= utcnow():
        invitation.expires_at = utcnow() + INVITATION_TTL
        await repo.db.commit()
    logger.info("Invitation resent", extra={"invitation_id": str(invitation.id)})
    return ApiResponse(data=invitation_response(invitation), message="Invitation resent successfully")


@router.delete("/{invitation_id}", response_model=MessageResponse)
async def cancel_invitation(
    invitation_id: str,
    repo: TenantRepository = Depends(get_tenant),
    current_user: User = Depends(inviters),
):
    invitation = await repo.get_or_404(Invitation, invitation_id)
    if invitation.accepted_at is not None:
        raise ValidationError("Cannot cancel an invitation that has already been accepted")

    await repo.db.delete(invitation)
    await repo.db.commit()
    return MessageResponse(message="Invitation cancelled successfully")


@router.get("/{token}/verify", response_model=ApiResponse[InvitationVerify])
async def verify_invitation(token: str, db: AsyncSession = Depends(get_db)):
    """Public: details shown on the sign-up page"""
    invitation = await pending_invitation(db, token)
    return ApiResponse(
        data=InvitationVerify(
            email=invitation.email,
            role=invitation.role,
            organization_name=invitation.organization.name,
            expires_at=invitation.expires_at,
        )
    )


@router.post("/{token}/accept", response_model=ApiResponse[AuthPayload], status_code=status.HTTP_201_CREATED)
async def accept_invitation(
    token: str,
    data: InvitationAccept,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    """Public: create the account and consume the invitation in one transaction"""
    invitation = await pending_invitation(db, token)

    result = await db.execute(select(User).where(User.email == invitation.email))
    if result.scalar_one_or_none():
        raise ConflictError("An account with this email already exists")

    user = User(
        organization_id=invitation.organization_id,
        email=invitation.email,
        password_hash=get_password_hash(data.password),
        first_name=data.first_name,
        last_name=data.last_name,
        role=invitation.role,
        is_active=True,
    )
    db.add(user)
    invitation.accepted_at = utcnow()
    await db.commit()
    await db.refresh(user)

    logger.info("Invitation accepted", extra={"invitation_id": str(invitation.id), "user_id": str(user.id)})
    payload = auth_payload(user, invitation.organization)
    set_auth_cookie(response, payload.token)
    return ApiResponse(data=payload, message="Invitation accepted successfully")
