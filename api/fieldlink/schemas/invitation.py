"""
Invitation schemas
"""
import uuid
from datetime import datetime
from pydantic import EmailStr, Field
from typing import Optional
from fieldlink.models.user import UserRole
from fieldlink.schemas.common import CamelModel


class InvitationCreate(CamelModel):
    email: EmailStr
    role: UserRole = UserRole.USER


class InvitationAccept(CamelModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    password: str = Field(min_length=8)


class Inviter(CamelModel):
    id: uuid.UUID
    first_name: str
    last_name: str
    email: str


class InvitationResponse(CamelModel):
    id: uuid.UUID
    email: str
    role: UserRole
    expires_at: datetime
    accepted_at: Optional[datetime] = None
    created_at: datetime
    invited_by: Optional[Inviter] = None
    token: Optional[str] = None


class InvitationVerify(CamelModel):
    email: str
    role: UserRole
    organization_name: str
    expires_at: datetime
