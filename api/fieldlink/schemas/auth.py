"""
Authentication schemas
"""
import uuid
from datetime import datetime
from pydantic import EmailStr, Field
from typing import Any, Dict, Optional
from fieldlink.models.user import UserRole
from fieldlink.schemas.common import CamelModel


class RegisterRequest(CamelModel):
    """Registration creates an organization and its first admin"""
    email: EmailStr
    password: str = Field(min_length=8)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    organization_name: str = Field(min_length=1, max_length=255)
    industry: Optional[str] = Field(None, max_length=100)


class LoginRequest(CamelModel):
    """Login request schema"""
    email: EmailStr
    password: str = Field(min_length=1)


class ChangePasswordRequest(CamelModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=8)


class ForgotPasswordRequest(CamelModel):
    email: EmailStr


class ResetPasswordRequest(CamelModel):
    token: str = Field(min_length=1)
    password: str = Field(min_length=8)


class OrganizationSummary(CamelModel):
    id: uuid.UUID
    name: str
    industry: Optional[str] = None
    settings: Dict[str, Any] = {}


class UserResponse(CamelModel):
    """User response schema"""
    id: uuid.UUID
    email: str
    first_name: str
    last_name: str
    role: UserRole
    avatar_url: Optional[str] = None
    is_active: bool
    organization_id: uuid.UUID
    created_at: datetime


class AuthPayload(CamelModel):
    """Token plus the user it was issued for"""
    token: str
    user: UserResponse
    organization: Optional[OrganizationSummary] = None


class TokenPayload(CamelModel):
    token: str
