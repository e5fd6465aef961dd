"""
User management schemas
"""
from pydantic import EmailStr, Field
from typing import Dict, Optional
from fieldlink.models.user import UserRole
from fieldlink.schemas.auth import UserResponse
from fieldlink.schemas.common import CamelModel


class UserCreate(CamelModel):
    email: EmailStr
    password: str = Field(min_length=8)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    role: UserRole = UserRole.USER


class UserUpdate(CamelModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    avatar_url: Optional[str] = Field(None, max_length=500)
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None


class RoleUpdate(CamelModel):
    role: UserRole


class UserActivity(CamelModel):
    total_recordings: int
    recent_recordings: int  # last 30 days
    total_duration: int
    status_breakdown: Dict[str, int]


class UserStats(CamelModel):
    user: UserResponse
    stats: UserActivity
