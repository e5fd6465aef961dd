"""
Organization schemas
"""
import uuid
from datetime import datetime
from pydantic import Field
from typing import Any, Dict, Optional
from fieldlink.schemas.common import CamelModel


class OrganizationResponse(CamelModel):
    id: uuid.UUID
    name: str
    industry: Optional[str] = None
    settings: Dict[str, Any] = {}
    created_at: datetime
    updated_at: datetime


class OrganizationUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    industry: Optional[str] = Field(None, max_length=100)


class OrganizationStats(CamelModel):
    total_users: int
    active_users: int
    total_recordings: int
    completed_recordings: int
    total_duration: int
    total_storage: int
    process_templates: int
    pending_invitations: int
