"""
Process template schemas
"""
import uuid
from datetime import datetime
from pydantic import Field
from typing import List, Optional
from fieldlink.schemas.common import CamelModel


class ProcessStep(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    keywords: List[str] = []
    order: int = Field(ge=0)
    required: bool = True


class ProcessTemplateCreate(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    steps: List[ProcessStep] = Field(min_length=1)
    is_active: bool = True
    is_default: bool = False


class ProcessTemplateUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    steps: Optional[List[ProcessStep]] = Field(None, min_length=1)
    is_active: Optional[bool] = None
    is_default: Optional[bool] = None


class ProcessTemplateDuplicate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)


class ProcessTemplateResponse(CamelModel):
    id: uuid.UUID
    organization_id: uuid.UUID
    name: str
    description: Optional[str] = None
    steps: List[ProcessStep]
    is_active: bool
    is_default: bool
    usage_count: int
    created_at: datetime
    updated_at: datetime


class ProcessTemplateStats(CamelModel):
    """Usage of one template relative to the organization"""
    template_id: uuid.UUID
    name: str
    is_default: bool
    is_active: bool
    step_count: int
    usage_count: int
    usage_percentage: float
    total_templates: int
    total_organization_usage: int
    created_at: datetime
    last_updated: datetime
