"""
Recording schemas
"""
import uuid
from datetime import datetime
from pydantic import Field
from typing import Any, Dict, List, Optional
from fieldlink.models.recording import RecordingStatus
from fieldlink.schemas.analysis import AnalysisResponse
from fieldlink.schemas.common import CamelModel
from fieldlink.schemas.transcription import TranscriptionResponse


class RecordingUser(CamelModel):
    id: uuid.UUID
    first_name: str
    last_name: str
    email: str


class RecordingResponse(CamelModel):
    """Recording response schema"""
    id: uuid.UUID
    title: str
    duration: Optional[int] = None
    file_size: Optional[int] = None
    file_url: Optional[str] = None
    storage_key: Optional[str] = None
    mime_type: Optional[str] = None
    status: RecordingStatus
    user_id: uuid.UUID
    organization_id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    user: Optional[RecordingUser] = None


class RecordingCreate(CamelModel):
    """Metadata-only recording (blob already stored elsewhere)"""
    title: str = Field(min_length=1, max_length=255)
    duration: Optional[int] = Field(None, ge=0)
    file_size: Optional[int] = Field(None, ge=0)
    file_url: Optional[str] = Field(None, max_length=1000)
    storage_key: Optional[str] = Field(None, max_length=1000)
    mime_type: Optional[str] = Field(None, max_length=100)


class RecordingUpdate(CamelModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    status: Optional[RecordingStatus] = None


class PlaybackUrl(CamelModel):
    url: str
    expires_in: int


class RecordingStats(CamelModel):
    total_recordings: int
    by_status: Dict[str, int]
    total_storage: int
    total_duration: int
    average_duration: float
    by_date: List[Dict[str, Any]]


class RecordingDetail(RecordingResponse):
    """Single recording with its transcript and analysis"""
    transcription: Optional[TranscriptionResponse] = None
    analysis_result: Optional[AnalysisResponse] = None
