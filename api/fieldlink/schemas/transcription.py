"""
Transcription schemas
"""
import uuid
from datetime import datetime
from pydantic import AliasChoices, Field
from typing import List, Optional
from fieldlink.schemas.common import CamelModel


class WordInfo(CamelModel):
    word: str
    start_time: float
    end_time: float
    confidence: float = 0.0
    speaker_tag: Optional[int] = None


class SpeakerSegment(CamelModel):
    speaker: str = "Speaker 1"
    text: str
    start_time: float
    end_time: float
    confidence: float = 0.0
    words: List[WordInfo] = []


class TranscriptionResult(CamelModel):
    """Engine output for one recording"""
    id: uuid.UUID
    recording_id: uuid.UUID
    text: str
    confidence: float = 0.0
    language: str
    speaker_segments: List[SpeakerSegment]
    duration: float
    word_count: int
    speaker_count: int
    created_at: datetime


class TranscriptionResponse(CamelModel):
    id: uuid.UUID
    recording_id: uuid.UUID
    text: str
    confidence: float = 0.0
    language: str
    speaker_segments: List[SpeakerSegment] = []
    created_at: datetime
    updated_at: datetime


class TranscriptionUpsert(CamelModel):
    """Manual transcript entry"""
    text: str = Field(min_length=1, validation_alias=AliasChoices("text", "content"))
    confidence: float = Field(1.0, ge=0, le=1)
    language: str = Field("en-US", max_length=10)
    speaker_segments: List[SpeakerSegment] = []


class TranscribeRequest(CamelModel):
    language: str = Field("en-US", max_length=10)
    speaker_count: int = Field(2, ge=1, le=10)


class SearchRecording(CamelModel):
    id: uuid.UUID
    title: str
    created_at: datetime
    user_id: uuid.UUID


class TranscriptionSearchHit(CamelModel):
    id: uuid.UUID
    recording_id: uuid.UUID
    recording: SearchRecording
    snippets: List[str]
    match_count: int
    confidence: float = 0.0
    language: str
