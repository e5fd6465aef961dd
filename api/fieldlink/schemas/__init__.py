"""
Pydantic schemas for API requests/responses
"""
from fieldlink.schemas.common import ApiResponse, MessageResponse, PaginatedResponse, Pagination
from fieldlink.schemas.auth import AuthPayload, LoginRequest, RegisterRequest, UserResponse
from fieldlink.schemas.recording import RecordingCreate, RecordingDetail, RecordingResponse, RecordingUpdate
from fieldlink.schemas.transcription import SpeakerSegment, TranscriptionResponse, TranscriptionResult
from fieldlink.schemas.analysis import AnalysisResponse, ProcessScore, Sentiment
from fieldlink.schemas.process_template import ProcessTemplateCreate, ProcessTemplateResponse
from fieldlink.schemas.invitation import InvitationCreate, InvitationResponse

__all__ = [
    "ApiResponse",
    "MessageResponse",
    "PaginatedResponse",
    "Pagination",
    "AuthPayload",
    "LoginRequest",
    "RegisterRequest",
    "UserResponse",
    "RecordingCreate",
    "RecordingDetail",
    "RecordingResponse",
    "RecordingUpdate",
    "SpeakerSegment",
    "TranscriptionResponse",
    "TranscriptionResult",
    "AnalysisResponse",
    "ProcessScore",
    "Sentiment",
    "ProcessTemplateCreate",
    "ProcessTemplateResponse",
    "InvitationCreate",
    "InvitationResponse",
]
