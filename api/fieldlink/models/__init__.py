"""
Database models
"""
from fieldlink.models.organization import Organization
from fieldlink.models.user import User, UserRole
from fieldlink.models.recording import Recording, RecordingStatus
from fieldlink.models.transcription import Transcription
from fieldlink.models.analysis_result import AnalysisResult
from fieldlink.models.process_template import ProcessTemplate
from fieldlink.models.invitation import Invitation

__all__ = [
    "Organization",
    "User",
    "UserRole",
    "Recording",
    "RecordingStatus",
    "Transcription",
    "AnalysisResult",
    "ProcessTemplate",
    "Invitation",
]
