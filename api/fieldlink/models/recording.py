"""
Recording model
"""
import uuid
from sqlalchemy import Column, String, ForeignKey, Integer, BigInteger, DateTime, Uuid, Enum as SQLEnum, Index
from sqlalchemy.orm import relationship
from fieldlink.core.database import Base, utcnow
import enum


class RecordingStatus(str, enum.Enum):
    """Recording processing status"""
    UPLOADED = "UPLOADED"
    TRANSCRIBING = "TRANSCRIBING"
    ANALYZING = "ANALYZING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


# Forward-only; FAILED is terminal
STATUS_TRANSITIONS = {
    RecordingStatus.UPLOADED: {RecordingStatus.TRANSCRIBING, RecordingStatus.FAILED},
    RecordingStatus.TRANSCRIBING: {RecordingStatus.COMPLETED, RecordingStatus.FAILED},
    RecordingStatus.COMPLETED: {RecordingStatus.ANALYZING, RecordingStatus.FAILED},
    RecordingStatus.ANALYZING: {RecordingStatus.COMPLETED, RecordingStatus.FAILED},
    RecordingStatus.FAILED: set(),
}


def can_transition(current: RecordingStatus, target: RecordingStatus) -> bool:
    return current == target or target in STATUS_TRANSITIONS[current]


class Recording(Base):
    """Recording model"""
    __tablename__ = "recordings"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid(as_uuid=True), ForeignKey("organizations.id"), nullable=False, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)

    title = Column(String(255), nullable=False)
    duration = Column(Integer, nullable=True)  # seconds
    file_size = Column(BigInteger, nullable=True)  # bytes
    file_url = Column(String(1000), nullable=True)
    storage_key = Column(String(1000), nullable=True)
    mime_type = Column(String(100), nullable=True)
    status = Column(SQLEnum(RecordingStatus), nullable=False, default=RecordingStatus.UPLOADED, index=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    user = relationship("User")
    transcription = relationship(
        "Transcription", back_populates="recording", uselist=False, cascade="all, delete-orphan"
    )
    analysis_result = relationship(
        "AnalysisResult", back_populates="recording", uselist=False, cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_recordings_org_created", "organization_id", "created_at"),
    )

    def __repr__(self):
        return f"<Recording(id={self.id}, title={self.title}, status={self.status})>"
