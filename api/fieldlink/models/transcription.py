"""
Transcription model
"""
import uuid
from sqlalchemy import Column, String, ForeignKey, Text, Float, DateTime, Uuid
from sqlalchemy.orm import relationship
from fieldlink.core.database import Base, JSONType, utcnow


class Transcription(Base):
    """Transcription model, one per recording"""
    __tablename__ = "transcriptions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    recording_id = Column(Uuid(as_uuid=True), ForeignKey("recordings.id"), unique=True, nullable=False, index=True)
    text = Column(Text, nullable=False)
    confidence = Column(Float, nullable=False, default=0.0)
    language = Column(String(10), nullable=False, default="en-US")
    speaker_segments = Column(JSONType, nullable=False, default=list)  # SpeakerSegment dicts

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    recording = relationship("Recording", back_populates="transcription")

    def __repr__(self):
        return f"<Transcription(id={self.id}, recording_id={self.recording_id}, language={self.language})>"
