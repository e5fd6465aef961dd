"""
Analysis result model
"""
import uuid
from sqlalchemy import Column, ForeignKey, Float, DateTime, Uuid
from sqlalchemy.orm import relationship
from fieldlink.core.database import Base, JSONType, utcnow


class AnalysisResult(Base):
    """Analysis of a recording's transcript, one per recording"""
    __tablename__ = "analysis_results"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    recording_id = Column(Uuid(as_uuid=True), ForeignKey("recordings.id"), unique=True, nullable=False, index=True)
    sentiment = Column(JSONType, nullable=False, default=dict)
    process_score = Column(JSONType, nullable=False, default=dict)
    sales_opportunities = Column(JSONType, nullable=False, default=list)
    action_items = Column(JSONType, nullable=False, default=list)
    confidence = Column(Float, nullable=False, default=0.0)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    recording = relationship("Recording", back_populates="analysis_result")

    def __repr__(self):
        return f"<AnalysisResult(id={self.id}, recording_id={self.recording_id}, confidence={self.confidence})>"
