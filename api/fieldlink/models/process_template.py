"""
Process template model
"""
import uuid
from sqlalchemy import Column, String, ForeignKey, Boolean, Integer, Text, DateTime, Uuid, UniqueConstraint
from fieldlink.core.database import Base, JSONType, utcnow


class ProcessTemplate(Base):
    """Ordered conversation steps a recording is scored against"""
    __tablename__ = "process_templates"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid(as_uuid=True), ForeignKey("organizations.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    steps = Column(JSONType, nullable=False, default=list)  # [{name, keywords, order, required}]
    is_active = Column(Boolean, nullable=False, default=True)
    is_default = Column(Boolean, nullable=False, default=False)
    usage_count = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("organization_id", "name", name="uq_process_templates_org_name"),
    )

    def __repr__(self):
        return f"<ProcessTemplate(id={self.id}, name={self.name}, is_default={self.is_default})>"
