"""
Invitation model
"""
import uuid
from sqlalchemy import Column, String, ForeignKey, DateTime, Uuid, Enum as SQLEnum
from sqlalchemy.orm import relationship
from fieldlink.core.database import Base, utcnow
from fieldlink.models.user import UserRole


class Invitation(Base):
    """Pending membership for an email address"""
    __tablename__ = "invitations"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid(as_uuid=True), ForeignKey("organizations.id"), nullable=False, index=True)
    invited_by_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    role = Column(SQLEnum(UserRole), nullable=False, default=UserRole.USER)
    token = Column(String(64), unique=True, nullable=False, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    accepted_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    organization = relationship("Organization")
    invited_by = relationship("User")

    def __repr__(self):
        return f"<Invitation(id={self.id}, email={self.email}, role={self.role})>"
