from sqlalchemy import Column, String, DateTime, Enum as SQLEnum, Text, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID
import uuid
from datetime import datetime
import enum
from app.db.session import Base


class AuditEventType(str, enum.Enum):
    """Security-relevant events on the buyer-facing funnel and checkout endpoints"""
    UNAUTHORIZED_ACCESS = "unauthorized_access"  # Session owned by another user
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    PAYMENT_NOT_CONFIRMED = "payment_not_confirmed"  # complete-step with an unpaid intent


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    event_type = Column(SQLEnum(AuditEventType), nullable=False, index=True)
    resource_type = Column(String, nullable=True)  # "funnel_session" or "api_endpoint"
    resource_id = Column(String, nullable=True)  # Session id or endpoint name
    ip_address = Column(String, nullable=True)
    user_agent = Column(String, nullable=True)
    details = Column(Text, nullable=True)  # JSON-encoded dict
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    # Lookups of everything that happened to one session
    __table_args__ = (
        Index("ix_audit_logs_resource", "resource_type", "resource_id"),
    )
