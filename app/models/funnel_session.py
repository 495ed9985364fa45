from sqlalchemy import Column, String, Integer, ForeignKey, JSON, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
import uuid
import time
from app.db.session import Base


class FunnelSessionStatus:
    ACTIVE = "active"
    COMPLETED = "completed"
    ABANDONED = "abandoned"  # Set by an external reaper; terminal here

    ALL = (ACTIVE, COMPLETED, ABANDONED)


class FunnelSession(Base):
    __tablename__ = "funnel_sessions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    funnel_id = Column(UUID(as_uuid=True), ForeignKey("funnels.id", ondelete="CASCADE"), nullable=False, index=True)
    entry_purchase_id = Column(UUID(as_uuid=True), ForeignKey("purchases.id"), nullable=False)
    current_step_index = Column(Integer, default=0, nullable=False)
    status = Column(String, default=FunnelSessionStatus.ACTIVE, nullable=False, index=True)
    accepted_steps = Column(JSON, default=list, nullable=False)  # Step id strings, append-only
    declined_steps = Column(JSON, default=list, nullable=False)  # Step id strings, append-only
    total_revenue = Column(Integer, default=0, nullable=False)  # Cents
    created_at = Column(Integer, default=lambda: int(time.time()), nullable=False)
    completed_at = Column(Integer, nullable=True)

    @property
    def is_terminal(self) -> bool:
        return self.status != FunnelSessionStatus.ACTIVE

    # One session per funnel per entry purchase
    __table_args__ = (
        UniqueConstraint("entry_purchase_id", "funnel_id", name="uq_funnel_sessions_entry_purchase_funnel"),
    )
