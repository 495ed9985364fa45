from sqlalchemy import Column, String, Integer, ForeignKey, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
import uuid
import time
from app.db.session import Base


def _epoch_seconds() -> int:
    return int(time.time())


class Purchase(Base):
    __tablename__ = "purchases"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    product_id = Column(UUID(as_uuid=True), ForeignKey("products.id"), nullable=False, index=True)
    amount = Column(Integer, nullable=False)  # Cents actually charged; may differ from catalog price
    stripe_payment_id = Column(String, nullable=True, unique=True)  # payment_intent id; null for free grants and bump children
    parent_purchase_id = Column(UUID(as_uuid=True), ForeignKey("purchases.id"), nullable=True, index=True)
    funnel_session_id = Column(UUID(as_uuid=True), ForeignKey("funnel_sessions.id", use_alter=True, name="fk_purchases_funnel_session_id", ondelete="SET NULL"), nullable=True, index=True)
    funnel_step_id = Column(UUID(as_uuid=True), ForeignKey("funnel_steps.id", ondelete="SET NULL"), nullable=True)
    purchased_at = Column(Integer, default=_epoch_seconds, nullable=False)

    # At most one purchase per funnel step per session
    __table_args__ = (
        UniqueConstraint("funnel_session_id", "funnel_step_id", name="uq_purchases_session_step"),
    )
