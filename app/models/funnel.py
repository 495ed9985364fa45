from sqlalchemy import Column, String, DateTime, ForeignKey, Integer, Boolean, Text, Enum as SQLEnum
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
import uuid
import enum
from datetime import datetime
from app.db.session import Base


class StepType(str, enum.Enum):
    UPSELL = "upsell"
    DOWNSELL = "downsell"
    ONE_TIME_OFFER = "one_time_offer"
    ORDER_BUMP = "order_bump"


# Copy shown when a step leaves cta_text / decline_text empty
STEP_TYPE_DEFAULTS = {
    StepType.UPSELL: {
        "cta_text": "Yes, upgrade my order",
        "decline_text": "No thanks, I'll pass on this upgrade",
    },
    StepType.DOWNSELL: {
        "cta_text": "Yes, I'll take this deal",
        "decline_text": "No thanks",
    },
    StepType.ONE_TIME_OFFER: {
        "cta_text": "Claim this one-time offer",
        "decline_text": "No thanks, I understand I won't see this again",
    },
    StepType.ORDER_BUMP: {
        "cta_text": "Add to my order",
        "decline_text": "Skip",
    },
}


class Funnel(Base):
    __tablename__ = "funnels"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    entry_product_id = Column(UUID(as_uuid=True), ForeignKey("products.id"), nullable=True, index=True)  # Purchase of this product starts the funnel
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    steps = relationship("FunnelStep", back_populates="funnel", cascade="all, delete-orphan", passive_deletes=True)


class FunnelStep(Base):
    __tablename__ = "funnel_steps"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    funnel_id = Column(UUID(as_uuid=True), ForeignKey("funnels.id", ondelete="CASCADE"), nullable=False, index=True)
    step_type = Column(SQLEnum(StepType, values_callable=lambda e: [m.value for m in e]), nullable=False)
    offer_product_id = Column(UUID(as_uuid=True), ForeignKey("products.id"), nullable=False)
    priority = Column(Integer, nullable=False, default=0)  # Lower runs earlier
    price_override = Column(Integer, nullable=True)  # Cents; supersedes the catalog price for this step
    headline = Column(String, nullable=True)
    subheadline = Column(String, nullable=True)
    cta_text = Column(String, nullable=True)
    decline_text = Column(String, nullable=True)
    timer_seconds = Column(Integer, nullable=True)  # Client-side countdown only
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    funnel = relationship("Funnel", back_populates="steps")

    @property
    def resolved_cta_text(self) -> str:
        return self.cta_text or STEP_TYPE_DEFAULTS[StepType(self.step_type)]["cta_text"]

    @property
    def resolved_decline_text(self) -> str:
        return self.decline_text or STEP_TYPE_DEFAULTS[StepType(self.step_type)]["decline_text"]
