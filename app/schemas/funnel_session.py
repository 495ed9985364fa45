from pydantic import BaseModel, Field
from typing import List, Optional
from uuid import UUID

from app.schemas.funnel import FunnelStep
from app.schemas.product import Product
from app.schemas.purchase import Purchase


class FunnelSession(BaseModel):
    id: UUID
    user_id: UUID
    funnel_id: UUID
    entry_purchase_id: UUID
    current_step_index: int
    status: str
    accepted_steps: List[str] = []
    declined_steps: List[str] = []
    total_revenue: int = 0
    created_at: int
    completed_at: Optional[int] = None

    class Config:
        from_attributes = True


class StartSessionRequest(BaseModel):
    purchase_id: UUID
    product_id: UUID


class StartSessionResponse(BaseModel):
    # session is None when the product has no active funnel configured
    session: Optional[FunnelSession] = None


class NextStepResponse(BaseModel):
    step: Optional[FunnelStep] = None
    product: Optional[Product] = None
    price: Optional[int] = None  # Effective price in cents
    is_last_step: bool = True
    completed: bool = False


class RespondRequest(BaseModel):
    step_id: UUID
    accepted: bool


class RespondResponse(NextStepResponse):
    # Paid accept: the client confirms this intent, then calls complete-step
    client_secret: Optional[str] = None
    payment_intent_id: Optional[str] = None
    purchase: Optional[Purchase] = None
    session: FunnelSession


class CompleteStepRequest(BaseModel):
    step_id: UUID
    payment_intent_id: str = Field(..., min_length=1)


class CompleteStepResponse(NextStepResponse):
    purchase: Purchase
    session: FunnelSession
