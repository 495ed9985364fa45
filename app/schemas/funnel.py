from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from uuid import UUID

from app.models.funnel import StepType


class FunnelStepBase(BaseModel):
    step_type: StepType
    offer_product_id: UUID
    priority: int = Field(0, ge=0)
    price_override: Optional[int] = Field(None, ge=0)
    headline: Optional[str] = None
    subheadline: Optional[str] = None
    cta_text: Optional[str] = None
    decline_text: Optional[str] = None
    timer_seconds: Optional[int] = Field(None, ge=0)
    is_active: bool = True


class FunnelStepCreate(FunnelStepBase):
    pass


class FunnelStepUpdate(BaseModel):
    step_type: Optional[StepType] = None
    offer_product_id: Optional[UUID] = None
    priority: Optional[int] = Field(None, ge=0)
    price_override: Optional[int] = Field(None, ge=0)
    headline: Optional[str] = None
    subheadline: Optional[str] = None
    cta_text: Optional[str] = None
    decline_text: Optional[str] = None
    timer_seconds: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None


class FunnelStep(FunnelStepBase):
    id: UUID
    funnel_id: UUID
    resolved_cta_text: str
    resolved_decline_text: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class FunnelBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    entry_product_id: Optional[UUID] = None
    is_active: bool = True


class FunnelCreate(FunnelBase):
    pass


class FunnelUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    entry_product_id: Optional[UUID] = None
    is_active: Optional[bool] = None


class Funnel(FunnelBase):
    id: UUID
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class FunnelWithSteps(Funnel):
    steps: List[FunnelStep] = []


# Analytics schemas
class StepAnalytics(BaseModel):
    step: FunnelStep
    accepted_count: int
    declined_count: int
    acceptance_rate: float  # Percentage 0-100


class FunnelAnalytics(BaseModel):
    funnel: Funnel
    entry_product_id: Optional[UUID] = None
    total_sessions: int = 0
    completed_sessions: int = 0
    active_sessions: int = 0
    abandoned_sessions: int = 0
    completion_rate: float = 0.0  # Percentage 0-100
    total_revenue: int = 0  # Cents
    avg_order_value: int = 0  # Cents


class DetailedFunnelAnalytics(FunnelAnalytics):
    step_analytics: List[StepAnalytics] = []
