from app.schemas.product import Product
from app.schemas.purchase import Purchase, OrderBump, OrderBumpCreate
from app.schemas.funnel import Funnel, FunnelCreate, FunnelUpdate, FunnelStep, FunnelStepCreate, FunnelStepUpdate
from app.schemas.funnel_session import FunnelSession, NextStepResponse, RespondResponse, CompleteStepResponse

__all__ = [
    "Product",
    "Purchase", "OrderBump", "OrderBumpCreate",
    "Funnel", "FunnelCreate", "FunnelUpdate", "FunnelStep", "FunnelStepCreate", "FunnelStepUpdate",
    "FunnelSession", "NextStepResponse", "RespondResponse", "CompleteStepResponse",
]
