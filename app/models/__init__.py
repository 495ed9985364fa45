from app.models.user import User
from app.models.product import Product
from app.models.funnel import Funnel, FunnelStep, StepType
from app.models.funnel_session import FunnelSession, FunnelSessionStatus
from app.models.purchase import Purchase
from app.models.order_bump import OrderBump
from app.models.download import Download
from app.models.audit_log import AuditLog, AuditEventType

__all__ = [
    "User", "Product", "Funnel", "FunnelStep", "StepType",
    "FunnelSession", "FunnelSessionStatus", "Purchase", "OrderBump", "Download",
    "AuditLog", "AuditEventType",
]
