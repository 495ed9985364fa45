"""
Read side of the funnel definitions the session engine runs on.

Nothing here is cached: every lookup re-reads the current active flags and
priorities, so admin edits are visible to in-flight sessions immediately.
"""
from sqlalchemy.orm import Session
from sqlalchemy import asc
from typing import List, Optional
import uuid

from app.models.funnel import Funnel, FunnelStep
from app.models.product import Product


def get_funnel_by_entry_product(db: Session, product_id: uuid.UUID) -> Optional[Funnel]:
    """
    Funnel triggered by a purchase of product_id.

    Active funnels win over inactive ones when an entry product is (wrongly)
    attached to several funnels.
    """
    return db.query(Funnel).filter(
        Funnel.entry_product_id == product_id
    ).order_by(Funnel.is_active.desc(), asc(Funnel.created_at)).first()


def list_active_steps_sorted_by_priority(db: Session, funnel_id: uuid.UUID) -> List[FunnelStep]:
    """The effective step sequence: active steps, lowest priority first"""
    return db.query(FunnelStep).filter(
        FunnelStep.funnel_id == funnel_id,
        FunnelStep.is_active.is_(True),
    ).order_by(asc(FunnelStep.priority), asc(FunnelStep.created_at), asc(FunnelStep.id)).all()


def list_all_steps(db: Session, funnel_id: uuid.UUID) -> List[FunnelStep]:
    return db.query(FunnelStep).filter(
        FunnelStep.funnel_id == funnel_id
    ).order_by(asc(FunnelStep.priority), asc(FunnelStep.created_at), asc(FunnelStep.id)).all()


def effective_price(step: FunnelStep, product: Product) -> int:
    """Step price in cents: the override when set, else the catalog price"""
    if step.price_override is not None:
        return step.price_override
    return product.price
