"""
Admin API endpoints: funnel analytics and order bump offers.
Only accessible to store admins.
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List
from uuid import UUID

from app.db.session import get_db
from app.api.deps import require_admin
from app.models.user import User
from app.models.funnel import Funnel
from app.models.order_bump import OrderBump
from app.models.product import Product
from app.services import funnel_analytics
from app.services.funnel_analytics import FunnelTotals
from app.schemas.funnel import (
    Funnel as FunnelSchema,
    FunnelStep as FunnelStepSchema,
    FunnelAnalytics,
    DetailedFunnelAnalytics,
    StepAnalytics,
)
from app.schemas.purchase import OrderBump as OrderBumpSchema, OrderBumpCreate

router = APIRouter()


def _totals_fields(totals: FunnelTotals) -> dict:
    return {
        "funnel": FunnelSchema.model_validate(totals.funnel, from_attributes=True),
        "entry_product_id": totals.funnel.entry_product_id,
        "total_sessions": totals.total_sessions,
        "completed_sessions": totals.completed_sessions,
        "active_sessions": totals.active_sessions,
        "abandoned_sessions": totals.abandoned_sessions,
        "completion_rate": totals.completion_rate,
        "total_revenue": totals.total_revenue,
        "avg_order_value": totals.avg_order_value,
    }


# Funnel analytics
@router.get("/analytics/funnels", response_model=List[FunnelAnalytics])
def list_funnel_analytics(
    db: Session = Depends(get_db),
    admin_user: User = Depends(require_admin)
):
    """Per-funnel sessions, completion rate, revenue and average order value"""
    return [FunnelAnalytics(**_totals_fields(t)) for t in funnel_analytics.list_funnel_analytics(db)]


@router.get("/analytics/funnels/{funnel_id}", response_model=DetailedFunnelAnalytics)
def get_funnel_analytics(
    funnel_id: UUID,
    db: Session = Depends(get_db),
    admin_user: User = Depends(require_admin)
):
    """Funnel totals plus acceptance rate of every step"""
    funnel = db.query(Funnel).filter(Funnel.id == funnel_id).first()
    if not funnel:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Funnel not found"
        )

    report = funnel_analytics.get_funnel_report(db, funnel)
    return DetailedFunnelAnalytics(
        **_totals_fields(report),
        step_analytics=[
            StepAnalytics(
                step=FunnelStepSchema.model_validate(s.step, from_attributes=True),
                accepted_count=s.accepted_count,
                declined_count=s.declined_count,
                acceptance_rate=s.acceptance_rate,
            )
            for s in report.steps
        ],
    )


# Order bumps
@router.get("/order-bumps", response_model=List[OrderBumpSchema])
def list_order_bumps(
    db: Session = Depends(get_db),
    admin_user: User = Depends(require_admin)
):
    return db.query(OrderBump).order_by(OrderBump.created_at.desc()).all()


@router.post("/order-bumps", response_model=OrderBumpSchema, status_code=status.HTTP_201_CREATED)
def create_order_bump(
    bump_data: OrderBumpCreate,
    db: Session = Depends(get_db),
    admin_user: User = Depends(require_admin)
):
    """Offer bump_product at checkout of product_id for bump_price"""
    if bump_data.product_id == bump_data.bump_product_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A product cannot be its own order bump"
        )
    for product_id in (bump_data.product_id, bump_data.bump_product_id):
        if not db.query(Product).filter(Product.id == product_id).first():
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Product not found"
            )

    bump = OrderBump(**bump_data.model_dump())
    db.add(bump)
    db.commit()
    db.refresh(bump)
    return bump


@router.delete("/order-bumps/{bump_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_order_bump(
    bump_id: UUID,
    db: Session = Depends(get_db),
    admin_user: User = Depends(require_admin)
):
    bump = db.query(OrderBump).filter(OrderBump.id == bump_id).first()
    if not bump:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Order bump not found"
        )
    db.delete(bump)
    db.commit()
    return None
