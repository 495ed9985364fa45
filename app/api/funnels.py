"""
Funnel definitions API
Admin CRUD for funnels and their offer steps.
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy import desc
from typing import List, Optional
from datetime import datetime
from uuid import UUID

from app.db.session import get_db
from app.api.deps import require_admin
from app.models.user import User
from app.models.funnel import Funnel, FunnelStep
from app.models.product import Product
from app.services import funnel_definitions
from app.schemas.funnel import (
    Funnel as FunnelSchema,
    FunnelCreate,
    FunnelUpdate,
    FunnelWithSteps,
    FunnelStep as FunnelStepSchema,
    FunnelStepCreate,
    FunnelStepUpdate,
)

router = APIRouter()


def _require_product(db: Session, product_id: Optional[UUID]) -> None:
    if product_id is None:
        return
    if not db.query(Product).filter(Product.id == product_id).first():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Product not found"
        )


def _get_funnel_or_404(db: Session, funnel_id: UUID) -> Funnel:
    funnel = db.query(Funnel).filter(Funnel.id == funnel_id).first()
    if not funnel:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Funnel not found"
        )
    return funnel


# Funnel CRUD
@router.get("", response_model=List[FunnelSchema])
def list_funnels(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """List all funnels"""
    return db.query(Funnel).order_by(desc(Funnel.created_at)).all()


@router.post("", response_model=FunnelSchema, status_code=status.HTTP_201_CREATED)
def create_funnel(
    funnel_data: FunnelCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Create a new funnel"""
    _require_product(db, funnel_data.entry_product_id)

    funnel = Funnel(**funnel_data.model_dump())
    db.add(funnel)
    db.commit()
    db.refresh(funnel)
    return funnel


@router.get("/{funnel_id}", response_model=FunnelWithSteps)
def get_funnel(
    funnel_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Get funnel details with all steps (active and inactive), in priority order"""
    funnel = _get_funnel_or_404(db, funnel_id)
    steps = funnel_definitions.list_all_steps(db, funnel_id)

    funnel_dict = {
        **FunnelSchema.model_validate(funnel, from_attributes=True).model_dump(),
        "steps": [FunnelStepSchema.model_validate(step, from_attributes=True) for step in steps]
    }

    return FunnelWithSteps(**funnel_dict)


@router.patch("/{funnel_id}", response_model=FunnelSchema)
def update_funnel(
    funnel_id: UUID,
    funnel_update: FunnelUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Update a funnel"""
    funnel = _get_funnel_or_404(db, funnel_id)

    update_data = funnel_update.model_dump(exclude_unset=True)
    if update_data.get('entry_product_id'):
        _require_product(db, update_data['entry_product_id'])

    for field, value in update_data.items():
        setattr(funnel, field, value)

    funnel.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(funnel)
    return funnel


@router.delete("/{funnel_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_funnel(
    funnel_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Delete a funnel. Steps and sessions go with it; purchases are kept and lose their funnel links."""
    funnel = _get_funnel_or_404(db, funnel_id)
    db.delete(funnel)
    db.commit()
    return None


# Funnel Steps CRUD
@router.post("/{funnel_id}/steps", response_model=FunnelStepSchema, status_code=status.HTTP_201_CREATED)
def create_funnel_step(
    funnel_id: UUID,
    step_data: FunnelStepCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Add an offer step to a funnel"""
    _get_funnel_or_404(db, funnel_id)
    _require_product(db, step_data.offer_product_id)

    step_dict = step_data.model_dump()
    step_dict['funnel_id'] = funnel_id

    step = FunnelStep(**step_dict)
    db.add(step)
    db.commit()
    db.refresh(step)
    return step


@router.patch("/{funnel_id}/steps/{step_id}", response_model=FunnelStepSchema)
def update_funnel_step(
    funnel_id: UUID,
    step_id: UUID,
    step_update: FunnelStepUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Update a funnel step. Changes apply to in-flight sessions on their next call."""
    step = db.query(FunnelStep).filter(
        FunnelStep.id == step_id,
        FunnelStep.funnel_id == funnel_id
    ).first()

    if not step:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Step not found"
        )

    update_data = step_update.model_dump(exclude_unset=True)
    if update_data.get('offer_product_id'):
        _require_product(db, update_data['offer_product_id'])

    for field, value in update_data.items():
        setattr(step, field, value)

    step.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(step)
    return step


@router.delete("/{funnel_id}/steps/{step_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_funnel_step(
    funnel_id: UUID,
    step_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Delete a funnel step"""
    step = db.query(FunnelStep).filter(
        FunnelStep.id == step_id,
        FunnelStep.funnel_id == funnel_id
    ).first()

    if not step:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Step not found"
        )

    db.delete(step)
    db.commit()
    return None
