"""
Post-purchase funnel API.

The buyer's client walks a session step by step: fetch the next offer,
accept or decline it, and for paid accepts report back once the payment
intent has been confirmed.
"""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from uuid import UUID

from app.db.session import get_db
from app.api.deps import get_current_user, get_payment_gateway
from app.core.config import settings
from app.core.rate_limit import rate_limit
from app.models.user import User
from app.services import funnel_engine
from app.services.funnel_engine import FunnelStepResult
from app.services.payment_gateway import PaymentGateway
from app.schemas.funnel import FunnelStep as FunnelStepSchema
from app.schemas.product import Product as ProductSchema
from app.schemas.purchase import Purchase as PurchaseSchema
from app.schemas.funnel_session import (
    FunnelSession as FunnelSessionSchema,
    StartSessionRequest,
    StartSessionResponse,
    NextStepResponse,
    RespondRequest,
    RespondResponse,
    CompleteStepRequest,
    CompleteStepResponse,
)

router = APIRouter()


def _step_fields(result: FunnelStepResult) -> dict:
    return {
        "step": FunnelStepSchema.model_validate(result.step) if result.step else None,
        "product": ProductSchema.model_validate(result.product) if result.product else None,
        "price": result.price,
        "is_last_step": result.is_last_step,
        "completed": result.completed,
    }


@router.post("/start", response_model=StartSessionResponse)
def start_funnel_session(
    body: StartSessionRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Start (or resume) the funnel attached to a purchased product"""
    session = funnel_engine.start_session(db, current_user.id, body.purchase_id, body.product_id)
    if session is None:
        return StartSessionResponse(session=None)
    return StartSessionResponse(session=FunnelSessionSchema.model_validate(session))


@router.get("/session/{session_id}", response_model=FunnelSessionSchema)
def get_funnel_session(
    session_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return funnel_engine.get_session(db, session_id, current_user.id)


@router.get("/session/{session_id}/next", response_model=NextStepResponse)
def get_next_step(
    session_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    result = funnel_engine.get_next_step(db, session_id, current_user.id)
    return NextStepResponse(**_step_fields(result))


@router.post("/session/{session_id}/respond", response_model=RespondResponse)
@rate_limit(max_requests=settings.FUNNEL_RESPOND_RATE_LIMIT, window_seconds=settings.FUNNEL_RESPOND_RATE_WINDOW_SECONDS)
def respond_to_step(
    request: Request,
    session_id: UUID,
    body: RespondRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    gateway: PaymentGateway = Depends(get_payment_gateway)
):
    """
    Accept or decline the current offer.

    Paid accepts return client_secret/payment_intent_id and leave the session
    where it is; the client confirms the payment and calls complete-step.
    """
    result = funnel_engine.respond_to_step(
        db, gateway, session_id, current_user.id, body.step_id, body.accepted
    )
    return RespondResponse(
        **_step_fields(result),
        client_secret=result.charge_intent.client_secret if result.charge_intent else None,
        payment_intent_id=result.charge_intent.charge_id if result.charge_intent else None,
        purchase=PurchaseSchema.model_validate(result.purchase) if result.purchase else None,
        session=FunnelSessionSchema.model_validate(result.session),
    )


@router.post("/session/{session_id}/complete-step", response_model=CompleteStepResponse)
@rate_limit(max_requests=settings.FUNNEL_RESPOND_RATE_LIMIT, window_seconds=settings.FUNNEL_RESPOND_RATE_WINDOW_SECONDS)
def complete_step(
    request: Request,
    session_id: UUID,
    body: CompleteStepRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    gateway: PaymentGateway = Depends(get_payment_gateway)
):
    """Record a paid offer after the payment intent succeeded. Safe to retry."""
    result = funnel_engine.complete_step(
        db, gateway, session_id, current_user.id, body.step_id, body.payment_intent_id
    )
    return CompleteStepResponse(
        **_step_fields(result),
        purchase=PurchaseSchema.model_validate(result.purchase),
        session=FunnelSessionSchema.model_validate(result.session),
    )
