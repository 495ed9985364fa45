"""
Funnel session state machine.

Drives a buyer through the post-purchase offers of a funnel:

    start_session -> (get_next_step -> respond_to_step [-> complete_step])* -> completed

The step sequence is re-read from the funnel definitions on every call.
Cursor advancement is a conditional UPDATE on the expected
current_step_index, so two racing responses can never both advance the same
step; the loser gets ConcurrentUpdate. Purchases are deduplicated by charge
id and by (session, step), both backed by unique constraints.
"""
import logging
import time
import uuid
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.audit import log_security_event
from app.core.config import settings
from app.core.exceptions import (
    AccessDenied,
    ConcurrentUpdate,
    InvalidArgument,
    NotFound,
    PaymentNotConfirmed,
)
from app.models.audit_log import AuditEventType
from app.models.funnel import Funnel, FunnelStep
from app.models.funnel_session import FunnelSession, FunnelSessionStatus
from app.models.product import Product
from app.models.purchase import Purchase
from app.services import funnel_definitions, purchase_ledger
from app.services.payment_gateway import ChargeIntent, PaymentGateway

logger = logging.getLogger(__name__)


@dataclass
class FunnelStepResult:
    """
    Outcome of a session operation.

    completed=True with step=None is the terminal shape. A paid accept sets
    charge_intent and leaves step/product/price on the offer being paid for.
    """
    session: FunnelSession
    step: Optional[FunnelStep] = None
    product: Optional[Product] = None
    price: Optional[int] = None
    is_last_step: bool = True
    completed: bool = False
    charge_intent: Optional[ChargeIntent] = None
    purchase: Optional[Purchase] = None


def _now() -> int:
    return int(time.time())


def _terminal(session: FunnelSession, purchase: Optional[Purchase] = None) -> FunnelStepResult:
    return FunnelStepResult(session=session, completed=True, is_last_step=True, purchase=purchase)


def _get_offer_product(db: Session, step: FunnelStep) -> Product:
    product = db.query(Product).filter(Product.id == step.offer_product_id).first()
    if not product:
        raise NotFound("Offer product not found")
    return product


def _step_at(db: Session, session: FunnelSession, sequence: List[FunnelStep], index: int) -> FunnelStepResult:
    step = sequence[index]
    product = _get_offer_product(db, step)
    return FunnelStepResult(
        session=session,
        step=step,
        product=product,
        price=funnel_definitions.effective_price(step, product),
        is_last_step=index == len(sequence) - 1,
        completed=False,
    )


def _load_owned_session(db: Session, session_id: uuid.UUID, user_id: uuid.UUID) -> FunnelSession:
    session = db.query(FunnelSession).filter(FunnelSession.id == session_id).first()
    if not session:
        raise NotFound("Funnel session not found")
    if session.user_id != user_id:
        logger.warning(f"[FUNNEL] User {user_id} tried to access session {session_id} owned by {session.user_id}")
        log_security_event(
            db=db,
            event_type=AuditEventType.UNAUTHORIZED_ACCESS,
            user_id=user_id,
            resource_type="funnel_session",
            resource_id=str(session_id),
        )
        raise AccessDenied("You do not have access to this funnel session")
    return session


def _find_in_sequence(sequence: List[FunnelStep], step_id: uuid.UUID) -> int:
    for index, step in enumerate(sequence):
        if step.id == step_id:
            return index
    raise NotFound("Step not found in this funnel")


def _require_current_step(session: FunnelSession, sequence: List[FunnelStep], step_id: uuid.UUID) -> int:
    _find_in_sequence(sequence, step_id)
    index = session.current_step_index
    if index >= len(sequence) or sequence[index].id != step_id:
        raise InvalidArgument("Step is not the current step of this funnel session")
    return index


def _mark_completed(db: Session, session: FunnelSession) -> None:
    """Close an active session whose cursor already ran past the last step"""
    rows = db.query(FunnelSession).filter(
        FunnelSession.id == session.id,
        FunnelSession.status == FunnelSessionStatus.ACTIVE,
    ).update(
        {"status": FunnelSessionStatus.COMPLETED, "completed_at": _now()},
        synchronize_session=False,
    )
    db.commit()
    db.refresh(session)
    if rows:
        logger.info(f"[FUNNEL] Session {session.id} completed")


def _advance(
    db: Session,
    session: FunnelSession,
    expected_index: int,
    sequence_length: int,
    accepted_step_id: Optional[uuid.UUID] = None,
    declined_step_id: Optional[uuid.UUID] = None,
    revenue: int = 0,
) -> bool:
    """
    Move the cursor from expected_index to expected_index + 1 in the current
    transaction. Returns True when the session reached its end.

    Raises ConcurrentUpdate (after rolling back) if another request moved the
    cursor or closed the session since it was read.
    """
    new_index = expected_index + 1
    values = {
        "current_step_index": new_index,
        "total_revenue": FunnelSession.total_revenue + revenue,
    }
    if accepted_step_id is not None:
        values["accepted_steps"] = list(session.accepted_steps or []) + [str(accepted_step_id)]
    if declined_step_id is not None:
        values["declined_steps"] = list(session.declined_steps or []) + [str(declined_step_id)]

    completed = new_index >= sequence_length
    if completed:
        values["status"] = FunnelSessionStatus.COMPLETED
        values["completed_at"] = _now()

    rows = db.query(FunnelSession).filter(
        FunnelSession.id == session.id,
        FunnelSession.current_step_index == expected_index,
        FunnelSession.status == FunnelSessionStatus.ACTIVE,
    ).update(values, synchronize_session=False)

    if rows != 1:
        db.rollback()
        logger.warning(f"[FUNNEL] Session {session.id} moved past step index {expected_index} concurrently")
        raise ConcurrentUpdate("This offer was already answered; reload the next step")
    return completed


def _after_advance(db: Session, session: FunnelSession, purchase: Optional[Purchase] = None) -> FunnelStepResult:
    """Result for the step the cursor now points at (or the terminal shape)"""
    db.refresh(session)
    if session.is_terminal:
        return _terminal(session, purchase=purchase)
    sequence = funnel_definitions.list_active_steps_sorted_by_priority(db, session.funnel_id)
    if session.current_step_index >= len(sequence):
        # Steps were deactivated since the cursor was checked
        _mark_completed(db, session)
        return _terminal(session, purchase=purchase)
    result = _step_at(db, session, sequence, session.current_step_index)
    result.purchase = purchase
    return result


def _find_session(db: Session, entry_purchase_id: uuid.UUID, funnel_id: uuid.UUID) -> Optional[FunnelSession]:
    return db.query(FunnelSession).filter(
        FunnelSession.entry_purchase_id == entry_purchase_id,
        FunnelSession.funnel_id == funnel_id,
    ).first()


def start_session(
    db: Session,
    user_id: uuid.UUID,
    entry_purchase_id: uuid.UUID,
    product_id: uuid.UUID,
) -> Optional[FunnelSession]:
    """
    Open a funnel session for a completed purchase.

    Returns None when the product has no active funnel with active steps.
    Starting twice for the same purchase returns the existing session.
    """
    purchase = purchase_ledger.get_purchase(db, entry_purchase_id)
    if not purchase:
        raise NotFound("Purchase not found")
    if purchase.user_id != user_id:
        raise AccessDenied("You do not have access to this purchase")
    if purchase.product_id != product_id:
        raise InvalidArgument("Purchase is not for this product")

    funnel: Optional[Funnel] = funnel_definitions.get_funnel_by_entry_product(db, product_id)
    if not funnel or not funnel.is_active:
        return None

    steps = funnel_definitions.list_active_steps_sorted_by_priority(db, funnel.id)
    if not steps:
        return None

    existing = _find_session(db, entry_purchase_id, funnel.id)
    if existing:
        return existing

    session = FunnelSession(
        user_id=user_id,
        funnel_id=funnel.id,
        entry_purchase_id=entry_purchase_id,
        current_step_index=0,
        status=FunnelSessionStatus.ACTIVE,
        accepted_steps=[],
        declined_steps=[],
        total_revenue=0,
    )
    db.add(session)
    try:
        db.commit()
    except IntegrityError:
        # Concurrent start for the same purchase
        db.rollback()
        existing = _find_session(db, entry_purchase_id, funnel.id)
        if existing:
            return existing
        raise
    db.refresh(session)
    logger.info(f"[FUNNEL] Started session {session.id} on funnel {funnel.id} for purchase {entry_purchase_id}")
    return session


def get_session(db: Session, session_id: uuid.UUID, user_id: uuid.UUID) -> FunnelSession:
    return _load_owned_session(db, session_id, user_id)


def get_next_step(db: Session, session_id: uuid.UUID, user_id: uuid.UUID) -> FunnelStepResult:
    session = _load_owned_session(db, session_id, user_id)
    if session.is_terminal:
        return _terminal(session)

    sequence = funnel_definitions.list_active_steps_sorted_by_priority(db, session.funnel_id)
    if session.current_step_index >= len(sequence):
        _mark_completed(db, session)
        return _terminal(session)

    return _step_at(db, session, sequence, session.current_step_index)


def respond_to_step(
    db: Session,
    gateway: PaymentGateway,
    session_id: uuid.UUID,
    user_id: uuid.UUID,
    step_id: uuid.UUID,
    accepted: bool,
) -> FunnelStepResult:
    """
    Record an accept/decline for the current step.

    Paid accepts only mint a charge intent; nothing is stored until
    complete_step sees the charge succeed.
    """
    session = _load_owned_session(db, session_id, user_id)
    if session.is_terminal:
        return _terminal(session)

    sequence = funnel_definitions.list_active_steps_sorted_by_priority(db, session.funnel_id)
    _find_in_sequence(sequence, step_id)
    if session.current_step_index >= len(sequence):
        _mark_completed(db, session)
        return _terminal(session)
    index = _require_current_step(session, sequence, step_id)

    step = sequence[index]
    product = _get_offer_product(db, step)
    price = funnel_definitions.effective_price(step, product)

    if not accepted:
        _advance(db, session, index, len(sequence), declined_step_id=step.id)
        db.commit()
        logger.info(f"[FUNNEL] Session {session.id} declined step {step.id}")
        return _after_advance(db, session)

    if price <= 0:
        try:
            purchase = purchase_ledger.create_purchase(
                db,
                user_id=user_id,
                product_id=product.id,
                amount_cents=0,
                parent_purchase_id=session.entry_purchase_id,
                funnel_session_id=session.id,
                funnel_step_id=step.id,
            )
        except IntegrityError:
            db.rollback()
            raise ConcurrentUpdate("This offer was already answered; reload the next step")
        _advance(db, session, index, len(sequence), accepted_step_id=step.id, revenue=0)
        db.commit()
        db.refresh(purchase)
        logger.info(f"[FUNNEL] Session {session.id} accepted free step {step.id} (purchase {purchase.id})")
        return _after_advance(db, session, purchase=purchase)

    intent = gateway.create_charge_intent(
        amount_cents=price,
        currency=settings.CURRENCY,
        metadata={
            "productId": str(product.id),
            "userId": str(user_id),
            "funnelSessionId": str(session.id),
            "funnelStepId": str(step.id),
        },
    )
    logger.info(f"[FUNNEL] Session {session.id} accepted step {step.id}; awaiting payment {intent.charge_id} ({price} cents)")
    return FunnelStepResult(
        session=session,
        step=step,
        product=product,
        price=price,
        is_last_step=index == len(sequence) - 1,
        completed=False,
        charge_intent=intent,
    )


def _replay(db: Session, session: FunnelSession, purchase: Purchase) -> FunnelStepResult:
    """Current state for a complete_step that was already processed; never mutates"""
    db.refresh(session)
    if session.is_terminal:
        return _terminal(session, purchase=purchase)
    sequence = funnel_definitions.list_active_steps_sorted_by_priority(db, session.funnel_id)
    if session.current_step_index >= len(sequence):
        return _terminal(session, purchase=purchase)
    result = _step_at(db, session, sequence, session.current_step_index)
    result.purchase = purchase
    return result


def _existing_step_purchase(
    db: Session,
    session: FunnelSession,
    step_id: uuid.UUID,
    charge_id: str,
) -> Optional[Purchase]:
    existing = purchase_ledger.find_purchase_by_charge(db, charge_id)
    if existing:
        if existing.funnel_session_id != session.id or existing.funnel_step_id != step_id:
            raise InvalidArgument("This payment is already attached to another purchase")
        return existing

    existing = purchase_ledger.find_purchase_for_step(db, session.id, step_id)
    if existing:
        logger.warning(
            f"[FUNNEL] Session {session.id} step {step_id} already purchased with "
            f"{existing.stripe_payment_id}; ignoring second payment {charge_id}"
        )
    return existing


def complete_step(
    db: Session,
    gateway: PaymentGateway,
    session_id: uuid.UUID,
    user_id: uuid.UUID,
    step_id: uuid.UUID,
    charge_id: str,
) -> FunnelStepResult:
    """
    Record a paid accept once the client has confirmed the charge.

    Retries with the same charge (or for a step that is already purchased)
    return the original purchase without creating another.
    """
    session = _load_owned_session(db, session_id, user_id)

    existing = _existing_step_purchase(db, session, step_id, charge_id)
    if existing:
        return _replay(db, session, existing)

    if session.is_terminal:
        raise InvalidArgument("Funnel session is no longer active")

    sequence = funnel_definitions.list_active_steps_sorted_by_priority(db, session.funnel_id)
    index = _require_current_step(session, sequence, step_id)
    step = sequence[index]
    product = _get_offer_product(db, step)
    price = funnel_definitions.effective_price(step, product)
    if price <= 0:
        raise InvalidArgument("Free offers are accepted without payment")

    charge = gateway.retrieve_charge(charge_id)
    # Only intents minted by respond_to_step for this user, session and step can pay for it
    if (
        charge.metadata.get("funnelSessionId") != str(session.id)
        or charge.metadata.get("funnelStepId") != str(step_id)
        or charge.metadata.get("userId") != str(user_id)
    ):
        logger.warning(f"[FUNNEL] Payment {charge_id} is not tagged for session {session.id} step {step_id}")
        raise InvalidArgument("Payment was made for a different offer")

    if not charge.succeeded:
        logger.warning(f"[FUNNEL] Payment {charge_id} for session {session.id} is {charge.status}, not succeeded")
        log_security_event(
            db=db,
            event_type=AuditEventType.PAYMENT_NOT_CONFIRMED,
            user_id=user_id,
            resource_type="funnel_session",
            resource_id=str(session.id),
            details={"payment_intent_id": charge_id, "status": charge.status, "step_id": str(step_id)},
        )
        raise PaymentNotConfirmed("Payment has not succeeded")

    if charge.amount_cents < price:
        raise PaymentNotConfirmed("Payment does not cover the offer price")

    try:
        purchase = purchase_ledger.create_purchase(
            db,
            user_id=user_id,
            product_id=product.id,
            amount_cents=price,
            charge_id=charge_id,
            funnel_session_id=session.id,
            funnel_step_id=step.id,
        )
        _advance(db, session, index, len(sequence), accepted_step_id=step.id, revenue=price)
        db.commit()
    except (IntegrityError, ConcurrentUpdate):
        db.rollback()
        # A concurrent request with the same charge or step won the race
        existing = _existing_step_purchase(db, session, step_id, charge_id)
        if existing:
            return _replay(db, session, existing)
        raise ConcurrentUpdate("This offer was already answered; reload the next step")

    db.refresh(purchase)
    logger.info(f"[FUNNEL] Session {session.id} purchased step {step.id} for {price} cents (purchase {purchase.id})")
    return _after_advance(db, session, purchase=purchase)
