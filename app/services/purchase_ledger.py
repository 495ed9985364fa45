"""
Append-only purchase ledger and the download log hanging off it.

Purchase writes only flush; the caller owns the transaction so that a
purchase and the session changes it belongs to are committed together.
Download events are standalone and commit immediately.
"""
from sqlalchemy.orm import Session
from typing import List, Optional
import uuid

from app.core.exceptions import InvalidArgument
from app.models.download import Download
from app.models.purchase import Purchase


def create_purchase(
    db: Session,
    user_id: uuid.UUID,
    product_id: uuid.UUID,
    amount_cents: int,
    charge_id: Optional[str] = None,
    parent_purchase_id: Optional[uuid.UUID] = None,
    funnel_session_id: Optional[uuid.UUID] = None,
    funnel_step_id: Optional[uuid.UUID] = None,
) -> Purchase:
    """
    Record a purchase.

    Raises InvalidArgument for a negative amount, a half-specified funnel
    reference, or a parent purchase that is itself a dependent purchase.
    IntegrityError from the unique constraints (charge id, session+step)
    propagates to the caller on flush.
    """
    if amount_cents < 0:
        raise InvalidArgument("Purchase amount cannot be negative")

    if (funnel_session_id is None) != (funnel_step_id is None):
        raise InvalidArgument("Funnel purchases need both a session and a step")

    if parent_purchase_id is not None:
        parent = db.query(Purchase).filter(Purchase.id == parent_purchase_id).first()
        if not parent:
            raise InvalidArgument("Parent purchase not found")
        if parent.parent_purchase_id is not None:
            raise InvalidArgument("A dependent purchase cannot have children")

    purchase = Purchase(
        user_id=user_id,
        product_id=product_id,
        amount=amount_cents,
        stripe_payment_id=charge_id,
        parent_purchase_id=parent_purchase_id,
        funnel_session_id=funnel_session_id,
        funnel_step_id=funnel_step_id,
    )
    db.add(purchase)
    db.flush()
    return purchase


def get_purchase(db: Session, purchase_id: uuid.UUID) -> Optional[Purchase]:
    return db.query(Purchase).filter(Purchase.id == purchase_id).first()


def find_purchase_by_charge(db: Session, charge_id: str) -> Optional[Purchase]:
    if not charge_id:
        return None
    return db.query(Purchase).filter(Purchase.stripe_payment_id == charge_id).first()


def find_purchase_for_step(db: Session, session_id: uuid.UUID, step_id: uuid.UUID) -> Optional[Purchase]:
    return db.query(Purchase).filter(
        Purchase.funnel_session_id == session_id,
        Purchase.funnel_step_id == step_id,
    ).first()


def list_purchases_for_session(db: Session, session_id: uuid.UUID) -> List[Purchase]:
    return db.query(Purchase).filter(
        Purchase.funnel_session_id == session_id
    ).order_by(Purchase.purchased_at).all()


def list_child_purchases(db: Session, purchase_id: uuid.UUID) -> List[Purchase]:
    """Order bump purchases hanging off a parent purchase"""
    return db.query(Purchase).filter(Purchase.parent_purchase_id == purchase_id).all()


def list_user_purchases(db: Session, user_id: uuid.UUID) -> List[Purchase]:
    return db.query(Purchase).filter(
        Purchase.user_id == user_id
    ).order_by(Purchase.purchased_at.desc()).all()


def record_download(db: Session, purchase: Purchase) -> Download:
    """Log one fetch of the asset a purchase licenses"""
    download = Download(purchase_id=purchase.id)
    db.add(download)
    db.commit()
    db.refresh(download)
    return download


def list_downloads(db: Session, purchase_id: uuid.UUID) -> List[Download]:
    return db.query(Download).filter(
        Download.purchase_id == purchase_id
    ).order_by(Download.downloaded_at.desc()).all()
