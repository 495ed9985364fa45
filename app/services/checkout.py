"""
Checkout of a catalog product, optionally with its order bump.

The entry purchase created here is what a funnel session starts from. The
bump is charged in the same payment intent and recorded as a child purchase
of the main one.
"""
import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import InvalidArgument, NotFound, PaymentNotConfirmed
from app.models.order_bump import OrderBump
from app.models.product import Product
from app.models.purchase import Purchase
from app.services import purchase_ledger
from app.services.payment_gateway import ChargeIntent, PaymentGateway

logger = logging.getLogger(__name__)


@dataclass
class CheckoutIntent:
    intent: ChargeIntent
    product: Product
    amount: int
    order_bump: Optional[OrderBump] = None


@dataclass
class CheckoutResult:
    purchase: Purchase
    order_bump_purchase: Optional[Purchase] = None


def _get_product(db: Session, product_id: uuid.UUID) -> Product:
    product = db.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise NotFound("Product not found")
    return product


def get_order_bump(db: Session, product_id: uuid.UUID) -> Optional[OrderBump]:
    """Active order bump offered at checkout of product_id, if any"""
    return db.query(OrderBump).filter(
        OrderBump.product_id == product_id,
        OrderBump.is_active.is_(True),
    ).order_by(OrderBump.created_at.desc()).first()


def create_checkout_intent(
    db: Session,
    gateway: PaymentGateway,
    user_id: uuid.UUID,
    product_id: uuid.UUID,
    include_order_bump: bool = False,
) -> CheckoutIntent:
    product = _get_product(db, product_id)
    bump = get_order_bump(db, product_id) if include_order_bump else None
    if include_order_bump and not bump:
        raise InvalidArgument("This product has no order bump")

    amount = product.price + (bump.bump_price if bump else 0)
    if amount <= 0:
        raise InvalidArgument("Nothing to charge for this product")

    intent = gateway.create_charge_intent(
        amount_cents=amount,
        currency=settings.CURRENCY,
        metadata={
            "productId": str(product.id),
            "userId": str(user_id),
            "orderBumpId": str(bump.id) if bump else None,
        },
    )
    logger.info(f"[CHECKOUT] Intent {intent.charge_id} for product {product.id} ({amount} cents, bump={bool(bump)})")
    return CheckoutIntent(intent=intent, product=product, amount=amount, order_bump=bump)


def _existing_checkout(db: Session, user_id: uuid.UUID, charge_id: str) -> Optional[CheckoutResult]:
    existing = purchase_ledger.find_purchase_by_charge(db, charge_id)
    if not existing:
        return None
    if existing.user_id != user_id or existing.funnel_session_id is not None:
        raise InvalidArgument("This payment is already attached to another purchase")
    children = purchase_ledger.list_child_purchases(db, existing.id)
    bump_purchase = next((c for c in children if c.funnel_session_id is None), None)
    return CheckoutResult(purchase=existing, order_bump_purchase=bump_purchase)


def confirm_checkout(
    db: Session,
    gateway: PaymentGateway,
    user_id: uuid.UUID,
    product_id: uuid.UUID,
    charge_id: str,
    include_order_bump: bool = False,
) -> CheckoutResult:
    """
    Record the purchase for a confirmed payment. Idempotent by charge id.
    """
    existing = _existing_checkout(db, user_id, charge_id)
    if existing:
        return existing

    product = _get_product(db, product_id)
    bump = get_order_bump(db, product_id) if include_order_bump else None
    if include_order_bump and not bump:
        raise InvalidArgument("This product has no order bump")

    charge = gateway.retrieve_charge(charge_id)
    if not charge.succeeded:
        logger.warning(f"[CHECKOUT] Payment {charge_id} is {charge.status}, not succeeded")
        raise PaymentNotConfirmed("Payment has not succeeded")
    if charge.metadata.get("productId") and charge.metadata["productId"] != str(product.id):
        raise InvalidArgument("Payment was made for a different product")

    expected = product.price + (bump.bump_price if bump else 0)
    if charge.amount_cents < expected:
        raise PaymentNotConfirmed("Payment does not cover the order total")

    try:
        purchase = purchase_ledger.create_purchase(
            db,
            user_id=user_id,
            product_id=product.id,
            amount_cents=product.price,
            charge_id=charge_id,
        )
        bump_purchase = None
        if bump:
            bump_purchase = purchase_ledger.create_purchase(
                db,
                user_id=user_id,
                product_id=bump.bump_product_id,
                amount_cents=bump.bump_price,
                parent_purchase_id=purchase.id,
            )
        db.commit()
    except IntegrityError:
        db.rollback()
        existing = _existing_checkout(db, user_id, charge_id)
        if existing:
            return existing
        raise

    db.refresh(purchase)
    if bump_purchase:
        db.refresh(bump_purchase)
    logger.info(f"[CHECKOUT] Purchase {purchase.id} recorded for payment {charge_id}")
    return CheckoutResult(purchase=purchase, order_bump_purchase=bump_purchase)
