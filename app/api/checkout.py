"""
Checkout API: payment intent for a product (plus optional order bump) and
confirmation that records the entry purchase.
"""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID

from app.db.session import get_db
from app.api.deps import get_current_user, get_payment_gateway
from app.core.rate_limit import rate_limit
from app.models.product import Product
from app.models.user import User
from app.services import checkout
from app.services.payment_gateway import PaymentGateway
from app.schemas.product import Product as ProductSchema
from app.schemas.purchase import (
    Purchase as PurchaseSchema,
    OrderBump as OrderBumpSchema,
    OrderBumpWithProduct,
    CheckoutIntentRequest,
    CheckoutIntentResponse,
    CheckoutConfirmRequest,
    CheckoutConfirmResponse,
)

router = APIRouter()


@router.get("/order-bump/{product_id}", response_model=Optional[OrderBumpWithProduct])
def get_order_bump(
    product_id: UUID,
    db: Session = Depends(get_db)
):
    """Order bump offered with product_id, or null"""
    bump = checkout.get_order_bump(db, product_id)
    if not bump:
        return None
    bump_product = db.query(Product).filter(Product.id == bump.bump_product_id).first()
    if not bump_product:
        return None
    return OrderBumpWithProduct(
        **OrderBumpSchema.model_validate(bump).model_dump(),
        bump_product=ProductSchema.model_validate(bump_product),
    )


@router.post("/payment-intent", response_model=CheckoutIntentResponse)
@rate_limit(max_requests=20, window_seconds=300)
def create_payment_intent(
    request: Request,
    body: CheckoutIntentRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    gateway: PaymentGateway = Depends(get_payment_gateway)
):
    result = checkout.create_checkout_intent(
        db, gateway, current_user.id, body.product_id, body.include_order_bump
    )
    return CheckoutIntentResponse(
        client_secret=result.intent.client_secret,
        payment_intent_id=result.intent.charge_id,
        product=ProductSchema.model_validate(result.product),
        amount=result.amount,
        order_bump=OrderBumpSchema.model_validate(result.order_bump) if result.order_bump else None,
    )


@router.post("/confirm", response_model=CheckoutConfirmResponse)
def confirm_purchase(
    body: CheckoutConfirmRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    gateway: PaymentGateway = Depends(get_payment_gateway)
):
    """Record the purchase once the payment intent succeeded. Safe to retry."""
    result = checkout.confirm_checkout(
        db, gateway, current_user.id, body.product_id, body.payment_intent_id, body.include_order_bump
    )
    return CheckoutConfirmResponse(
        purchase=PurchaseSchema.model_validate(result.purchase),
        order_bump_purchase=(
            PurchaseSchema.model_validate(result.order_bump_purchase) if result.order_bump_purchase else None
        ),
    )
