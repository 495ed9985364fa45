from pydantic import BaseModel, Field
from typing import Optional
from uuid import UUID

from app.schemas.product import Product


class Purchase(BaseModel):
    id: UUID
    user_id: UUID
    product_id: UUID
    amount: int  # Cents
    stripe_payment_id: Optional[str] = None
    parent_purchase_id: Optional[UUID] = None
    funnel_session_id: Optional[UUID] = None
    funnel_step_id: Optional[UUID] = None
    purchased_at: int  # Epoch seconds

    class Config:
        from_attributes = True


class PurchaseWithProduct(Purchase):
    product: Optional[Product] = None


# Checkout
class OrderBumpBase(BaseModel):
    product_id: UUID
    bump_product_id: UUID
    bump_price: int = Field(..., ge=1)
    headline: Optional[str] = None
    description: Optional[str] = None
    is_active: bool = True


class OrderBumpCreate(OrderBumpBase):
    pass


class OrderBump(OrderBumpBase):
    id: UUID

    class Config:
        from_attributes = True


class OrderBumpWithProduct(OrderBump):
    bump_product: Product


class CheckoutIntentRequest(BaseModel):
    product_id: UUID
    include_order_bump: bool = False


class CheckoutIntentResponse(BaseModel):
    client_secret: str
    payment_intent_id: str
    product: Product
    amount: int  # Cents, product plus bump when included
    order_bump: Optional[OrderBump] = None


class CheckoutConfirmRequest(BaseModel):
    product_id: UUID
    payment_intent_id: str = Field(..., min_length=1)
    include_order_bump: bool = False


class CheckoutConfirmResponse(BaseModel):
    purchase: Purchase
    order_bump_purchase: Optional[Purchase] = None


class Download(BaseModel):
    id: UUID
    purchase_id: UUID
    downloaded_at: int  # Epoch seconds

    class Config:
        from_attributes = True
