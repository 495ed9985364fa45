from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List
from uuid import UUID

from app.db.session import get_db
from app.api.deps import get_current_user
from app.models.product import Product
from app.models.purchase import Purchase
from app.models.user import User
from app.services import purchase_ledger
from app.schemas.product import Product as ProductSchema
from app.schemas.purchase import Purchase as PurchaseSchema, PurchaseWithProduct, Download as DownloadSchema

router = APIRouter()


def _get_own_purchase(db: Session, purchase_id: UUID, user: User) -> Purchase:
    purchase = purchase_ledger.get_purchase(db, purchase_id)
    # Other users' purchases are reported as missing
    if not purchase or purchase.user_id != user.id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Purchase not found"
        )
    return purchase


@router.get("", response_model=List[PurchaseSchema])
def list_purchases(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Purchases of the current user, newest first"""
    return purchase_ledger.list_user_purchases(db, current_user.id)


@router.get("/{purchase_id}", response_model=PurchaseWithProduct)
def get_purchase(
    purchase_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    purchase = _get_own_purchase(db, purchase_id, current_user)

    product = db.query(Product).filter(Product.id == purchase.product_id).first()
    return PurchaseWithProduct(
        **PurchaseSchema.model_validate(purchase).model_dump(),
        product=ProductSchema.model_validate(product) if product else None,
    )


# Licensed downloads
@router.post("/{purchase_id}/downloads", response_model=DownloadSchema, status_code=status.HTTP_201_CREATED)
def record_download(
    purchase_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Log a download of the purchased asset. File delivery itself is handled by the storefront's CDN."""
    purchase = _get_own_purchase(db, purchase_id, current_user)
    return purchase_ledger.record_download(db, purchase)


@router.get("/{purchase_id}/downloads", response_model=List[DownloadSchema])
def list_downloads(
    purchase_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    _get_own_purchase(db, purchase_id, current_user)
    return purchase_ledger.list_downloads(db, purchase_id)
