#!/usr/bin/env python3
"""Seed script: admin user, a few catalog products and a two-step funnel"""
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from sqlalchemy.orm import Session
from app.db.session import SessionLocal
from app.models.user import User
from app.models.product import Product
from app.models.funnel import Funnel, FunnelStep, StepType
from app.models.order_bump import OrderBump
from app.core.security import create_access_token
from app.core.config import settings

PRODUCTS = [
    {
        "title": "Transaction Risk Kit",
        "description": "SOPs and checklists that catch the contract-to-close mistakes that kill deals.",
        "category": "Transactions",
        "format": "SOP Pack",
        "price": 4900,
        "is_featured": True,
    },
    {
        "title": "Listing Appointment Scripts",
        "description": "Word-for-word scripts for listing presentations, objections and price conversations.",
        "category": "Scripts",
        "format": "Script Pack",
        "price": 4900,
    },
    {
        "title": "Open House Checklist",
        "description": "Before, during and after checklists for open houses that produce leads.",
        "category": "Checklists",
        "format": "Checklist",
        "price": 1900,
    },
    {
        "title": "Office Operations Manual",
        "description": "The full SOP library for running a brokerage office.",
        "category": "Operations",
        "format": "SOP Library",
        "price": 19700,
    },
]


def _get_or_create_product(db: Session, data: dict) -> Product:
    product = db.query(Product).filter(Product.title == data["title"]).first()
    if product:
        return product
    product = Product(**data)
    db.add(product)
    db.flush()
    return product


def seed_store():
    db: Session = SessionLocal()
    try:
        admin = db.query(User).filter(User.email == settings.SUDO_ADMIN_EMAIL).first()
        if not admin:
            admin = User(email=settings.SUDO_ADMIN_EMAIL, first_name="Store", last_name="Admin", is_admin=True)
            db.add(admin)
            db.flush()
            print(f"Admin user created: {settings.SUDO_ADMIN_EMAIL}")

        kit, scripts, checklist, manual = [_get_or_create_product(db, p) for p in PRODUCTS]

        if not db.query(OrderBump).filter(OrderBump.product_id == kit.id).first():
            db.add(OrderBump(
                product_id=kit.id,
                bump_product_id=checklist.id,
                bump_price=900,
                headline="Add the Open House Checklist for $9",
            ))

        funnel = db.query(Funnel).filter(Funnel.entry_product_id == kit.id).first()
        if not funnel:
            funnel = Funnel(name="Transaction Risk Kit funnel", entry_product_id=kit.id, is_active=True)
            db.add(funnel)
            db.flush()
            db.add_all([
                FunnelStep(
                    funnel_id=funnel.id,
                    step_type=StepType.UPSELL,
                    offer_product_id=manual.id,
                    priority=1,
                    price_override=4900,
                    headline="Get the whole Office Operations Manual",
                    timer_seconds=600,
                ),
                FunnelStep(
                    funnel_id=funnel.id,
                    step_type=StepType.DOWNSELL,
                    offer_product_id=scripts.id,
                    priority=2,
                    price_override=1900,
                    headline="Just the listing scripts, then?",
                ),
            ])
            print(f"Funnel created: {funnel.name}")

        db.commit()
        print(f"Admin token: {create_access_token({'sub': str(admin.id)})}")
    except Exception as e:
        db.rollback()
        print(f"Error seeding store: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed_store()
