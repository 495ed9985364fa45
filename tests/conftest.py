"""Shared fixtures: in-memory SQLite database, fake payment gateway, sample store"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.session import Base, get_db
import app.models  # noqa: F401
from app.api.deps import get_payment_gateway
from app.core.exceptions import UpstreamPaymentError
from app.core.rate_limit import reset_rate_limits
from app.core.security import create_access_token
from app.main import app
from app.models.funnel import Funnel, FunnelStep, StepType
from app.models.product import Product
from app.models.purchase import Purchase
from app.models.user import User
from app.services.payment_gateway import Charge, ChargeIntent, PaymentGateway


class FakePaymentGateway(PaymentGateway):
    """Records intents; charges stay unpaid until succeed() is called"""

    def __init__(self):
        self.intents = {}
        self.statuses = {}
        self.retrieve_calls = 0
        self.fail_create = False

    def create_charge_intent(self, amount_cents, currency, metadata):
        if self.fail_create:
            raise UpstreamPaymentError("Payment provider error: card network unavailable")
        charge_id = f"pi_test_{len(self.intents) + 1}"
        self.intents[charge_id] = {
            "amount": amount_cents,
            "currency": currency,
            "metadata": {k: str(v) for k, v in metadata.items() if v is not None},
        }
        self.statuses[charge_id] = "requires_payment_method"
        return ChargeIntent(charge_id=charge_id, client_secret=f"{charge_id}_secret_abc", amount_cents=amount_cents)

    def succeed(self, charge_id):
        self.statuses[charge_id] = "succeeded"

    def retrieve_charge(self, charge_id):
        self.retrieve_calls += 1
        if charge_id not in self.intents:
            raise UpstreamPaymentError(f"Unknown payment intent: {charge_id}")
        intent = self.intents[charge_id]
        return Charge(
            charge_id=charge_id,
            status=self.statuses[charge_id],
            amount_cents=intent["amount"],
            metadata=dict(intent["metadata"]),
        )


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # SQLite ignores ON DELETE rules unless asked to enforce foreign keys
    @event.listens_for(engine, "connect")
    def enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def gateway():
    return FakePaymentGateway()


@pytest.fixture
def client(session_factory, gateway):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    reset_rate_limits()
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def make_user(db, email="buyer@example.com", is_admin=False):
    user = User(email=email, first_name="Pat", last_name="Agent", is_admin=is_admin)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_product(db, title="Transaction Risk Kit", price=4900):
    product = Product(title=title, description=f"{title} for agents", category="SOPs", format="SOP Pack", price=price)
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


def make_step(db, funnel, product, priority, step_type=StepType.UPSELL, price_override=None, is_active=True):
    step = FunnelStep(
        funnel_id=funnel.id,
        step_type=step_type,
        offer_product_id=product.id,
        priority=priority,
        price_override=price_override,
        is_active=is_active,
    )
    db.add(step)
    db.commit()
    db.refresh(step)
    return step


def make_purchase(db, user, product, amount=None, charge_id=None):
    purchase = Purchase(
        user_id=user.id,
        product_id=product.id,
        amount=product.price if amount is None else amount,
        stripe_payment_id=charge_id,
    )
    db.add(purchase)
    db.commit()
    db.refresh(purchase)
    return purchase


def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user.id)})}"}


class Store:
    """Entry product with a two-step funnel: $49 upsell, then $19 downsell"""

    def __init__(self, db):
        self.user = make_user(db)
        self.entry_product = make_product(db, "Transaction Risk Kit", 4900)
        self.upsell_product = make_product(db, "Office Operations Manual", 19700)
        self.downsell_product = make_product(db, "Listing Appointment Scripts", 2900)

        self.funnel = Funnel(name="Risk Kit funnel", entry_product_id=self.entry_product.id, is_active=True)
        db.add(self.funnel)
        db.commit()
        db.refresh(self.funnel)

        self.upsell = make_step(db, self.funnel, self.upsell_product, 1, StepType.UPSELL, price_override=4900)
        self.downsell = make_step(db, self.funnel, self.downsell_product, 2, StepType.DOWNSELL, price_override=1900)
        self.entry_purchase = make_purchase(db, self.user, self.entry_product, charge_id="pi_entry_1")


@pytest.fixture
def store(db):
    return Store(db)
