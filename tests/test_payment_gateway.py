"""Stripe gateway tests with the Stripe API patched out"""
from types import SimpleNamespace

import pytest
import stripe

from app.core.exceptions import UpstreamPaymentError
from app.services.payment_gateway import StripePaymentGateway


def test_create_charge_intent(monkeypatch):
    calls = {}

    def fake_create(**kwargs):
        calls.update(kwargs)
        return SimpleNamespace(id="pi_123", client_secret="pi_123_secret", amount=kwargs["amount"])

    monkeypatch.setattr(stripe.PaymentIntent, "create", fake_create)

    intent = StripePaymentGateway(api_key="sk_test_x").create_charge_intent(
        4900, "usd", {"productId": "p1", "orderBumpId": None}
    )

    assert intent.charge_id == "pi_123"
    assert intent.client_secret == "pi_123_secret"
    assert intent.amount_cents == 4900
    assert calls["metadata"] == {"productId": "p1"}
    assert calls["api_key"] == "sk_test_x"


def test_retrieve_charge(monkeypatch):
    monkeypatch.setattr(
        stripe.PaymentIntent,
        "retrieve",
        lambda charge_id, api_key=None: SimpleNamespace(
            id=charge_id,
            status="succeeded",
            amount=4900,
            amount_received=4900,
            metadata={"funnelStepId": "s1"},
        ),
    )

    charge = StripePaymentGateway(api_key="sk_test_x").retrieve_charge("pi_123")

    assert charge.succeeded
    assert charge.amount_cents == 4900
    assert charge.metadata == {"funnelStepId": "s1"}


def test_stripe_errors_become_upstream_errors(monkeypatch):
    def failing_retrieve(charge_id, api_key=None):
        raise stripe.InvalidRequestError("No such payment_intent", "id")

    monkeypatch.setattr(stripe.PaymentIntent, "retrieve", failing_retrieve)

    with pytest.raises(UpstreamPaymentError):
        StripePaymentGateway(api_key="sk_test_x").retrieve_charge("pi_missing")


def test_missing_key_is_upstream_error(monkeypatch):
    monkeypatch.setattr("app.services.payment_gateway.settings.STRIPE_SECRET_KEY", None)

    with pytest.raises(UpstreamPaymentError):
        StripePaymentGateway().create_charge_intent(4900, "usd", {})
