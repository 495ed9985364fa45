"""Admin funnel management and analytics endpoint tests"""
import pytest

from app.models.funnel import Funnel, FunnelStep
from app.models.funnel_session import FunnelSession
from app.models.purchase import Purchase
from tests.conftest import make_user, make_product, auth_headers


@pytest.fixture
def admin_headers(db):
    return auth_headers(make_user(db, email="owner@example.com", is_admin=True))


def test_sudo_admin_email_is_admin(client, db):
    sudo = make_user(db, email="admin@storefront.local")
    response = client.get("/funnels", headers=auth_headers(sudo))
    assert response.status_code == 200


def test_funnel_crud(client, db, admin_headers):
    kit = make_product(db, "Transaction Risk Kit", 4900)
    manual = make_product(db, "Office Operations Manual", 19700)
    scripts = make_product(db, "Listing Appointment Scripts", 2900)

    response = client.post(
        "/funnels",
        json={"name": "Risk Kit funnel", "entry_product_id": str(kit.id)},
        headers=admin_headers,
    )
    assert response.status_code == 201
    funnel = response.json()
    assert funnel["is_active"] is True

    downsell = client.post(
        f"/funnels/{funnel['id']}/steps",
        json={"step_type": "downsell", "offer_product_id": str(scripts.id), "priority": 2, "price_override": 1900},
        headers=admin_headers,
    ).json()
    upsell = client.post(
        f"/funnels/{funnel['id']}/steps",
        json={"step_type": "upsell", "offer_product_id": str(manual.id), "priority": 1, "cta_text": "Add the manual"},
        headers=admin_headers,
    ).json()
    assert upsell["resolved_cta_text"] == "Add the manual"
    assert downsell["resolved_decline_text"]

    detail = client.get(f"/funnels/{funnel['id']}", headers=admin_headers).json()
    assert [s["id"] for s in detail["steps"]] == [upsell["id"], downsell["id"]]

    response = client.patch(
        f"/funnels/{funnel['id']}/steps/{upsell['id']}",
        json={"is_active": False},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json()["is_active"] is False

    response = client.patch(f"/funnels/{funnel['id']}", json={"name": "Renamed"}, headers=admin_headers)
    assert response.json()["name"] == "Renamed"

    response = client.delete(f"/funnels/{funnel['id']}/steps/{downsell['id']}", headers=admin_headers)
    assert response.status_code == 204

    response = client.delete(f"/funnels/{funnel['id']}", headers=admin_headers)
    assert response.status_code == 204
    assert client.get(f"/funnels/{funnel['id']}", headers=admin_headers).status_code == 404


def test_step_needs_existing_product(client, store, admin_headers):
    response = client.post(
        f"/funnels/{store.funnel.id}/steps",
        json={"step_type": "upsell", "offer_product_id": "7b0f3c1e-9a54-4d3c-8d6e-1a2b3c4d5e6f", "priority": 3},
        headers=admin_headers,
    )
    assert response.status_code == 404


def test_step_rejects_negative_price(client, store, admin_headers):
    response = client.post(
        f"/funnels/{store.funnel.id}/steps",
        json={"step_type": "upsell", "offer_product_id": str(store.upsell_product.id), "price_override": -5},
        headers=admin_headers,
    )
    assert response.status_code == 422


def test_funnel_analytics_endpoints(client, gateway, store, admin_headers):
    headers = auth_headers(store.user)
    session = client.post(
        "/funnel/start",
        json={"purchase_id": str(store.entry_purchase.id), "product_id": str(store.entry_product.id)},
        headers=headers,
    ).json()["session"]
    pending = client.post(
        f"/funnel/session/{session['id']}/respond",
        json={"step_id": str(store.upsell.id), "accepted": True},
        headers=headers,
    ).json()
    gateway.succeed(pending["payment_intent_id"])
    client.post(
        f"/funnel/session/{session['id']}/complete-step",
        json={"step_id": str(store.upsell.id), "payment_intent_id": pending["payment_intent_id"]},
        headers=headers,
    )
    client.post(
        f"/funnel/session/{session['id']}/respond",
        json={"step_id": str(store.downsell.id), "accepted": False},
        headers=headers,
    )

    response = client.get("/admin/analytics/funnels", headers=admin_headers)
    assert response.status_code == 200
    [summary] = response.json()
    assert summary["funnel"]["id"] == str(store.funnel.id)
    assert summary["entry_product_id"] == str(store.entry_product.id)
    assert summary["total_sessions"] == 1
    assert summary["completed_sessions"] == 1
    assert summary["completion_rate"] == 100.0
    assert summary["total_revenue"] == 4900
    assert summary["avg_order_value"] == 4900

    response = client.get(f"/admin/analytics/funnels/{store.funnel.id}", headers=admin_headers)
    detail = response.json()
    rates = {s["step"]["id"]: s["acceptance_rate"] for s in detail["step_analytics"]}
    assert rates == {str(store.upsell.id): 100.0, str(store.downsell.id): 0.0}


def test_analytics_for_unknown_funnel(client, admin_headers):
    response = client.get("/admin/analytics/funnels/7b0f3c1e-9a54-4d3c-8d6e-1a2b3c4d5e6f", headers=admin_headers)
    assert response.status_code == 404


def test_delete_funnel_keeps_its_purchases(client, db, gateway, store, admin_headers):
    headers = auth_headers(store.user)
    session = client.post(
        "/funnel/start",
        json={"purchase_id": str(store.entry_purchase.id), "product_id": str(store.entry_product.id)},
        headers=headers,
    ).json()["session"]
    pending = client.post(
        f"/funnel/session/{session['id']}/respond",
        json={"step_id": str(store.upsell.id), "accepted": True},
        headers=headers,
    ).json()
    gateway.succeed(pending["payment_intent_id"])
    completed = client.post(
        f"/funnel/session/{session['id']}/complete-step",
        json={"step_id": str(store.upsell.id), "payment_intent_id": pending["payment_intent_id"]},
        headers=headers,
    )
    assert completed.status_code == 200
    upsell_purchase = completed.json()["purchase"]

    response = client.delete(f"/funnels/{store.funnel.id}", headers=admin_headers)
    assert response.status_code == 204

    db.expire_all()
    assert db.query(Funnel).count() == 0
    assert db.query(FunnelStep).count() == 0
    assert db.query(FunnelSession).count() == 0
    kept = db.query(Purchase).filter(Purchase.stripe_payment_id == pending["payment_intent_id"]).one()
    assert str(kept.id) == upsell_purchase["id"]
    assert kept.amount == 4900
    assert kept.funnel_session_id is None
    assert kept.funnel_step_id is None

    history = client.get("/purchases", headers=headers).json()
    assert {p["id"] for p in history} == {str(store.entry_purchase.id), upsell_purchase["id"]}
