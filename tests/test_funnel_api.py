"""Funnel session endpoint tests"""
import uuid

from app.models.audit_log import AuditLog, AuditEventType
from tests.conftest import make_user, make_product, make_purchase, auth_headers


def _start(client, store):
    response = client.post(
        "/funnel/start",
        json={"purchase_id": str(store.entry_purchase.id), "product_id": str(store.entry_product.id)},
        headers=auth_headers(store.user),
    )
    assert response.status_code == 200
    return response.json()["session"]


def test_full_funnel_walkthrough(client, gateway, store):
    headers = auth_headers(store.user)
    session = _start(client, store)
    assert session["status"] == "active"
    assert session["current_step_index"] == 0

    response = client.get(f"/funnel/session/{session['id']}/next", headers=headers)
    assert response.status_code == 200
    offer = response.json()
    assert offer["completed"] is False
    assert offer["step"]["id"] == str(store.upsell.id)
    assert offer["step"]["step_type"] == "upsell"
    assert offer["step"]["resolved_cta_text"]
    assert offer["product"]["id"] == str(store.upsell_product.id)
    assert offer["price"] == 4900
    assert offer["is_last_step"] is False

    response = client.post(
        f"/funnel/session/{session['id']}/respond",
        json={"step_id": str(store.upsell.id), "accepted": True},
        headers=headers,
    )
    assert response.status_code == 200
    pending = response.json()
    assert pending["payment_intent_id"]
    assert pending["client_secret"]
    assert pending["session"]["current_step_index"] == 0
    assert pending["purchase"] is None

    gateway.succeed(pending["payment_intent_id"])
    response = client.post(
        f"/funnel/session/{session['id']}/complete-step",
        json={"step_id": str(store.upsell.id), "payment_intent_id": pending["payment_intent_id"]},
        headers=headers,
    )
    assert response.status_code == 200
    paid = response.json()
    assert paid["purchase"]["amount"] == 4900
    assert paid["purchase"]["funnel_session_id"] == session["id"]
    assert paid["session"]["total_revenue"] == 4900
    assert paid["step"]["id"] == str(store.downsell.id)
    assert paid["is_last_step"] is True

    response = client.post(
        f"/funnel/session/{session['id']}/respond",
        json={"step_id": str(store.downsell.id), "accepted": False},
        headers=headers,
    )
    assert response.status_code == 200
    done = response.json()
    assert done["completed"] is True
    assert done["step"] is None
    assert done["session"]["status"] == "completed"

    response = client.get(f"/funnel/session/{session['id']}/next", headers=headers)
    assert response.json()["completed"] is True

    response = client.get(f"/funnel/session/{session['id']}", headers=headers)
    final = response.json()
    assert final["status"] == "completed"
    assert final["current_step_index"] == 2
    assert final["accepted_steps"] == [str(store.upsell.id)]
    assert final["declined_steps"] == [str(store.downsell.id)]
    assert final["completed_at"] is not None


def test_start_without_funnel_returns_null_session(client, db, store):
    product = make_product(db, "Open House Checklist", 1900)
    purchase = make_purchase(db, store.user, product, charge_id="pi_checklist")

    response = client.post(
        "/funnel/start",
        json={"purchase_id": str(purchase.id), "product_id": str(product.id)},
        headers=auth_headers(store.user),
    )

    assert response.status_code == 200
    assert response.json() == {"session": None}


def test_start_is_resumable(client, store):
    first = _start(client, store)
    second = _start(client, store)
    assert first["id"] == second["id"]


def test_unknown_session_is_404(client, store):
    response = client.get(f"/funnel/session/{uuid.uuid4()}/next", headers=auth_headers(store.user))
    assert response.status_code == 404
    assert response.json()["error"] == "not_found"


def test_other_users_session_is_403(client, db, store):
    session = _start(client, store)
    intruder = make_user(db, email="intruder@example.com")

    response = client.post(
        f"/funnel/session/{session['id']}/respond",
        json={"step_id": str(store.upsell.id), "accepted": False},
        headers=auth_headers(intruder),
    )

    assert response.status_code == 403
    assert response.json()["error"] == "access_denied"
    db.expire_all()
    assert db.query(AuditLog).filter(AuditLog.event_type == AuditEventType.UNAUTHORIZED_ACCESS).count() == 1


def test_wrong_step_is_400(client, store):
    session = _start(client, store)

    response = client.post(
        f"/funnel/session/{session['id']}/respond",
        json={"step_id": str(store.downsell.id), "accepted": False},
        headers=auth_headers(store.user),
    )

    assert response.status_code == 400
    assert response.json()["error"] == "invalid_argument"


def test_unpaid_complete_step_is_402(client, store):
    headers = auth_headers(store.user)
    session = _start(client, store)
    pending = client.post(
        f"/funnel/session/{session['id']}/respond",
        json={"step_id": str(store.upsell.id), "accepted": True},
        headers=headers,
    ).json()

    response = client.post(
        f"/funnel/session/{session['id']}/complete-step",
        json={"step_id": str(store.upsell.id), "payment_intent_id": pending["payment_intent_id"]},
        headers=headers,
    )

    assert response.status_code == 402
    assert response.json()["error"] == "payment_not_confirmed"
    state = client.get(f"/funnel/session/{session['id']}", headers=headers).json()
    assert state["current_step_index"] == 0
    assert state["total_revenue"] == 0


def test_gateway_failure_is_502(client, gateway, store):
    session = _start(client, store)
    gateway.fail_create = True

    response = client.post(
        f"/funnel/session/{session['id']}/respond",
        json={"step_id": str(store.upsell.id), "accepted": True},
        headers=auth_headers(store.user),
    )

    assert response.status_code == 502
    assert response.json()["error"] == "upstream_payment_error"


def test_complete_step_requires_payment_intent(client, store):
    session = _start(client, store)

    response = client.post(
        f"/funnel/session/{session['id']}/complete-step",
        json={"step_id": str(store.upsell.id), "payment_intent_id": ""},
        headers=auth_headers(store.user),
    )

    assert response.status_code == 422
