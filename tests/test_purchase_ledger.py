"""Purchase ledger tests"""
import uuid

import pytest
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import InvalidArgument
from app.services import purchase_ledger


def test_create_purchase(db, store):
    purchase = purchase_ledger.create_purchase(
        db, user_id=store.user.id, product_id=store.upsell_product.id, amount_cents=4900, charge_id="pi_1"
    )
    db.commit()

    assert purchase.amount == 4900
    assert purchase.purchased_at > 0
    assert purchase_ledger.find_purchase_by_charge(db, "pi_1").id == purchase.id


def test_negative_amount_rejected(db, store):
    with pytest.raises(InvalidArgument):
        purchase_ledger.create_purchase(db, user_id=store.user.id, product_id=store.upsell_product.id, amount_cents=-1)


def test_half_funnel_reference_rejected(db, store):
    with pytest.raises(InvalidArgument):
        purchase_ledger.create_purchase(
            db,
            user_id=store.user.id,
            product_id=store.upsell_product.id,
            amount_cents=0,
            funnel_step_id=store.upsell.id,
        )


def test_child_purchase_cannot_have_children(db, store):
    child = purchase_ledger.create_purchase(
        db,
        user_id=store.user.id,
        product_id=store.downsell_product.id,
        amount_cents=900,
        parent_purchase_id=store.entry_purchase.id,
    )
    db.commit()

    assert [p.id for p in purchase_ledger.list_child_purchases(db, store.entry_purchase.id)] == [child.id]
    with pytest.raises(InvalidArgument):
        purchase_ledger.create_purchase(
            db,
            user_id=store.user.id,
            product_id=store.upsell_product.id,
            amount_cents=100,
            parent_purchase_id=child.id,
        )


def test_charge_id_is_unique(db, store):
    with pytest.raises(IntegrityError):
        purchase_ledger.create_purchase(
            db, user_id=store.user.id, product_id=store.upsell_product.id, amount_cents=4900, charge_id="pi_entry_1"
        )
    db.rollback()


def test_find_by_empty_charge(db, store):
    assert purchase_ledger.find_purchase_by_charge(db, "") is None


def test_downloads_are_listed_newest_first(db, store):
    first = purchase_ledger.record_download(db, store.entry_purchase)
    second = purchase_ledger.record_download(db, store.entry_purchase)
    first.downloaded_at = second.downloaded_at - 60
    db.commit()

    other = purchase_ledger.create_purchase(
        db, user_id=store.user.id, product_id=store.upsell_product.id, amount_cents=4900, charge_id="pi_1"
    )
    db.commit()
    purchase_ledger.record_download(db, other)

    downloads = purchase_ledger.list_downloads(db, store.entry_purchase.id)
    assert [d.id for d in downloads] == [second.id, first.id]
    assert purchase_ledger.list_downloads(db, uuid.uuid4()) == []
