from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select

from produce_ledger.core.config import settings
from produce_ledger.core.errors import LedgerValidationError
from produce_ledger.models.audit_log import AuditLog
from produce_ledger.models.balances import BalanceJournal, OutstandingBalance
from produce_ledger.models.damage import DamageEntry
from produce_ledger.models.inventory import CurrentInventory
from produce_ledger.services.damage_service import record_damage

TODAY = date(2026, 2, 16)


def _procure(client, ids: dict, *, quantity, rate, type_name: str = "A") -> None:
    session = client.post("/procurement/sessions", json={"session_date": TODAY.isoformat()})
    assert session.status_code == 200, session.text
    res = client.post(
        "/procurement/entries",
        json={
            "procurement_session_id": session.json()["id"],
            "supplier_id": ids["supplier"],
            "item_id": ids["item"],
            "type_name": type_name,
            "quantity": quantity,
            "rate": rate,
        },
    )
    assert res.status_code == 200, res.text


def _damage(client, ids: dict, *, damaged, returned, discount=0):
    return client.post(
        "/damages",
        json={
            "damage_date": TODAY.isoformat(),
            "supplier_id": ids["supplier"],
            "item_id": ids["item"],
            "type_name": "A",
            "damaged_quantity": damaged,
            "damaged_returned_quantity": returned,
            "supplier_discount_amount": discount,
        },
    )


def test_damage_returned_more_than_damaged_is_rejected(test_context, master_data):
    client, session_local = test_context
    ids = master_data
    _procure(client, ids, quantity=20, rate=5)

    res = _damage(client, ids, damaged=8, returned=10)
    assert res.status_code == 422, res.text
    assert res.json()["error"]["code"] == "validation_error"

    with session_local() as db:
        stock = db.execute(select(CurrentInventory.current_stock)).scalar_one()
    assert float(stock) == 20


def test_record_damage_rejects_return_above_damage_before_writing(session_local, master_data):
    ids = master_data
    with session_local() as db:
        with pytest.raises(LedgerValidationError, match="cannot exceed damaged_quantity"):
            record_damage(
                db,
                damage_date=TODAY,
                supplier_id=ids["supplier"],
                item_id=ids["item"],
                type_name="A",
                damaged_quantity=Decimal("3"),
                returned_quantity=Decimal("5"),
                discount_amount=Decimal("0"),
                as_of=TODAY,
            )

    with session_local() as db:
        assert db.execute(select(DamageEntry)).scalars().all() == []
        assert db.execute(select(BalanceJournal)).scalars().all() == []
        assert db.execute(select(CurrentInventory)).scalars().all() == []


def test_damage_only_returned_part_leaves_stock(test_context, master_data):
    client, _ = test_context
    ids = master_data
    _procure(client, ids, quantity=20, rate=5)

    res = _damage(client, ids, damaged=10, returned=6, discount=30)
    assert res.status_code == 200, res.text

    current = client.get("/inventory/current", params={"item_id": ids["item"]}).json()["items"][0]
    assert current["current_stock"] == 14
    assert current["weighted_avg_rate"] == 5

    snap = client.get(
        "/inventory/snapshots",
        params={"item_id": ids["item"], "start_date": TODAY.isoformat(), "end_date": TODAY.isoformat()},
    ).json()["items"][0]
    assert snap["returned_today"] == 6
    assert snap["closing_stock"] == 14

    balance = client.get(f"/balances/supplier/{ids['supplier']}/{ids['item']}").json()
    assert balance["payment_due"] == 70
    assert balance["quantity_due"] == 20

    listed = client.get("/damages", params={"item_id": ids["item"]})
    assert listed.status_code == 200, listed.text
    assert listed.json()["pagination"]["total"] == 1
    assert listed.json()["items"][0]["damaged_returned_quantity"] == 6


def test_payment_without_prior_activity_seeds_from_opening(test_context, master_data):
    client, _ = test_context
    ids = master_data
    opening = client.put(
        "/opening-balances",
        json={
            "party_kind": "seller",
            "party_id": ids["seller"],
            "item_id": ids["item"],
            "opening_payment_due": 300,
            "opening_quantity_due": 10,
            "effective_from_date": "2026-02-01",
        },
    )
    assert opening.status_code == 200, opening.text

    res = client.post(
        "/payments",
        json={
            "payment_date": TODAY.isoformat(),
            "party_kind": "seller",
            "party_id": ids["seller"],
            "item_id": ids["item"],
            "amount": 120,
            "quantity_returned": 4,
            "notes": "  evening round  ",
        },
    )
    assert res.status_code == 200, res.text

    balance = client.get(f"/balances/seller/{ids['seller']}/{ids['item']}").json()
    assert balance["payment_due"] == 180
    assert balance["quantity_due"] == 6
    assert balance["has_activity"] is True

    listed = client.get("/payments", params={"party_kind": "seller", "party_id": ids["seller"]}).json()
    assert listed["pagination"]["total"] == 1
    assert listed["items"][0]["notes"] == "evening round"


def test_payment_needs_amount_or_quantity(test_context, master_data):
    client, _ = test_context
    ids = master_data
    res = client.post(
        "/payments",
        json={
            "payment_date": TODAY.isoformat(),
            "party_kind": "supplier",
            "party_id": ids["supplier"],
            "item_id": ids["item"],
            "amount": 0,
            "quantity_returned": 0,
        },
    )
    assert res.status_code == 422, res.text


def test_overpayment_goes_negative_and_flags_review(test_context, master_data):
    client, session_local = test_context
    ids = master_data
    _procure(client, ids, quantity=10, rate=5)

    res = client.post(
        "/payments",
        json={
            "payment_date": TODAY.isoformat(),
            "party_kind": "supplier",
            "party_id": ids["supplier"],
            "item_id": ids["item"],
            "amount": 80,
        },
    )
    assert res.status_code == 200, res.text

    balance = client.get(f"/balances/supplier/{ids['supplier']}/{ids['item']}").json()
    assert balance["signed_payment_due"] == -30
    assert balance["payment_due"] == 0
    assert balance["needs_review"] is True

    summary = client.get("/balances/summary", params={"party_kind": "supplier"}).json()["items"][0]
    assert summary["needs_review"] == 1
    assert summary["total_payment_due"] == 0
    assert summary["total_quantity_due"] == 10

    with session_local() as db:
        flagged = db.execute(select(AuditLog).where(AuditLog.action == "balance.review_flagged")).scalars().all()
        assert len(flagged) == 1
        row = db.execute(select(OutstandingBalance)).scalar_one()
        assert flagged[0].target_id == row.id


def test_clamp_policy_floors_balance(test_context, master_data):
    client, _ = test_context
    ids = master_data
    settings.balance_policy = "clamp"
    _procure(client, ids, quantity=10, rate=5)

    res = client.post(
        "/payments",
        json={
            "payment_date": TODAY.isoformat(),
            "party_kind": "supplier",
            "party_id": ids["supplier"],
            "item_id": ids["item"],
            "amount": 80,
        },
    )
    assert res.status_code == 200, res.text

    balance = client.get(f"/balances/supplier/{ids['supplier']}/{ids['item']}").json()
    assert balance["signed_payment_due"] == 0
    assert balance["needs_review"] is False


def test_payment_for_unknown_party_is_not_found(test_context, master_data):
    client, _ = test_context
    res = client.post(
        "/payments",
        json={
            "payment_date": TODAY.isoformat(),
            "party_kind": "seller",
            "party_id": "nobody",
            "item_id": master_data["item"],
            "amount": 10,
        },
    )
    assert res.status_code == 404, res.text
