from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy import func, select

from produce_ledger.core.config import settings
from produce_ledger.models.audit_log import AuditLog
from produce_ledger.models.balances import BalanceJournal
from produce_ledger.models.inventory import DailyInventorySnapshot, InventoryMovement, ItemType

TODAY = date(2026, 2, 16)


def _open_session(client, kind: str, on_date: date = TODAY) -> str:
    res = client.post(f"/{kind}/sessions", json={"session_date": on_date.isoformat()})
    assert res.status_code == 200, res.text
    return res.json()["id"]


def _procure(client, session_id: str, ids: dict, *, quantity, rate, type_name: str = "A", supplier: str = "supplier"):
    res = client.post(
        "/procurement/entries",
        json={
            "procurement_session_id": session_id,
            "supplier_id": ids[supplier],
            "item_id": ids["item"],
            "type_name": type_name,
            "quantity": quantity,
            "rate": rate,
        },
    )
    assert res.status_code == 200, res.text
    return res.json()["id"]


def _sell(client, session_id: str, ids: dict, *, lines, returned=0, paid=0, discount=0, seller: str = "seller"):
    return client.post(
        "/sales/entries",
        json={
            "sales_session_id": session_id,
            "seller_id": ids[seller],
            "item_id": ids["item"],
            "line_items": lines,
            "quantity_returned": returned,
            "amount_paid": paid,
            "less_discount": discount,
        },
    )


def test_session_is_one_per_date(test_context, master_data):
    client, _ = test_context
    first = _open_session(client, "procurement")
    second = _open_session(client, "procurement")
    other_day = _open_session(client, "procurement", TODAY + timedelta(days=1))
    assert first == second
    assert other_day != first


def test_procurement_revalues_stock_and_builds_snapshot(test_context, master_data):
    client, session_local = test_context
    ids = master_data
    session_id = _open_session(client, "procurement")

    _procure(client, session_id, ids, quantity=10, rate=5)
    _procure(client, session_id, ids, quantity=10, rate=7, supplier="supplier_b")

    current = client.get("/inventory/current", params={"item_id": ids["item"]})
    assert current.status_code == 200, current.text
    rows = current.json()["items"]
    assert len(rows) == 1
    assert rows[0]["current_stock"] == 20
    assert rows[0]["weighted_avg_rate"] == 6

    snapshots = client.get(
        "/inventory/snapshots",
        params={"item_id": ids["item"], "start_date": TODAY.isoformat(), "end_date": TODAY.isoformat()},
    )
    assert snapshots.status_code == 200, snapshots.text
    snap = snapshots.json()["items"][0]
    assert snap["opening_stock"] == 0
    assert snap["purchased_today"] == 20
    assert snap["closing_stock"] == 20
    assert snap["weighted_avg_purchase_rate"] == 6

    balance = client.get(f"/balances/supplier/{ids['supplier']}/{ids['item']}")
    assert balance.status_code == 200, balance.text
    assert balance.json()["payment_due"] == 50
    assert balance.json()["quantity_due"] == 10

    entries = client.get(f"/procurement/sessions/{session_id}/entries")
    assert entries.status_code == 200, entries.text
    body = entries.json()
    assert len(body["items"]) == 2
    assert body["session"]["total_suppliers"] == 2
    assert body["session"]["total_amount"] == 120

    with session_local() as db:
        item_type = db.execute(select(ItemType).where(ItemType.item_id == ids["item"])).scalar_one()
        assert item_type.type_name == "A"
        assert item_type.first_introduced_date == TODAY
        assert db.execute(select(func.count(InventoryMovement.seq))).scalar_one() == 2
        assert db.execute(select(func.count(BalanceJournal.seq))).scalar_one() == 2
        actions = db.execute(select(AuditLog.action)).scalars().all()
        assert actions.count("procurement.create") == 2


def test_weighted_rate_does_not_depend_on_purchase_order(test_context, master_data):
    client, _ = test_context
    ids = master_data
    session_id = _open_session(client, "procurement")
    for rate in (3, 6, 9):
        _procure(client, session_id, ids, quantity=10, rate=rate, type_name="A")
    for rate in (9, 3, 6):
        _procure(client, session_id, ids, quantity=10, rate=rate, type_name="B", supplier="supplier_b")

    rows = client.get("/inventory/current", params={"item_id": ids["item"]}).json()["items"]
    assert {row["type_name"]: row["weighted_avg_rate"] for row in rows} == {"A": 6, "B": 6}
    assert {row["type_name"]: row["current_stock"] for row in rows} == {"A": 30, "B": 30}


def test_procurement_rejects_unknown_supplier_and_bad_quantity(test_context, master_data):
    client, _ = test_context
    ids = master_data
    session_id = _open_session(client, "procurement")

    missing = client.post(
        "/procurement/entries",
        json={
            "procurement_session_id": session_id,
            "supplier_id": "missing",
            "item_id": ids["item"],
            "type_name": "A",
            "quantity": 1,
            "rate": 1,
        },
    )
    assert missing.status_code == 404, missing.text
    assert missing.json()["error"]["code"] == "not_found"

    zero = client.post(
        "/procurement/entries",
        json={
            "procurement_session_id": session_id,
            "supplier_id": ids["supplier"],
            "item_id": ids["item"],
            "type_name": "A",
            "quantity": 0,
            "rate": 1,
        },
    )
    assert zero.status_code == 422, zero.text
    assert zero.json()["error"]["code"] == "validation_error"


def test_sale_statement_starts_from_opening_balance(test_context, master_data):
    client, _ = test_context
    ids = master_data
    procurement_id = _open_session(client, "procurement")
    _procure(client, procurement_id, ids, quantity=20, rate=12)

    opening = client.put(
        "/opening-balances",
        json={
            "party_kind": "seller",
            "party_id": ids["seller"],
            "item_id": ids["item"],
            "opening_payment_due": 100,
            "opening_quantity_due": 5,
            "effective_from_date": "2026-02-01",
        },
    )
    assert opening.status_code == 200, opening.text
    assert opening.json()["replayed"] is False

    sales_id = _open_session(client, "sales")
    res = _sell(client, sales_id, ids, lines=[{"type_name": "A", "quantity": 10, "rate": 20}], returned=2, paid=50)
    assert res.status_code == 200, res.text
    entry_id = res.json()["id"]

    entry = client.get(f"/sales/entries/{entry_id}")
    assert entry.status_code == 200, entry.text
    body = entry.json()
    assert body["total_amount_purchased"] == 200
    assert body["final_payment_outstanding"] == 250
    assert body["final_quantity_outstanding"] == 13
    assert body["line_items"] == [{"type_name": "A", "quantity": 10, "sale_rate": 20, "amount": 200}]

    balance = client.get(f"/balances/seller/{ids['seller']}/{ids['item']}").json()
    assert balance["payment_due"] == 250
    assert balance["quantity_due"] == 13
    assert balance["signed_payment_due"] == 250
    assert balance["needs_review"] is False

    current = client.get("/inventory/current", params={"item_id": ids["item"]}).json()["items"][0]
    assert current["current_stock"] == 10
    assert current["weighted_avg_rate"] == 12


def test_sale_lines_across_types_update_each_snapshot(test_context, master_data, session_local):
    client, _ = test_context
    ids = master_data
    procurement_id = _open_session(client, "procurement")
    _procure(client, procurement_id, ids, quantity=10, rate=5, type_name="A")
    _procure(client, procurement_id, ids, quantity=6, rate=8, type_name="B")

    sales_id = _open_session(client, "sales")
    res = _sell(
        client,
        sales_id,
        ids,
        lines=[{"type_name": "A", "quantity": 4, "rate": 9}, {"type_name": "B", "quantity": 6, "rate": 11}],
    )
    assert res.status_code == 200, res.text

    with session_local() as db:
        rows = {
            row.type_name: row
            for row in db.execute(
                select(DailyInventorySnapshot).where(DailyInventorySnapshot.inventory_date == TODAY)
            ).scalars()
        }
    assert rows["A"].sold_today == Decimal("4")
    assert rows["A"].closing_stock == Decimal("6")
    assert rows["B"].closing_stock == Decimal("0")
    for row in rows.values():
        expected = max(Decimal("0"), row.opening_stock + row.purchased_today - row.sold_today - row.returned_today)
        assert row.closing_stock == expected

    sessions = client.post("/sales/sessions", json={"session_date": TODAY.isoformat()}).json()
    assert sessions["total_sellers"] == 1
    assert sessions["total_sales_amount"] == 102


def test_sale_beyond_stock_clamps_inventory_by_default(test_context, master_data):
    client, _ = test_context
    ids = master_data
    procurement_id = _open_session(client, "procurement")
    _procure(client, procurement_id, ids, quantity=3, rate=5)

    sales_id = _open_session(client, "sales")
    res = _sell(client, sales_id, ids, lines=[{"type_name": "A", "quantity": 5, "rate": 10}])
    assert res.status_code == 200, res.text

    current = client.get("/inventory/current", params={"item_id": ids["item"]}).json()["items"][0]
    assert current["current_stock"] == 0


def test_sale_beyond_stock_rejected_when_enforced(test_context, master_data):
    client, session_local = test_context
    ids = master_data
    settings.enforce_stock_availability = True
    procurement_id = _open_session(client, "procurement")
    _procure(client, procurement_id, ids, quantity=3, rate=5)

    sales_id = _open_session(client, "sales")
    res = _sell(client, sales_id, ids, lines=[{"type_name": "A", "quantity": 5, "rate": 10}])
    assert res.status_code == 400, res.text
    assert "Insufficient stock" in res.json()["error"]["message"]

    current = client.get("/inventory/current", params={"item_id": ids["item"]}).json()["items"][0]
    assert current["current_stock"] == 3
    with session_local() as db:
        assert db.execute(select(func.count(BalanceJournal.seq)).where(BalanceJournal.event_type == "sale")).scalar_one() == 0


def test_sale_requires_line_items(test_context, master_data):
    client, _ = test_context
    sales_id = _open_session(client, "sales")
    res = _sell(client, sales_id, master_data, lines=[])
    assert res.status_code == 422, res.text


def test_completed_session_rejects_entries(test_context, master_data):
    client, _ = test_context
    ids = master_data
    session_id = _open_session(client, "procurement")
    done = client.post(f"/procurement/sessions/{session_id}/complete")
    assert done.status_code == 200, done.text
    assert done.json()["status"] == "completed"

    res = client.post(
        "/procurement/entries",
        json={
            "procurement_session_id": session_id,
            "supplier_id": ids["supplier"],
            "item_id": ids["item"],
            "type_name": "A",
            "quantity": 1,
            "rate": 1,
        },
    )
    assert res.status_code == 400, res.text


def test_next_day_snapshot_opens_from_carry_forward(test_context, master_data, business_clock):
    client, _ = test_context
    ids = master_data
    day1 = _open_session(client, "procurement")
    _procure(client, day1, ids, quantity=50, rate=4)

    later = TODAY + timedelta(days=3)
    business_clock["today"] = later
    available = client.get("/inventory/available", params={"item_id": ids["item"], "date": (TODAY + timedelta(days=2)).isoformat()})
    assert available.status_code == 200, available.text
    line = available.json()["items"][0]
    assert line["closing_stock"] == 50
    assert line["is_carried_forward"] is True
    assert line["days_carried"] == 2

    later_session = _open_session(client, "procurement", later)
    _procure(client, later_session, ids, quantity=10, rate=10)
    snap = client.get(
        "/inventory/snapshots",
        params={"item_id": ids["item"], "start_date": later.isoformat(), "end_date": later.isoformat()},
    ).json()["items"][0]
    assert snap["opening_stock"] == 50
    assert snap["purchased_today"] == 10
    assert snap["closing_stock"] == 60
    assert snap["weighted_avg_purchase_rate"] == 5

    future = client.get(
        "/inventory/available", params={"item_id": ids["item"], "date": (later + timedelta(days=4)).isoformat()}
    )
    assert future.json()["items"] == []
