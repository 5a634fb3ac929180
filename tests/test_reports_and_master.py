from datetime import date

from produce_ledger.core.id_utils import generate_shortuuid
from produce_ledger.models.master import Seller

TODAY = date(2026, 2, 16)


def _session(client, kind: str) -> str:
    res = client.post(f"/{kind}/sessions", json={"session_date": TODAY.isoformat()})
    assert res.status_code == 200, res.text
    return res.json()["id"]


def _seed_day(client, ids: dict) -> None:
    procurement_id = _session(client, "procurement")
    for supplier, quantity in (("supplier", 10), ("supplier_b", 5)):
        res = client.post(
            "/procurement/entries",
            json={
                "procurement_session_id": procurement_id,
                "supplier_id": ids[supplier],
                "item_id": ids["item"],
                "type_name": "A",
                "quantity": quantity,
                "rate": 4,
            },
        )
        assert res.status_code == 200, res.text

    sales_id = _session(client, "sales")
    for seller, quantity, paid in (("seller_b", 3, 10), ("seller", 5, 20)):
        res = client.post(
            "/sales/entries",
            json={
                "sales_session_id": sales_id,
                "seller_id": ids[seller],
                "item_id": ids["item"],
                "line_items": [{"type_name": "A", "quantity": quantity, "rate": 10}],
                "quantity_returned": 1,
                "amount_paid": paid,
            },
        )
        assert res.status_code == 200, res.text


def test_daily_dues_lists_statements_by_seller_name(test_context, master_data):
    client, _ = test_context
    ids = master_data
    _seed_day(client, ids)

    res = client.get("/reports/daily-dues", params={"item_id": ids["item"], "date": TODAY.isoformat()})
    assert res.status_code == 200, res.text
    body = res.json()
    assert body["item"]["show_crates"] is True
    assert [entry["seller_name"] for entry in body["entries"]] == ["Asha Stores", "Bala Vegetables"]
    assert body["entries"][0]["final_payment_outstanding"] == 30
    assert body["entries"][0]["line_items"][0]["amount"] == 50

    empty = client.get("/reports/daily-dues", params={"item_id": ids["item"], "date": "2026-01-01"})
    assert empty.json()["entries"] == []


def test_end_of_day_totals_and_supplier_dues(test_context, master_data):
    client, _ = test_context
    ids = master_data
    _seed_day(client, ids)

    res = client.get("/reports/end-of-day", params={"item_id": ids["item"], "date": TODAY.isoformat()})
    assert res.status_code == 200, res.text
    body = res.json()
    assert body["seller_totals"] == {
        "amount_sold": 80,
        "amount_received": 30,
        "discount_given": 0,
        "quantity_sold": 8,
        "quantity_received": 2,
    }
    assert [(due["supplier_name"], due["payment_due"]) for due in body["supplier_dues"]] == [
        ("Hill Orchards", 20),
        ("Ravi Farms", 40),
    ]
    assert body["closing_stock"][0]["closing_stock"] == 7


def test_reports_for_unknown_item_are_not_found(test_context, master_data):
    client, _ = test_context
    res = client.get("/reports/end-of-day", params={"item_id": "missing", "date": TODAY.isoformat()})
    assert res.status_code == 404, res.text
    assert res.json()["error"]["path"] == "/reports/end-of-day"


def test_profit_compares_sales_with_procurement(test_context, master_data):
    client, _ = test_context
    ids = master_data
    _seed_day(client, ids)

    res = client.get(
        "/reports/profit",
        params={"start_date": "2026-02-01", "end_date": TODAY.isoformat(), "item_id": ids["item"]},
    )
    assert res.status_code == 200, res.text
    body = res.json()
    assert body["total_sales"] == 80
    assert body["total_procurement"] == 60
    assert body["quantity_sold"] == 8
    assert body["quantity_procured"] == 15
    assert body["gross_profit"] == 20
    assert body["profit_margin"] == 25

    before = client.get("/reports/profit", params={"start_date": "2026-02-01", "end_date": "2026-02-15"}).json()
    assert before["total_sales"] == 0
    assert before["gross_profit"] == 0
    assert before["profit_margin"] == 0


def test_profit_rejects_bad_range_and_unknown_item(test_context, master_data):
    client, _ = test_context
    bad_range = client.get("/reports/profit", params={"start_date": "2026-02-10", "end_date": "2026-02-01"})
    assert bad_range.status_code == 400, bad_range.text
    assert bad_range.json()["error"]["code"] == "bad_request"

    missing = client.get(
        "/reports/profit",
        params={"start_date": "2026-02-01", "end_date": "2026-02-10", "item_id": "missing"},
    )
    assert missing.status_code == 404, missing.text


def test_entry_search_filters_by_range_and_party(test_context, master_data):
    client, _ = test_context
    ids = master_data
    _seed_day(client, ids)
    window = {"start_date": "2026-02-10", "end_date": TODAY.isoformat()}

    procurement = client.get("/procurement/entries", params={**window, "supplier_id": ids["supplier_b"]})
    assert procurement.status_code == 200, procurement.text
    body = procurement.json()
    assert body["pagination"]["total"] == 1
    assert body["items"][0]["quantity"] == 5
    assert body["items"][0]["session_date"] == TODAY.isoformat()

    sales = client.get("/sales/entries", params={**window, "item_id": ids["item"], "limit": 1})
    assert sales.status_code == 200, sales.text
    page = sales.json()
    assert page["pagination"]["total"] == 2
    assert page["pagination"]["count"] == 1
    assert page["pagination"]["has_next"] is True

    seller = client.get("/sales/entries", params={**window, "seller_id": ids["seller"]}).json()
    assert [row["total_amount_purchased"] for row in seller["items"]] == [50]
    assert seller["items"][0]["final_payment_outstanding"] == 30

    empty = client.get("/sales/entries", params={"start_date": "2026-01-01", "end_date": "2026-01-31"}).json()
    assert empty["items"] == []

    bad_range = client.get("/procurement/entries", params={"start_date": "2026-02-10", "end_date": "2026-02-01"})
    assert bad_range.status_code == 400, bad_range.text


def test_master_lists_hide_inactive_by_default(test_context, master_data, session_local):
    client, _ = test_context
    with session_local() as db:
        db.add(Seller(id=generate_shortuuid(), name="Closed Stall", is_active=False))
        db.commit()

    active = client.get("/master/sellers").json()
    assert [row["name"] for row in active] == ["Asha Stores", "Bala Vegetables"]
    everyone = client.get("/master/sellers", params={"include_inactive": True}).json()
    assert len(everyone) == 3

    items = client.get("/master/items").json()
    assert items[0]["name"] == "Tomato"
    assert len(client.get("/master/suppliers").json()) == 2


def test_item_detail_lists_known_types(test_context, master_data):
    client, _ = test_context
    ids = master_data
    _seed_day(client, ids)
    res = client.get(f"/master/items/{ids['item']}")
    assert res.status_code == 200, res.text
    assert [row["type_name"] for row in res.json()["types"]] == ["A"]


def test_inactive_seller_cannot_buy(test_context, master_data, session_local):
    client, _ = test_context
    ids = master_data
    closed_id = generate_shortuuid()
    with session_local() as db:
        db.add(Seller(id=closed_id, name="Closed Stall", is_active=False))
        db.commit()

    res = client.post(
        "/sales/entries",
        json={
            "sales_session_id": _session(client, "sales"),
            "seller_id": closed_id,
            "item_id": ids["item"],
            "line_items": [{"type_name": "A", "quantity": 1, "rate": 10}],
        },
    )
    assert res.status_code == 400, res.text
    assert "inactive" in res.json()["error"]["message"]


def test_health_and_ready(test_context):
    client, _ = test_context
    assert client.get("/health").json() == {"ok": True}
    res = client.get("/health")
    assert res.headers.get("X-Request-ID")
