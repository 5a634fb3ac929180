from datetime import date, timedelta
from decimal import Decimal

from produce_ledger.core.id_utils import generate_shortuuid
from produce_ledger.models.inventory import CurrentInventory, DailyInventorySnapshot, ItemType
from produce_ledger.services import carry_forward

DAY1 = date(2026, 2, 1)


def _snapshot(db, *, item_id: str, type_name: str, on_date: date, closing: str, rate: str = "5") -> None:
    db.add(
        DailyInventorySnapshot(
            id=generate_shortuuid(),
            inventory_date=on_date,
            item_id=item_id,
            type_name=type_name,
            opening_stock=Decimal("0"),
            purchased_today=Decimal(closing),
            sold_today=Decimal("0"),
            returned_today=Decimal("0"),
            closing_stock=Decimal(closing),
            weighted_avg_purchase_rate=Decimal(rate),
        )
    )


def _item_type(db, *, item_id: str, type_name: str) -> None:
    db.add(
        ItemType(
            id=generate_shortuuid(),
            item_id=item_id,
            type_name=type_name,
            first_introduced_date=DAY1,
            last_seen_date=DAY1,
            is_active=True,
        )
    )


def test_resolve_finds_last_positive_closing(session_local, master_data):
    item_id = master_data["item"]
    with session_local() as db:
        _snapshot(db, item_id=item_id, type_name="A", on_date=DAY1, closing="50")
        db.commit()

        found = carry_forward.resolve(db, item_id=item_id, type_name="A", on_date=DAY1 + timedelta(days=9))

    assert found is not None
    assert found.stock == Decimal("50")
    assert found.source_date == DAY1
    assert found.days_back == 9


def test_resolve_skips_zero_closing_days(session_local, master_data):
    item_id = master_data["item"]
    with session_local() as db:
        _snapshot(db, item_id=item_id, type_name="A", on_date=DAY1, closing="12", rate="4")
        _snapshot(db, item_id=item_id, type_name="A", on_date=DAY1 + timedelta(days=1), closing="0")
        db.commit()

        found = carry_forward.resolve(db, item_id=item_id, type_name="A", on_date=DAY1 + timedelta(days=2))

    assert found is not None
    assert found.stock == Decimal("12")
    assert found.rate == Decimal("4")
    assert found.days_back == 2


def test_resolve_gives_up_after_lookback(session_local, master_data):
    item_id = master_data["item"]
    with session_local() as db:
        _snapshot(db, item_id=item_id, type_name="A", on_date=DAY1, closing="50")
        db.commit()

        assert carry_forward.resolve(
            db, item_id=item_id, type_name="A", on_date=DAY1 + timedelta(days=10), max_lookback_days=5
        ) is None
        assert carry_forward.resolve(db, item_id=item_id, type_name="A", on_date=DAY1) is None


def test_available_stock_today_reads_live_inventory(session_local, master_data):
    item_id = master_data["item"]
    today = DAY1 + timedelta(days=3)
    with session_local() as db:
        _snapshot(db, item_id=item_id, type_name="A", on_date=DAY1, closing="50")
        db.add(
            CurrentInventory(
                id=generate_shortuuid(),
                item_id=item_id,
                type_name="A",
                current_stock=Decimal("7"),
                weighted_avg_rate=Decimal("6"),
                last_updated=today,
            )
        )
        db.add(
            CurrentInventory(
                id=generate_shortuuid(),
                item_id=item_id,
                type_name="B",
                current_stock=Decimal("0"),
                weighted_avg_rate=Decimal("6"),
                last_updated=today,
            )
        )
        db.commit()

        lines = carry_forward.available_stock(db, item_id=item_id, on_date=today, as_of=today)

    assert [(line.type_name, line.closing_stock, line.is_carried_forward) for line in lines] == [
        ("A", Decimal("7"), False)
    ]


def test_available_stock_past_date_mixes_explicit_and_carried(session_local, master_data):
    item_id = master_data["item"]
    target = DAY1 + timedelta(days=2)
    with session_local() as db:
        _item_type(db, item_id=item_id, type_name="A")
        _item_type(db, item_id=item_id, type_name="B")
        _snapshot(db, item_id=item_id, type_name="A", on_date=DAY1, closing="30")
        _snapshot(db, item_id=item_id, type_name="B", on_date=target, closing="8")
        db.commit()

        lines = carry_forward.available_stock(db, item_id=item_id, on_date=target, as_of=target + timedelta(days=5))

    by_type = {line.type_name: line for line in lines}
    assert by_type["B"].closing_stock == Decimal("8")
    assert by_type["B"].is_carried_forward is False
    assert by_type["A"].closing_stock == Decimal("30")
    assert by_type["A"].is_carried_forward is True
    assert by_type["A"].carried_from_date == DAY1
    assert by_type["A"].days_carried == 2


def test_available_stock_zero_row_shadows_carry_forward(session_local, master_data):
    item_id = master_data["item"]
    target = DAY1 + timedelta(days=1)
    with session_local() as db:
        _item_type(db, item_id=item_id, type_name="A")
        _item_type(db, item_id=item_id, type_name="B")
        _snapshot(db, item_id=item_id, type_name="A", on_date=DAY1, closing="30")
        _snapshot(db, item_id=item_id, type_name="A", on_date=target, closing="0")
        _snapshot(db, item_id=item_id, type_name="B", on_date=target, closing="6")
        db.commit()

        lines = carry_forward.available_stock(db, item_id=item_id, on_date=target, as_of=target + timedelta(days=1))

    assert [(line.type_name, line.closing_stock) for line in lines] == [("B", Decimal("6"))]


def test_available_stock_future_date_without_rows_is_empty(session_local, master_data):
    item_id = master_data["item"]
    today = DAY1 + timedelta(days=1)
    with session_local() as db:
        _item_type(db, item_id=item_id, type_name="A")
        _snapshot(db, item_id=item_id, type_name="A", on_date=DAY1, closing="30")
        db.commit()

        lines = carry_forward.available_stock(db, item_id=item_id, on_date=today + timedelta(days=3), as_of=today)

    assert lines == []


def test_available_stock_past_date_falls_back_to_item_scan(session_local, master_data):
    item_id = master_data["item"]
    with session_local() as db:
        # No ItemType rows, so only the item-wide scan can find these.
        _snapshot(db, item_id=item_id, type_name="A", on_date=DAY1, closing="3")
        _snapshot(db, item_id=item_id, type_name="B", on_date=DAY1, closing="4")
        db.commit()

        target = DAY1 + timedelta(days=4)
        lines = carry_forward.available_stock(db, item_id=item_id, on_date=target, as_of=target + timedelta(days=1))

    assert [(line.type_name, line.closing_stock, line.days_carried) for line in lines] == [
        ("A", Decimal("3"), 4),
        ("B", Decimal("4"), 4),
    ]
