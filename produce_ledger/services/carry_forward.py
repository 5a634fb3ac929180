from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from produce_ledger.core.config import settings
from produce_ledger.models.inventory import CurrentInventory, DailyInventorySnapshot, ItemType


@dataclass(frozen=True)
class CarryForward:
    type_name: str
    stock: Decimal
    rate: Decimal
    source_date: date
    days_back: int


@dataclass(frozen=True)
class StockLine:
    type_name: str
    closing_stock: Decimal
    weighted_avg_purchase_rate: Decimal
    is_carried_forward: bool
    carried_from_date: date
    days_carried: int


def _lookback(max_lookback_days: int | None) -> int:
    return settings.carry_forward_lookback_days if max_lookback_days is None else max_lookback_days


def resolve(
    db: Session,
    *,
    item_id: str,
    type_name: str,
    on_date: date,
    max_lookback_days: int | None = None,
) -> CarryForward | None:
    """
    Last positive closing stock for (item, type) strictly before on_date.

    Walks back one day at a time and gives up after the lookback window;
    None means no stock, not an error.
    """
    for days_back in range(1, _lookback(max_lookback_days) + 1):
        check_date = on_date - timedelta(days=days_back)
        row = db.execute(
            select(DailyInventorySnapshot).where(
                DailyInventorySnapshot.inventory_date == check_date,
                DailyInventorySnapshot.item_id == item_id,
                DailyInventorySnapshot.type_name == type_name,
            )
        ).scalar_one_or_none()
        if row is not None and row.closing_stock > 0:
            return CarryForward(
                type_name=type_name,
                stock=row.closing_stock,
                rate=row.weighted_avg_purchase_rate,
                source_date=check_date,
                days_back=days_back,
            )
    return None


def resolve_item(
    db: Session,
    *,
    item_id: str,
    on_date: date,
    max_lookback_days: int | None = None,
) -> list[CarryForward]:
    """All variants of the first earlier date that still held stock."""
    for days_back in range(1, _lookback(max_lookback_days) + 1):
        check_date = on_date - timedelta(days=days_back)
        rows = db.execute(
            select(DailyInventorySnapshot)
            .where(
                DailyInventorySnapshot.inventory_date == check_date,
                DailyInventorySnapshot.item_id == item_id,
                DailyInventorySnapshot.closing_stock > 0,
            )
            .order_by(DailyInventorySnapshot.type_name.asc())
        ).scalars().all()
        if rows:
            return [
                CarryForward(
                    type_name=row.type_name,
                    stock=row.closing_stock,
                    rate=row.weighted_avg_purchase_rate,
                    source_date=check_date,
                    days_back=days_back,
                )
                for row in rows
            ]
    return []


def _carried_line(found: CarryForward) -> StockLine:
    return StockLine(
        type_name=found.type_name,
        closing_stock=found.stock,
        weighted_avg_purchase_rate=found.rate,
        is_carried_forward=True,
        carried_from_date=found.source_date,
        days_carried=found.days_back,
    )


def available_stock(db: Session, *, item_id: str, on_date: date, as_of: date) -> list[StockLine]:
    if on_date == as_of:
        rows = db.execute(
            select(CurrentInventory)
            .where(CurrentInventory.item_id == item_id, CurrentInventory.current_stock > 0)
            .order_by(CurrentInventory.type_name.asc())
        ).scalars().all()
        return [
            StockLine(
                type_name=row.type_name,
                closing_stock=row.current_stock,
                weighted_avg_purchase_rate=row.weighted_avg_rate,
                is_carried_forward=False,
                carried_from_date=on_date,
                days_carried=0,
            )
            for row in rows
        ]

    explicit_rows = db.execute(
        select(DailyInventorySnapshot)
        .where(
            DailyInventorySnapshot.inventory_date == on_date,
            DailyInventorySnapshot.item_id == item_id,
            DailyInventorySnapshot.closing_stock > 0,
        )
        .order_by(DailyInventorySnapshot.type_name.asc())
    ).scalars().all()
    lines = [
        StockLine(
            type_name=row.type_name,
            closing_stock=row.closing_stock,
            weighted_avg_purchase_rate=row.weighted_avg_purchase_rate,
            is_carried_forward=False,
            carried_from_date=on_date,
            days_carried=0,
        )
        for row in explicit_rows
    ]

    # Any row for the date, even one that closed at zero, shadows carry-forward.
    types_with_rows = set(
        db.execute(
            select(DailyInventorySnapshot.type_name).where(
                DailyInventorySnapshot.inventory_date == on_date,
                DailyInventorySnapshot.item_id == item_id,
            )
        ).scalars().all()
    )
    if on_date > as_of and not types_with_rows:
        return []

    active_types = db.execute(
        select(ItemType.type_name)
        .where(ItemType.item_id == item_id, ItemType.is_active.is_(True))
        .order_by(ItemType.type_name.asc())
    ).scalars().all()
    for type_name in active_types:
        if type_name in types_with_rows:
            continue
        found = resolve(db, item_id=item_id, type_name=type_name, on_date=on_date)
        if found is not None:
            lines.append(_carried_line(found))

    if lines:
        return lines

    if on_date < as_of:
        return [_carried_line(found) for found in resolve_item(db, item_id=item_id, on_date=on_date)]

    return []
