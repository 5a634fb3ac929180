"""
Aggregate update protocol shared by every event handler.

Each event touches three kinds of aggregate: CurrentInventory (real-time stock per
item+type), DailyInventorySnapshot (per-date history) and OutstandingBalance
(per party+item). All of them are created and patched through upsert_aggregate,
so "insert if missing, otherwise patch" has exactly one implementation. Handlers
call these functions inside unit_of_work while holding the per-key locks from
key_locks; nothing here commits.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, TypeVar

from sqlalchemy import select
from sqlalchemy.orm import Session

from produce_ledger.core.config import settings
from produce_ledger.core.id_utils import generate_shortuuid
from produce_ledger.core.money import ZERO_QTY, ZERO_RATE, to_qty
from produce_ledger.core.observability import log_ledger_event
from produce_ledger.models.balances import BalanceJournal, OutstandingBalance
from produce_ledger.models.inventory import CurrentInventory, DailyInventorySnapshot, ItemType
from produce_ledger.services import carry_forward
from produce_ledger.services.audit_service import log_audit_event
from produce_ledger.services.balance_algebra import (
    Balance,
    get_opening_row,
    opening_balance_of,
    step_balance,
)
from produce_ledger.services.valuation import reduce_stock, revalue

ModelT = TypeVar("ModelT")


def upsert_aggregate(
    db: Session,
    model: type[ModelT],
    key: dict[str, Any],
    *,
    seed: Callable[[], dict[str, Any]] | None,
    mutate: Callable[[ModelT], None],
) -> tuple[ModelT | None, bool]:
    """
    Lock the row for `key`, creating it from `seed()` when missing, then apply `mutate`.

    `seed` describes the state before the event, so one `mutate` serves both the
    insert and the patch path. With seed=None a missing row stays missing and
    (None, False) is returned.
    """
    row = db.execute(select(model).filter_by(**key).with_for_update()).scalar_one_or_none()
    created = False
    if row is None:
        if seed is None:
            return None, False
        row = model(id=generate_shortuuid(), **key, **seed())
        db.add(row)
        created = True
    mutate(row)
    # autoflush is off; later lookups in the same event must see this row.
    db.flush()
    return row, created


def touch_item_type(db: Session, *, item_id: str, type_name: str, event_date: date) -> ItemType:
    def _mutate(row: ItemType) -> None:
        row.first_introduced_date = min(row.first_introduced_date, event_date)
        row.last_seen_date = max(row.last_seen_date, event_date)
        row.is_active = True

    row, _ = upsert_aggregate(
        db,
        ItemType,
        {"item_id": item_id, "type_name": type_name},
        seed=lambda: {
            "first_introduced_date": event_date,
            "last_seen_date": event_date,
            "is_active": True,
        },
        mutate=_mutate,
    )
    return row


# ---------------------------------------------------------------------------
# CurrentInventory
# ---------------------------------------------------------------------------


def add_stock(
    db: Session,
    *,
    item_id: str,
    type_name: str,
    quantity: Decimal,
    rate: Decimal,
    as_of: date,
) -> CurrentInventory:
    def _mutate(row: CurrentInventory) -> None:
        row.weighted_avg_rate = revalue(row.current_stock, row.weighted_avg_rate, quantity, rate)
        row.current_stock = to_qty(row.current_stock + quantity)
        row.last_updated = as_of

    row, _ = upsert_aggregate(
        db,
        CurrentInventory,
        {"item_id": item_id, "type_name": type_name},
        seed=lambda: {"current_stock": ZERO_QTY, "weighted_avg_rate": ZERO_RATE, "last_updated": as_of},
        mutate=_mutate,
    )
    return row


def remove_stock(
    db: Session,
    *,
    item_id: str,
    type_name: str,
    quantity: Decimal,
    as_of: date,
    reason: str,
) -> CurrentInventory | None:
    """Stock-only reduction; the weighted average rate is left untouched."""
    shortfall = quantity

    def _mutate(row: CurrentInventory) -> None:
        nonlocal shortfall
        row.current_stock, shortfall = reduce_stock(row.current_stock, quantity)
        row.last_updated = as_of

    row, _ = upsert_aggregate(
        db,
        CurrentInventory,
        {"item_id": item_id, "type_name": type_name},
        seed=None,
        mutate=_mutate,
    )
    if shortfall > 0:
        log_ledger_event(
            "stock_clamped",
            level=logging.WARNING,
            aggregate="current_inventory",
            item_id=item_id,
            type_name=type_name,
            requested=quantity,
            shortfall=shortfall,
            reason=reason,
        )
    return row


# ---------------------------------------------------------------------------
# DailyInventorySnapshot
# ---------------------------------------------------------------------------


def closing_identity(row: DailyInventorySnapshot) -> Decimal:
    raw = row.opening_stock + row.purchased_today - row.sold_today - row.returned_today
    return to_qty(max(ZERO_QTY, raw))


def _snapshot_seed(db: Session, *, on_date: date, item_id: str, type_name: str) -> Callable[[], dict[str, Any]]:
    def _seed() -> dict[str, Any]:
        found = carry_forward.resolve(db, item_id=item_id, type_name=type_name, on_date=on_date)
        opening = found.stock if found is not None else ZERO_QTY
        opening_rate = found.rate if found is not None else ZERO_RATE
        return {
            "opening_stock": opening,
            "purchased_today": ZERO_QTY,
            "sold_today": ZERO_QTY,
            "returned_today": ZERO_QTY,
            "closing_stock": opening,
            "weighted_avg_purchase_rate": opening_rate,
        }

    return _seed


def _update_snapshot(
    db: Session,
    *,
    on_date: date,
    item_id: str,
    type_name: str,
    mutate: Callable[[DailyInventorySnapshot], None],
    reason: str,
) -> DailyInventorySnapshot:
    def _mutate(row: DailyInventorySnapshot) -> None:
        mutate(row)
        raw = row.opening_stock + row.purchased_today - row.sold_today - row.returned_today
        if raw < 0:
            log_ledger_event(
                "stock_clamped",
                level=logging.WARNING,
                aggregate="daily_inventory",
                inventory_date=on_date,
                item_id=item_id,
                type_name=type_name,
                shortfall=-raw,
                reason=reason,
            )
        row.closing_stock = closing_identity(row)

    row, _ = upsert_aggregate(
        db,
        DailyInventorySnapshot,
        {"inventory_date": on_date, "item_id": item_id, "type_name": type_name},
        seed=_snapshot_seed(db, on_date=on_date, item_id=item_id, type_name=type_name),
        mutate=_mutate,
    )
    return row


def record_snapshot_purchase(
    db: Session,
    *,
    on_date: date,
    item_id: str,
    type_name: str,
    quantity: Decimal,
    rate: Decimal,
) -> DailyInventorySnapshot:
    def _purchase(row: DailyInventorySnapshot) -> None:
        # Day-scoped average over the opening lot plus everything bought so far that day.
        held = row.opening_stock + row.purchased_today
        row.weighted_avg_purchase_rate = revalue(held, row.weighted_avg_purchase_rate, quantity, rate)
        row.purchased_today = to_qty(row.purchased_today + quantity)

    return _update_snapshot(
        db, on_date=on_date, item_id=item_id, type_name=type_name, mutate=_purchase, reason="procurement"
    )


def record_snapshot_sale(
    db: Session,
    *,
    on_date: date,
    item_id: str,
    type_name: str,
    quantity: Decimal,
) -> DailyInventorySnapshot:
    def _sale(row: DailyInventorySnapshot) -> None:
        row.sold_today = to_qty(row.sold_today + quantity)

    return _update_snapshot(db, on_date=on_date, item_id=item_id, type_name=type_name, mutate=_sale, reason="sale")


def record_snapshot_return(
    db: Session,
    *,
    on_date: date,
    item_id: str,
    type_name: str,
    quantity: Decimal,
) -> DailyInventorySnapshot:
    def _return(row: DailyInventorySnapshot) -> None:
        row.returned_today = to_qty(row.returned_today + quantity)

    return _update_snapshot(
        db, on_date=on_date, item_id=item_id, type_name=type_name, mutate=_return, reason="damage_return"
    )


# ---------------------------------------------------------------------------
# OutstandingBalance
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BalanceUpdate:
    prior: Balance
    new: Balance
    flagged: bool
    row: OutstandingBalance


def apply_balance_delta(
    db: Session,
    *,
    party_kind: str,
    party_id: str,
    item_id: str,
    payment_delta: Decimal,
    quantity_delta: Decimal,
    event_date: date,
    event_type: str,
    reference_id: str | None,
    as_of: date,
) -> BalanceUpdate:
    """
    Apply a signed delta to OutstandingBalance(party, item) and journal it.

    A missing row starts from the opening balance (or zero). Under the default
    "signed" policy the stored totals may go negative, and the first crossing
    below zero flags the row for review; the "clamp" policy floors them at zero.
    """
    prior_holder: list[Balance] = []
    flagged = False

    def _seed() -> dict[str, Any]:
        opening = opening_balance_of(
            get_opening_row(db, party_kind=party_kind, party_id=party_id, item_id=item_id)
        )
        return {
            "payment_due": opening.payment_due,
            "quantity_due": opening.quantity_due,
            "needs_review": False,
            "last_updated": as_of,
        }

    def _mutate(row: OutstandingBalance) -> None:
        nonlocal flagged
        prior = Balance(row.payment_due, row.quantity_due)
        new, _, crossed = step_balance(prior, payment_delta, quantity_delta, policy=settings.balance_policy)
        if crossed:
            flagged = True
            row.needs_review = True
        prior_holder.append(prior)
        row.payment_due = new.payment_due
        row.quantity_due = new.quantity_due
        row.last_updated = as_of

    row, _ = upsert_aggregate(
        db,
        OutstandingBalance,
        {"party_kind": party_kind, "party_id": party_id, "item_id": item_id},
        seed=_seed,
        mutate=_mutate,
    )

    db.add(
        BalanceJournal(
            event_date=event_date,
            party_kind=party_kind,
            party_id=party_id,
            item_id=item_id,
            payment_delta=payment_delta,
            quantity_delta=quantity_delta,
            event_type=event_type,
            reference_id=reference_id,
        )
    )

    new_balance = Balance(row.payment_due, row.quantity_due)
    if flagged:
        log_ledger_event(
            "balance_review_flagged",
            level=logging.WARNING,
            party_kind=party_kind,
            party_id=party_id,
            item_id=item_id,
            payment_due=new_balance.payment_due,
            quantity_due=new_balance.quantity_due,
            event_type=event_type,
            reference_id=reference_id,
        )
        log_audit_event(
            db,
            action="balance.review_flagged",
            target_type="outstanding_balance",
            target_id=row.id,
            metadata_json={
                "party_kind": party_kind,
                "party_id": party_id,
                "item_id": item_id,
                "payment_due": str(new_balance.payment_due),
                "quantity_due": str(new_balance.quantity_due),
                "event_type": event_type,
                "reference_id": reference_id,
            },
        )

    return BalanceUpdate(prior=prior_holder[0], new=new_balance, flagged=flagged, row=row)
