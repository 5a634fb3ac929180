from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from produce_ledger.core.config import settings
from produce_ledger.core.errors import LedgerReferenceError, LedgerValidationError
from produce_ledger.core.id_utils import generate_shortuuid
from produce_ledger.core.money import ZERO_MONEY, ZERO_QTY, to_money, to_qty, to_rate
from produce_ledger.core.observability import log_ledger_event
from produce_ledger.db.unit_of_work import unit_of_work
from produce_ledger.models.sales import SalesEntry, SalesLineItem, SalesSession
from produce_ledger.services import carry_forward, ledger_engine
from produce_ledger.services.audit_service import log_audit_event
from produce_ledger.services.balance_algebra import apply_delta
from produce_ledger.services.inventory_service import add_movement
from produce_ledger.services.key_locks import balance_key, inventory_key, ledger_locks, session_key
from produce_ledger.services.references import (
    clean_type_name,
    require_item,
    require_non_negative,
    require_party,
    require_positive,
)


@dataclass(frozen=True)
class SaleLine:
    type_name: str
    quantity: Decimal
    rate: Decimal


def open_sales_session(db: Session, *, session_date: date) -> SalesSession:
    """Get-or-create the single sales session for a date."""
    with ledger_locks.hold([session_key("sales-date", session_date.isoformat())]), unit_of_work(db):
        existing = db.execute(
            select(SalesSession).where(SalesSession.session_date == session_date)
        ).scalar_one_or_none()
        if existing is not None:
            return existing
        session = SalesSession(
            id=generate_shortuuid(),
            session_date=session_date,
            total_sellers=0,
            total_sales_amount=ZERO_MONEY,
            status="active",
        )
        db.add(session)
    return session


def get_sales_session(db: Session, session_id: str, *, for_update: bool = False) -> SalesSession:
    stmt = select(SalesSession).where(SalesSession.id == session_id)
    if for_update:
        stmt = stmt.with_for_update()
    session = db.execute(stmt).scalar_one_or_none()
    if session is None:
        raise LedgerReferenceError(f"Sales session not found: {session_id}")
    return session


def _normalize_lines(lines: Sequence[SaleLine]) -> list[SaleLine]:
    if not lines:
        raise LedgerValidationError("A sale needs at least one line item")
    normalized = []
    for line in lines:
        quantity = to_qty(line.quantity)
        rate = to_rate(line.rate)
        require_positive("quantity", quantity)
        require_non_negative("rate", rate)
        normalized.append(SaleLine(type_name=clean_type_name(line.type_name), quantity=quantity, rate=rate))
    return normalized


def _check_availability(db: Session, *, item_id: str, on_date: date, as_of: date, lines: list[SaleLine]) -> None:
    requested: dict[str, Decimal] = {}
    for line in lines:
        requested[line.type_name] = requested.get(line.type_name, ZERO_QTY) + line.quantity

    available = {
        stock.type_name: stock.closing_stock
        for stock in carry_forward.available_stock(db, item_id=item_id, on_date=on_date, as_of=as_of)
    }
    for type_name, quantity in requested.items():
        on_hand = available.get(type_name, ZERO_QTY)
        if quantity > on_hand:
            raise LedgerValidationError(
                f"Insufficient stock for '{type_name}': requested {quantity}, available {on_hand}"
            )


def record_sale(
    db: Session,
    *,
    session_id: str,
    seller_id: str,
    item_id: str,
    lines: Sequence[SaleLine],
    quantity_returned: Decimal,
    amount_paid: Decimal,
    discount: Decimal,
    as_of: date,
    actor: str | None = None,
) -> SalesEntry:
    normalized = _normalize_lines(lines)
    quantity_returned = to_qty(quantity_returned)
    amount_paid = to_money(amount_paid)
    discount = to_money(discount)
    require_non_negative("quantity_returned", quantity_returned)
    require_non_negative("amount_paid", amount_paid)
    require_non_negative("less_discount", discount)

    total_amount = to_money(sum((line.quantity * line.rate for line in normalized), ZERO_MONEY))
    total_quantity = to_qty(sum((line.quantity for line in normalized), ZERO_QTY))
    payment_delta = to_money(total_amount - amount_paid - discount)
    quantity_delta = to_qty(total_quantity - quantity_returned)

    keys = [session_key("sales", session_id), balance_key("seller", seller_id, item_id)]
    keys.extend(inventory_key(item_id, line.type_name) for line in normalized)
    with ledger_locks.hold(keys), unit_of_work(db):
        session = get_sales_session(db, session_id, for_update=True)
        if session.status != "active":
            raise LedgerValidationError("Sales session is already completed")
        require_party(db, "seller", seller_id)
        require_item(db, item_id)
        event_date = session.session_date

        if settings.enforce_stock_availability:
            _check_availability(db, item_id=item_id, on_date=event_date, as_of=as_of, lines=normalized)

        entry_id = generate_shortuuid()
        for line in normalized:
            ledger_engine.remove_stock(
                db,
                item_id=item_id,
                type_name=line.type_name,
                quantity=line.quantity,
                as_of=as_of,
                reason="sale",
            )
            ledger_engine.record_snapshot_sale(
                db, on_date=event_date, item_id=item_id, type_name=line.type_name, quantity=line.quantity
            )
            add_movement(
                db,
                movement_date=event_date,
                item_id=item_id,
                type_name=line.type_name,
                qty_delta=-line.quantity,
                reason="sale",
                reference_id=entry_id,
            )

        update = ledger_engine.apply_balance_delta(
            db,
            party_kind="seller",
            party_id=seller_id,
            item_id=item_id,
            payment_delta=payment_delta,
            quantity_delta=quantity_delta,
            event_date=event_date,
            event_type="sale",
            reference_id=entry_id,
            as_of=as_of,
        )
        # The entry records the unclamped figure even under the clamp policy.
        final = apply_delta(update.prior.payment_due, update.prior.quantity_due, payment_delta, quantity_delta)

        first_for_seller = (
            db.execute(
                select(SalesEntry.id)
                .where(SalesEntry.sales_session_id == session_id, SalesEntry.seller_id == seller_id)
                .limit(1)
            ).first()
            is None
        )
        entry = SalesEntry(
            id=entry_id,
            sales_session_id=session_id,
            seller_id=seller_id,
            item_id=item_id,
            total_amount_purchased=total_amount,
            total_quantity_purchased=total_quantity,
            quantity_returned=quantity_returned,
            amount_paid=amount_paid,
            less_discount=discount,
            final_quantity_outstanding=final.quantity_due,
            final_payment_outstanding=final.payment_due,
        )
        db.add(entry)
        for line in normalized:
            db.add(
                SalesLineItem(
                    id=generate_shortuuid(),
                    sales_entry_id=entry_id,
                    type_name=line.type_name,
                    quantity=line.quantity,
                    sale_rate=line.rate,
                    amount=to_money(line.quantity * line.rate),
                )
            )
        session.total_sales_amount = to_money(session.total_sales_amount + total_amount)
        if first_for_seller:
            session.total_sellers += 1

        log_audit_event(
            db,
            actor=actor,
            action="sale.create",
            target_type="sales_entry",
            target_id=entry_id,
            metadata_json={
                "session_date": event_date.isoformat(),
                "seller_id": seller_id,
                "item_id": item_id,
                "lines": len(normalized),
                "total": str(total_amount),
                "final_payment_outstanding": str(final.payment_due),
                "final_quantity_outstanding": str(final.quantity_due),
            },
        )

    log_ledger_event(
        "event_recorded",
        event_type="sale",
        entry_id=entry_id,
        item_id=item_id,
        seller_id=seller_id,
        total=total_amount,
        final_payment_outstanding=final.payment_due,
    )
    return entry


def get_sales_entry(db: Session, entry_id: str) -> tuple[SalesEntry, list[SalesLineItem]]:
    entry = db.execute(select(SalesEntry).where(SalesEntry.id == entry_id)).scalar_one_or_none()
    if entry is None:
        raise LedgerReferenceError(f"Sales entry not found: {entry_id}")
    lines = db.execute(
        select(SalesLineItem)
        .where(SalesLineItem.sales_entry_id == entry_id)
        .order_by(SalesLineItem.type_name.asc(), SalesLineItem.id.asc())
    ).scalars().all()
    return entry, list(lines)


def search_sales_entries(
    db: Session,
    *,
    start_date: date,
    end_date: date,
    seller_id: str | None = None,
    item_id: str | None = None,
) -> list[tuple[SalesEntry, date]]:
    stmt = (
        select(SalesEntry, SalesSession.session_date)
        .join(SalesSession, SalesSession.id == SalesEntry.sales_session_id)
        .where(SalesSession.session_date >= start_date, SalesSession.session_date <= end_date)
    )
    if seller_id:
        stmt = stmt.where(SalesEntry.seller_id == seller_id)
    if item_id:
        stmt = stmt.where(SalesEntry.item_id == item_id)
    stmt = stmt.order_by(SalesSession.session_date.desc(), SalesEntry.created_at.desc(), SalesEntry.id.asc())
    return [(entry, session_date) for entry, session_date in db.execute(stmt).all()]


def complete_sales_session(db: Session, *, session_id: str) -> SalesSession:
    with ledger_locks.hold([session_key("sales", session_id)]), unit_of_work(db):
        session = get_sales_session(db, session_id, for_update=True)
        session.status = "completed"
    return session
