from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from produce_ledger.core.errors import LedgerReferenceError, LedgerValidationError
from produce_ledger.core.id_utils import generate_shortuuid
from produce_ledger.core.money import ZERO_MONEY, to_money, to_qty, to_rate
from produce_ledger.core.observability import log_ledger_event
from produce_ledger.db.unit_of_work import unit_of_work
from produce_ledger.models.procurement import ProcurementEntry, ProcurementSession
from produce_ledger.services import ledger_engine
from produce_ledger.services.audit_service import log_audit_event
from produce_ledger.services.inventory_service import add_movement
from produce_ledger.services.key_locks import balance_key, inventory_key, ledger_locks, session_key
from produce_ledger.services.references import (
    clean_type_name,
    require_item,
    require_non_negative,
    require_party,
    require_positive,
)


def open_procurement_session(db: Session, *, session_date: date) -> ProcurementSession:
    """Get-or-create the single procurement session for a date."""
    with ledger_locks.hold([session_key("procurement-date", session_date.isoformat())]), unit_of_work(db):
        existing = db.execute(
            select(ProcurementSession).where(ProcurementSession.session_date == session_date)
        ).scalar_one_or_none()
        if existing is not None:
            return existing
        session = ProcurementSession(
            id=generate_shortuuid(),
            session_date=session_date,
            total_suppliers=0,
            total_amount=ZERO_MONEY,
            status="active",
        )
        db.add(session)
    return session


def get_procurement_session(db: Session, session_id: str, *, for_update: bool = False) -> ProcurementSession:
    stmt = select(ProcurementSession).where(ProcurementSession.id == session_id)
    if for_update:
        stmt = stmt.with_for_update()
    session = db.execute(stmt).scalar_one_or_none()
    if session is None:
        raise LedgerReferenceError(f"Procurement session not found: {session_id}")
    return session


def record_procurement(
    db: Session,
    *,
    session_id: str,
    supplier_id: str,
    item_id: str,
    type_name: str,
    quantity: Decimal,
    rate: Decimal,
    as_of: date,
    actor: str | None = None,
) -> ProcurementEntry:
    quantity = to_qty(quantity)
    rate = to_rate(rate)
    type_name = clean_type_name(type_name)
    require_positive("quantity", quantity)
    require_non_negative("rate", rate)
    total_amount = to_money(quantity * rate)

    keys = [
        session_key("procurement", session_id),
        inventory_key(item_id, type_name),
        balance_key("supplier", supplier_id, item_id),
    ]
    with ledger_locks.hold(keys), unit_of_work(db):
        session = get_procurement_session(db, session_id, for_update=True)
        if session.status != "active":
            raise LedgerValidationError("Procurement session is already completed")
        require_party(db, "supplier", supplier_id)
        require_item(db, item_id)
        event_date = session.session_date

        ledger_engine.touch_item_type(db, item_id=item_id, type_name=type_name, event_date=event_date)
        ledger_engine.add_stock(
            db, item_id=item_id, type_name=type_name, quantity=quantity, rate=rate, as_of=as_of
        )
        ledger_engine.record_snapshot_purchase(
            db, on_date=event_date, item_id=item_id, type_name=type_name, quantity=quantity, rate=rate
        )

        entry_id = generate_shortuuid()
        ledger_engine.apply_balance_delta(
            db,
            party_kind="supplier",
            party_id=supplier_id,
            item_id=item_id,
            payment_delta=total_amount,
            quantity_delta=quantity,
            event_date=event_date,
            event_type="procurement",
            reference_id=entry_id,
            as_of=as_of,
        )
        add_movement(
            db,
            movement_date=event_date,
            item_id=item_id,
            type_name=type_name,
            qty_delta=quantity,
            reason="procurement",
            reference_id=entry_id,
            unit_cost=rate,
        )

        first_for_supplier = (
            db.execute(
                select(ProcurementEntry.id)
                .where(
                    ProcurementEntry.procurement_session_id == session_id,
                    ProcurementEntry.supplier_id == supplier_id,
                )
                .limit(1)
            ).first()
            is None
        )
        entry = ProcurementEntry(
            id=entry_id,
            procurement_session_id=session_id,
            supplier_id=supplier_id,
            item_id=item_id,
            type_name=type_name,
            quantity=quantity,
            rate=rate,
            total_amount=total_amount,
        )
        db.add(entry)
        session.total_amount = to_money(session.total_amount + total_amount)
        if first_for_supplier:
            session.total_suppliers += 1

        log_audit_event(
            db,
            actor=actor,
            action="procurement.create",
            target_type="procurement_entry",
            target_id=entry_id,
            metadata_json={
                "session_date": event_date.isoformat(),
                "supplier_id": supplier_id,
                "item_id": item_id,
                "type_name": type_name,
                "quantity": str(quantity),
                "rate": str(rate),
                "total": str(total_amount),
            },
        )

    log_ledger_event(
        "event_recorded",
        event_type="procurement",
        entry_id=entry_id,
        item_id=item_id,
        type_name=type_name,
        quantity=quantity,
        rate=rate,
    )
    return entry


def list_procurement_entries(db: Session, *, session_id: str) -> list[ProcurementEntry]:
    get_procurement_session(db, session_id)
    return list(
        db.execute(
            select(ProcurementEntry)
            .where(ProcurementEntry.procurement_session_id == session_id)
            .order_by(ProcurementEntry.created_at.asc(), ProcurementEntry.id.asc())
        ).scalars().all()
    )


def complete_procurement_session(db: Session, *, session_id: str) -> ProcurementSession:
    with ledger_locks.hold([session_key("procurement", session_id)]), unit_of_work(db):
        session = get_procurement_session(db, session_id, for_update=True)
        session.status = "completed"
    return session


def search_procurement_entries(
    db: Session,
    *,
    start_date: date,
    end_date: date,
    supplier_id: str | None = None,
    item_id: str | None = None,
) -> list[tuple[ProcurementEntry, date]]:
    """Entries whose session falls in [start_date, end_date], newest session first."""
    stmt = (
        select(ProcurementEntry, ProcurementSession.session_date)
        .join(ProcurementSession, ProcurementSession.id == ProcurementEntry.procurement_session_id)
        .where(ProcurementSession.session_date >= start_date, ProcurementSession.session_date <= end_date)
    )
    if supplier_id:
        stmt = stmt.where(ProcurementEntry.supplier_id == supplier_id)
    if item_id:
        stmt = stmt.where(ProcurementEntry.item_id == item_id)
    stmt = stmt.order_by(
        ProcurementSession.session_date.desc(), ProcurementEntry.created_at.desc(), ProcurementEntry.id.asc()
    )
    return [(entry, session_date) for entry, session_date in db.execute(stmt).all()]
