from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from produce_ledger.core.errors import LedgerReferenceError
from produce_ledger.core.money import to_money, to_qty
from produce_ledger.db.unit_of_work import unit_of_work
from produce_ledger.models.balances import OpeningBalance
from produce_ledger.services.audit_service import log_audit_event
from produce_ledger.services.balance_algebra import get_opening_row
from produce_ledger.services.key_locks import balance_key, ledger_locks
from produce_ledger.services.ledger_engine import upsert_aggregate
from produce_ledger.services.references import require_item, require_non_negative, require_party
from produce_ledger.services.replay_service import BalanceFold, has_history, replay_balance


def set_opening_balance(
    db: Session,
    *,
    party_kind: str,
    party_id: str,
    item_id: str,
    payment_due: Decimal,
    quantity_due: Decimal,
    effective_from_date: date,
    as_of: date,
    actor: str | None = None,
) -> tuple[OpeningBalance, BalanceFold | None]:
    """
    Create or edit the opening balance for a party+item.

    If the key already has balance history, the journal is replayed on top of
    the new opening so the outstanding row and past seller statements follow.
    """
    payment_due = to_money(payment_due)
    quantity_due = to_qty(quantity_due)
    require_non_negative("opening_payment_due", payment_due)
    require_non_negative("opening_quantity_due", quantity_due)

    with ledger_locks.hold([balance_key(party_kind, party_id, item_id)]), unit_of_work(db):
        # Inactive parties keep their history editable.
        require_party(db, party_kind, party_id, active=False)
        require_item(db, item_id, active=False)

        def _mutate(row: OpeningBalance) -> None:
            row.opening_payment_due = payment_due
            row.opening_quantity_due = quantity_due
            row.effective_from_date = effective_from_date
            row.last_modified_date = as_of

        row, created = upsert_aggregate(
            db,
            OpeningBalance,
            {"party_kind": party_kind, "party_id": party_id, "item_id": item_id},
            seed=lambda: {"created_date": as_of},
            mutate=_mutate,
        )

        fold = None
        if has_history(db, party_kind=party_kind, party_id=party_id, item_id=item_id):
            fold = replay_balance(db, party_kind=party_kind, party_id=party_id, item_id=item_id, as_of=as_of)

        log_audit_event(
            db,
            actor=actor,
            action="opening_balance.create" if created else "opening_balance.update",
            target_type="opening_balance",
            target_id=row.id,
            metadata_json={
                "party_kind": party_kind,
                "party_id": party_id,
                "item_id": item_id,
                "opening_payment_due": str(payment_due),
                "opening_quantity_due": str(quantity_due),
                "replayed": fold is not None,
            },
        )
    return row, fold


def delete_opening_balance(
    db: Session,
    *,
    party_kind: str,
    party_id: str,
    item_id: str,
    as_of: date,
    actor: str | None = None,
) -> BalanceFold | None:
    with ledger_locks.hold([balance_key(party_kind, party_id, item_id)]), unit_of_work(db):
        row = get_opening_row(db, party_kind=party_kind, party_id=party_id, item_id=item_id)
        if row is None:
            raise LedgerReferenceError("Opening balance not found")
        row_id = row.id
        db.delete(row)
        db.flush()

        fold = None
        if has_history(db, party_kind=party_kind, party_id=party_id, item_id=item_id):
            fold = replay_balance(db, party_kind=party_kind, party_id=party_id, item_id=item_id, as_of=as_of)

        log_audit_event(
            db,
            actor=actor,
            action="opening_balance.delete",
            target_type="opening_balance",
            target_id=row_id,
            metadata_json={"party_kind": party_kind, "party_id": party_id, "item_id": item_id},
        )
    return fold


def list_opening_balances(
    db: Session,
    *,
    party_kind: str | None = None,
    party_id: str | None = None,
    item_id: str | None = None,
) -> list[OpeningBalance]:
    stmt = select(OpeningBalance)
    if party_kind:
        stmt = stmt.where(OpeningBalance.party_kind == party_kind)
    if party_id:
        stmt = stmt.where(OpeningBalance.party_id == party_id)
    if item_id:
        stmt = stmt.where(OpeningBalance.item_id == item_id)
    stmt = stmt.order_by(OpeningBalance.party_kind.asc(), OpeningBalance.party_id.asc(), OpeningBalance.item_id.asc())
    return list(db.execute(stmt).scalars().all())
