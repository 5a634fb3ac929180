"""
Rebuild OutstandingBalance for one party+item from its opening balance and the
balance journal. Rows are folded in seq order, the order the live engine applied
them, so backdated events replay exactly as they were written. The fold is pure:
the same journal and opening always give the same balance, the same per-sale
statements and the same review flag.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from produce_ledger.core.config import settings
from produce_ledger.core.id_utils import generate_shortuuid
from produce_ledger.core.observability import log_ledger_event
from produce_ledger.models.balances import BalanceJournal, OutstandingBalance
from produce_ledger.models.sales import SalesEntry
from produce_ledger.services.balance_algebra import (
    Balance,
    get_opening_row,
    get_outstanding_row,
    opening_balance_of,
    step_balance,
)


@dataclass
class BalanceFold:
    opening: Balance
    balance: Balance
    needs_review: bool = False
    journal_rows: int = 0
    # sales entry id -> unclamped balance right after that sale
    sale_finals: dict[str, Balance] = field(default_factory=dict)


def fold_journal(opening: Balance, rows: Iterable[BalanceJournal], *, policy: str | None = None) -> BalanceFold:
    policy = policy or settings.balance_policy
    fold = BalanceFold(opening=opening, balance=opening)
    for row in rows:
        step = step_balance(fold.balance, row.payment_delta, row.quantity_delta, policy=policy)
        if step.crossed:
            fold.needs_review = True
        if row.event_type == "sale" and row.reference_id:
            fold.sale_finals[row.reference_id] = step.unclamped
        fold.balance = step.new
        fold.journal_rows += 1
    return fold


def journal_rows(db: Session, *, party_kind: str, party_id: str, item_id: str) -> list[BalanceJournal]:
    return list(
        db.execute(
            select(BalanceJournal)
            .where(
                BalanceJournal.party_kind == party_kind,
                BalanceJournal.party_id == party_id,
                BalanceJournal.item_id == item_id,
            )
            .order_by(BalanceJournal.seq.asc())
        ).scalars().all()
    )


def has_history(db: Session, *, party_kind: str, party_id: str, item_id: str) -> bool:
    journal_hit = db.execute(
        select(BalanceJournal.seq)
        .where(
            BalanceJournal.party_kind == party_kind,
            BalanceJournal.party_id == party_id,
            BalanceJournal.item_id == item_id,
        )
        .limit(1)
    ).first()
    if journal_hit is not None:
        return True
    return get_outstanding_row(db, party_kind=party_kind, party_id=party_id, item_id=item_id) is not None


def compute_fold(db: Session, *, party_kind: str, party_id: str, item_id: str) -> BalanceFold:
    opening = opening_balance_of(get_opening_row(db, party_kind=party_kind, party_id=party_id, item_id=item_id))
    return fold_journal(opening, journal_rows(db, party_kind=party_kind, party_id=party_id, item_id=item_id))


def replay_balance(
    db: Session,
    *,
    party_kind: str,
    party_id: str,
    item_id: str,
    as_of: date,
) -> BalanceFold:
    """
    Rewrite the outstanding row and every seller statement for the key.

    Callers hold the balance lock and own the transaction.
    """
    fold = compute_fold(db, party_kind=party_kind, party_id=party_id, item_id=item_id)

    row = get_outstanding_row(db, party_kind=party_kind, party_id=party_id, item_id=item_id, for_update=True)
    if row is None:
        row = OutstandingBalance(
            id=generate_shortuuid(),
            party_kind=party_kind,
            party_id=party_id,
            item_id=item_id,
        )
        db.add(row)
    row.payment_due = fold.balance.payment_due
    row.quantity_due = fold.balance.quantity_due
    row.needs_review = fold.needs_review
    row.last_updated = as_of

    statements_rewritten = 0
    if party_kind == "seller" and fold.sale_finals:
        entries = db.execute(
            select(SalesEntry).where(SalesEntry.id.in_(list(fold.sale_finals))).with_for_update()
        ).scalars().all()
        for entry in entries:
            final = fold.sale_finals[entry.id]
            if (
                Decimal(entry.final_payment_outstanding) != final.payment_due
                or Decimal(entry.final_quantity_outstanding) != final.quantity_due
            ):
                statements_rewritten += 1
            entry.final_payment_outstanding = final.payment_due
            entry.final_quantity_outstanding = final.quantity_due
    db.flush()

    log_ledger_event(
        "replay",
        level=logging.INFO,
        party_kind=party_kind,
        party_id=party_id,
        item_id=item_id,
        journal_rows=fold.journal_rows,
        payment_due=fold.balance.payment_due,
        quantity_due=fold.balance.quantity_due,
        needs_review=fold.needs_review,
        statements_rewritten=statements_rewritten,
    )
    return fold
