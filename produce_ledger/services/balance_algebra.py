from decimal import Decimal
from typing import NamedTuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from produce_ledger.core.money import ZERO_MONEY, ZERO_QTY, to_money, to_qty
from produce_ledger.models.balances import OpeningBalance, OutstandingBalance


class Balance(NamedTuple):
    payment_due: Decimal
    quantity_due: Decimal


ZERO_BALANCE = Balance(ZERO_MONEY, ZERO_QTY)


def apply_delta(
    prior_payment_due: Decimal,
    prior_quantity_due: Decimal,
    payment_delta: Decimal,
    quantity_delta: Decimal,
) -> Balance:
    """Signed running total; no clamping happens here."""
    return Balance(
        to_money(prior_payment_due + payment_delta),
        to_qty(prior_quantity_due + quantity_delta),
    )


def clamp(balance: Balance) -> Balance:
    return Balance(max(ZERO_MONEY, balance.payment_due), max(ZERO_QTY, balance.quantity_due))


def crosses_below_zero(prior: Balance, new: Balance) -> bool:
    return (prior.payment_due >= 0 > new.payment_due) or (prior.quantity_due >= 0 > new.quantity_due)


class BalanceStep(NamedTuple):
    new: Balance
    # what a sale statement records; never clamped
    unclamped: Balance
    crossed: bool


def step_balance(prior: Balance, payment_delta: Decimal, quantity_delta: Decimal, *, policy: str) -> BalanceStep:
    """One journal row applied under the "signed" or "clamp" balance policy."""
    unclamped = apply_delta(prior.payment_due, prior.quantity_due, payment_delta, quantity_delta)
    if policy == "clamp":
        return BalanceStep(clamp(unclamped), unclamped, False)
    return BalanceStep(unclamped, unclamped, crosses_below_zero(prior, unclamped))


def opening_balance_of(row: OpeningBalance | None) -> Balance:
    if row is None:
        return ZERO_BALANCE
    return Balance(to_money(row.opening_payment_due), to_qty(row.opening_quantity_due))


def get_outstanding_row(
    db: Session,
    *,
    party_kind: str,
    party_id: str,
    item_id: str,
    for_update: bool = False,
) -> OutstandingBalance | None:
    stmt = select(OutstandingBalance).where(
        OutstandingBalance.party_kind == party_kind,
        OutstandingBalance.party_id == party_id,
        OutstandingBalance.item_id == item_id,
    )
    if for_update:
        stmt = stmt.with_for_update()
    return db.execute(stmt).scalar_one_or_none()


def get_opening_row(db: Session, *, party_kind: str, party_id: str, item_id: str) -> OpeningBalance | None:
    return db.execute(
        select(OpeningBalance).where(
            OpeningBalance.party_kind == party_kind,
            OpeningBalance.party_id == party_id,
            OpeningBalance.item_id == item_id,
        )
    ).scalar_one_or_none()


def resolve_prior(db: Session, *, party_kind: str, party_id: str, item_id: str) -> Balance:
    """Outstanding row if present, else the opening balance, else zero."""
    outstanding = get_outstanding_row(db, party_kind=party_kind, party_id=party_id, item_id=item_id)
    if outstanding is not None:
        return Balance(to_money(outstanding.payment_due), to_qty(outstanding.quantity_due))
    opening = get_opening_row(db, party_kind=party_kind, party_id=party_id, item_id=item_id)
    return opening_balance_of(opening)
