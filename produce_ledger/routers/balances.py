from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from produce_ledger.core.api_docs import error_responses
from produce_ledger.core.deps import get_business_date, get_db
from produce_ledger.core.errors import LedgerReferenceError
from produce_ledger.models.balances import OpeningBalance
from produce_ledger.schemas.balances import (
    BalanceOut,
    BalanceSummaryOut,
    BalanceTotalsOut,
    LedgerBalanceOut,
    LedgerLineOut,
    LedgerOut,
    OpeningBalanceDeleteOut,
    OpeningBalanceIn,
    OpeningBalanceOut,
    OpeningBalanceSetOut,
)
from produce_ledger.schemas.common import PartyKind
from produce_ledger.services.balance_algebra import Balance
from produce_ledger.services.opening_balance_service import (
    delete_opening_balance,
    list_opening_balances,
    set_opening_balance,
)
from produce_ledger.services.reporting_service import balance_summary, get_balance, ledger_history

opening_router = APIRouter(prefix="/opening-balances", tags=["opening-balances"])
router = APIRouter(prefix="/balances", tags=["balances"])


def _opening_out(row: OpeningBalance) -> OpeningBalanceOut:
    return OpeningBalanceOut(
        id=row.id,
        party_kind=row.party_kind,
        party_id=row.party_id,
        item_id=row.item_id,
        opening_payment_due=float(row.opening_payment_due),
        opening_quantity_due=float(row.opening_quantity_due),
        effective_from_date=row.effective_from_date,
        created_date=row.created_date,
        last_modified_date=row.last_modified_date,
    )


def _ledger_balance(balance: Balance) -> LedgerBalanceOut:
    return LedgerBalanceOut(payment_due=float(balance.payment_due), quantity_due=float(balance.quantity_due))


@opening_router.put(
    "",
    response_model=OpeningBalanceSetOut,
    summary="Set or edit an opening balance",
    description="Existing balance history for the party and item is replayed on top of the new opening.",
    responses=error_responses(400, 404, 422, 500),
)
def put_opening_balance(
    payload: OpeningBalanceIn,
    db: Session = Depends(get_db),
    as_of: date = Depends(get_business_date),
):
    try:
        row, fold = set_opening_balance(
            db,
            party_kind=payload.party_kind,
            party_id=payload.party_id,
            item_id=payload.item_id,
            payment_due=payload.opening_payment_due,
            quantity_due=payload.opening_quantity_due,
            effective_from_date=payload.effective_from_date,
            as_of=as_of,
        )
    except LedgerReferenceError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    if fold is None:
        return OpeningBalanceSetOut(opening_balance=_opening_out(row), replayed=False)
    return OpeningBalanceSetOut(
        opening_balance=_opening_out(row),
        replayed=True,
        payment_due=float(fold.balance.payment_due),
        quantity_due=float(fold.balance.quantity_due),
        needs_review=fold.needs_review,
    )


@opening_router.get(
    "",
    response_model=list[OpeningBalanceOut],
    summary="List opening balances",
    responses=error_responses(422, 500),
)
def get_opening_balances(
    party_kind: PartyKind | None = Query(default=None),
    party_id: str | None = Query(default=None),
    item_id: str | None = Query(default=None),
    db: Session = Depends(get_db),
):
    rows = list_opening_balances(db, party_kind=party_kind, party_id=party_id, item_id=item_id)
    return [_opening_out(row) for row in rows]


@opening_router.delete(
    "/{party_kind}/{party_id}/{item_id}",
    response_model=OpeningBalanceDeleteOut,
    summary="Remove an opening balance",
    responses=error_responses(404, 422, 500),
)
def remove_opening_balance(
    party_kind: PartyKind,
    party_id: str,
    item_id: str,
    db: Session = Depends(get_db),
    as_of: date = Depends(get_business_date),
):
    try:
        fold = delete_opening_balance(db, party_kind=party_kind, party_id=party_id, item_id=item_id, as_of=as_of)
    except LedgerReferenceError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return OpeningBalanceDeleteOut(replayed=fold is not None)


@router.get(
    "/summary",
    response_model=BalanceSummaryOut,
    summary="Outstanding totals per party kind",
    responses=error_responses(422, 500),
)
def get_balance_summary(
    party_kind: PartyKind | None = Query(default=None),
    db: Session = Depends(get_db),
):
    return BalanceSummaryOut(
        items=[
            BalanceTotalsOut(
                party_kind=totals.party_kind,
                parties=totals.parties,
                total_payment_due=float(totals.total_payment_due),
                total_quantity_due=float(totals.total_quantity_due),
                needs_review=totals.needs_review,
            )
            for totals in balance_summary(db, party_kind=party_kind)
        ]
    )


@router.get(
    "/{party_kind}/{party_id}/{item_id}",
    response_model=BalanceOut,
    summary="Outstanding balance for a party and item",
    responses=error_responses(400, 404, 422, 500),
)
def get_party_balance(party_kind: PartyKind, party_id: str, item_id: str, db: Session = Depends(get_db)):
    try:
        view = get_balance(db, party_kind=party_kind, party_id=party_id, item_id=item_id)
    except LedgerReferenceError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return BalanceOut(
        party_kind=view.party_kind,
        party_id=view.party_id,
        item_id=view.item_id,
        payment_due=float(view.display_payment_due),
        quantity_due=float(view.display_quantity_due),
        signed_payment_due=float(view.payment_due),
        signed_quantity_due=float(view.quantity_due),
        needs_review=view.needs_review,
        has_activity=view.has_activity,
        last_updated=view.last_updated,
    )


@router.get(
    "/{party_kind}/{party_id}/{item_id}/ledger",
    response_model=LedgerOut,
    summary="Ledger history with running balance",
    responses=error_responses(400, 404, 422, 500),
)
def get_party_ledger(
    party_kind: PartyKind,
    party_id: str,
    item_id: str,
    start_date: date | None = Query(default=None, description="Filter from date (YYYY-MM-DD)"),
    end_date: date | None = Query(default=None, description="Filter to date (YYYY-MM-DD)"),
    db: Session = Depends(get_db),
):
    if start_date and end_date and end_date < start_date:
        raise HTTPException(status_code=400, detail="end_date cannot be before start_date")
    try:
        history = ledger_history(
            db,
            party_kind=party_kind,
            party_id=party_id,
            item_id=item_id,
            start_date=start_date,
            end_date=end_date,
        )
    except LedgerReferenceError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return LedgerOut(
        party_kind=party_kind,
        party_id=party_id,
        item_id=item_id,
        start_date=start_date,
        end_date=end_date,
        opening=_ledger_balance(history.opening),
        brought_forward=_ledger_balance(history.brought_forward),
        closing=_ledger_balance(history.closing),
        lines=[
            LedgerLineOut(
                seq=line.seq,
                event_date=line.event_date,
                event_type=line.event_type,
                reference_id=line.reference_id,
                payment_delta=float(line.payment_delta),
                quantity_delta=float(line.quantity_delta),
                payment_due=float(line.payment_due),
                quantity_due=float(line.quantity_due),
            )
            for line in history.lines
        ],
    )
