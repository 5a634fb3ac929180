from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from produce_ledger.core.api_docs import error_responses
from produce_ledger.core.deps import get_business_date, get_db
from produce_ledger.core.errors import LedgerReferenceError
from produce_ledger.schemas.common import CreatedOut, PaginationMeta, PartyKind
from produce_ledger.schemas.payment import PaymentCreate, PaymentListOut, PaymentOut
from produce_ledger.services.payment_service import list_payments, record_payment

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post(
    "",
    response_model=CreatedOut,
    summary="Record a payment from a seller or to a supplier",
    responses=error_responses(400, 404, 422, 500),
)
def create_payment(
    payload: PaymentCreate,
    db: Session = Depends(get_db),
    as_of: date = Depends(get_business_date),
):
    try:
        payment = record_payment(
            db,
            payment_date=payload.payment_date,
            party_kind=payload.party_kind,
            party_id=payload.party_id,
            item_id=payload.item_id,
            amount=payload.amount,
            quantity_returned=payload.quantity_returned,
            notes=payload.notes,
            as_of=as_of,
        )
    except LedgerReferenceError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return CreatedOut(id=payment.id)


@router.get(
    "",
    response_model=PaymentListOut,
    summary="List payments",
    responses=error_responses(422, 500),
)
def get_payments(
    party_kind: PartyKind | None = Query(default=None),
    party_id: str | None = Query(default=None),
    payment_date: date | None = Query(default=None, description="Filter by date (YYYY-MM-DD)"),
    limit: int = Query(default=50, ge=1, le=200, description="Page size"),
    offset: int = Query(default=0, ge=0, description="Pagination offset"),
    db: Session = Depends(get_db),
):
    rows = list_payments(db, party_kind=party_kind, party_id=party_id, payment_date=payment_date)
    page = rows[offset : offset + limit]
    items = [
        PaymentOut(
            id=row.id,
            payment_date=row.payment_date,
            party_kind=row.party_kind,
            party_id=row.party_id,
            item_id=row.item_id,
            amount=float(row.amount),
            quantity_returned=float(row.quantity_returned),
            notes=row.notes,
            created_at=row.created_at,
        )
        for row in page
    ]
    return PaymentListOut(
        pagination=PaginationMeta(
            total=len(rows),
            limit=limit,
            offset=offset,
            count=len(items),
            has_next=(offset + len(items)) < len(rows),
        ),
        items=items,
    )
