from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from produce_ledger.core.api_docs import error_responses
from produce_ledger.core.deps import get_business_date, get_db
from produce_ledger.core.errors import LedgerReferenceError
from produce_ledger.models.sales import SalesEntry, SalesLineItem, SalesSession
from produce_ledger.schemas.common import CreatedOut, PaginationMeta
from produce_ledger.schemas.procurement import SessionOpenIn
from produce_ledger.schemas.sales import (
    SaleCreate,
    SaleEntryOut,
    SaleLineOut,
    SaleSearchItemOut,
    SaleSearchOut,
    SalesSessionOut,
)
from produce_ledger.services.sales_service import (
    SaleLine,
    complete_sales_session,
    get_sales_entry,
    open_sales_session,
    record_sale,
    search_sales_entries,
)

router = APIRouter(prefix="/sales", tags=["sales"])


def _session_out(session: SalesSession) -> SalesSessionOut:
    return SalesSessionOut(
        id=session.id,
        session_date=session.session_date,
        total_sellers=session.total_sellers,
        total_sales_amount=float(session.total_sales_amount),
        status=session.status,
    )


def sale_line_out(line: SalesLineItem) -> SaleLineOut:
    return SaleLineOut(
        type_name=line.type_name,
        quantity=float(line.quantity),
        sale_rate=float(line.sale_rate),
        amount=float(line.amount),
    )


def _entry_out(entry: SalesEntry, lines: list[SalesLineItem]) -> SaleEntryOut:
    return SaleEntryOut(
        id=entry.id,
        sales_session_id=entry.sales_session_id,
        seller_id=entry.seller_id,
        item_id=entry.item_id,
        total_amount_purchased=float(entry.total_amount_purchased),
        total_quantity_purchased=float(entry.total_quantity_purchased),
        quantity_returned=float(entry.quantity_returned),
        amount_paid=float(entry.amount_paid),
        less_discount=float(entry.less_discount),
        final_quantity_outstanding=float(entry.final_quantity_outstanding),
        final_payment_outstanding=float(entry.final_payment_outstanding),
        created_at=entry.created_at,
        line_items=[sale_line_out(line) for line in lines],
    )


@router.post(
    "/sessions",
    response_model=SalesSessionOut,
    summary="Get or create the sales session for a date",
    responses=error_responses(400, 422, 500),
)
def open_session(payload: SessionOpenIn, db: Session = Depends(get_db)):
    return _session_out(open_sales_session(db, session_date=payload.session_date))


@router.post(
    "/sessions/{session_id}/complete",
    response_model=SalesSessionOut,
    summary="Close a sales session to further entries",
    responses=error_responses(404, 500),
)
def complete_session(session_id: str, db: Session = Depends(get_db)):
    try:
        session = complete_sales_session(db, session_id=session_id)
    except LedgerReferenceError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return _session_out(session)


@router.post(
    "/entries",
    response_model=CreatedOut,
    summary="Record a sale to a seller",
    responses=error_responses(400, 404, 422, 500),
)
def create_entry(
    payload: SaleCreate,
    db: Session = Depends(get_db),
    as_of: date = Depends(get_business_date),
):
    try:
        entry = record_sale(
            db,
            session_id=payload.sales_session_id,
            seller_id=payload.seller_id,
            item_id=payload.item_id,
            lines=[
                SaleLine(type_name=line.type_name, quantity=line.quantity, rate=line.rate)
                for line in payload.line_items
            ],
            quantity_returned=payload.quantity_returned,
            amount_paid=payload.amount_paid,
            discount=payload.less_discount,
            as_of=as_of,
        )
    except LedgerReferenceError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return CreatedOut(id=entry.id)


@router.get(
    "/entries/{entry_id}",
    response_model=SaleEntryOut,
    summary="Get a sale with its line items",
    responses=error_responses(404, 500),
)
def get_entry(entry_id: str, db: Session = Depends(get_db)):
    try:
        entry, lines = get_sales_entry(db, entry_id)
    except LedgerReferenceError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return _entry_out(entry, lines)


@router.get(
    "/entries",
    response_model=SaleSearchOut,
    summary="Search sales entries by date range, seller and item",
    responses=error_responses(400, 422, 500),
)
def search_entries(
    start_date: date = Query(..., description="From date (YYYY-MM-DD)"),
    end_date: date = Query(..., description="To date (YYYY-MM-DD)"),
    seller_id: str | None = Query(default=None),
    item_id: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200, description="Page size"),
    offset: int = Query(default=0, ge=0, description="Pagination offset"),
    db: Session = Depends(get_db),
):
    if end_date < start_date:
        raise HTTPException(status_code=400, detail="end_date cannot be before start_date")
    rows = search_sales_entries(db, start_date=start_date, end_date=end_date, seller_id=seller_id, item_id=item_id)
    page = rows[offset : offset + limit]
    items = [
        SaleSearchItemOut(
            id=entry.id,
            session_date=session_date,
            sales_session_id=entry.sales_session_id,
            seller_id=entry.seller_id,
            item_id=entry.item_id,
            total_amount_purchased=float(entry.total_amount_purchased),
            total_quantity_purchased=float(entry.total_quantity_purchased),
            quantity_returned=float(entry.quantity_returned),
            amount_paid=float(entry.amount_paid),
            less_discount=float(entry.less_discount),
            final_quantity_outstanding=float(entry.final_quantity_outstanding),
            final_payment_outstanding=float(entry.final_payment_outstanding),
            created_at=entry.created_at,
        )
        for entry, session_date in page
    ]
    return SaleSearchOut(
        pagination=PaginationMeta(
            total=len(rows),
            limit=limit,
            offset=offset,
            count=len(items),
            has_next=(offset + len(items)) < len(rows),
        ),
        items=items,
    )
