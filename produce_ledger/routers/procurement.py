from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from produce_ledger.core.api_docs import error_responses
from produce_ledger.core.deps import get_business_date, get_db
from produce_ledger.core.errors import LedgerReferenceError
from produce_ledger.models.procurement import ProcurementSession
from produce_ledger.schemas.common import CreatedOut, PaginationMeta
from produce_ledger.schemas.procurement import (
    ProcurementEntryCreate,
    ProcurementEntryListOut,
    ProcurementEntryOut,
    ProcurementSearchItemOut,
    ProcurementSearchOut,
    ProcurementSessionOut,
    SessionOpenIn,
)
from produce_ledger.services.procurement_service import (
    complete_procurement_session,
    get_procurement_session,
    list_procurement_entries,
    open_procurement_session,
    record_procurement,
    search_procurement_entries,
)

router = APIRouter(prefix="/procurement", tags=["procurement"])


def _session_out(session: ProcurementSession) -> ProcurementSessionOut:
    return ProcurementSessionOut(
        id=session.id,
        session_date=session.session_date,
        total_suppliers=session.total_suppliers,
        total_amount=float(session.total_amount),
        status=session.status,
    )


@router.post(
    "/sessions",
    response_model=ProcurementSessionOut,
    summary="Get or create the procurement session for a date",
    responses=error_responses(400, 422, 500),
)
def open_session(payload: SessionOpenIn, db: Session = Depends(get_db)):
    return _session_out(open_procurement_session(db, session_date=payload.session_date))


@router.post(
    "/sessions/{session_id}/complete",
    response_model=ProcurementSessionOut,
    summary="Close a procurement session to further entries",
    responses=error_responses(404, 500),
)
def complete_session(session_id: str, db: Session = Depends(get_db)):
    try:
        session = complete_procurement_session(db, session_id=session_id)
    except LedgerReferenceError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return _session_out(session)


@router.post(
    "/entries",
    response_model=CreatedOut,
    summary="Record a procurement",
    responses=error_responses(400, 404, 422, 500),
)
def create_entry(
    payload: ProcurementEntryCreate,
    db: Session = Depends(get_db),
    as_of: date = Depends(get_business_date),
):
    try:
        entry = record_procurement(
            db,
            session_id=payload.procurement_session_id,
            supplier_id=payload.supplier_id,
            item_id=payload.item_id,
            type_name=payload.type_name,
            quantity=payload.quantity,
            rate=payload.rate,
            as_of=as_of,
        )
    except LedgerReferenceError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return CreatedOut(id=entry.id)


@router.get(
    "/sessions/{session_id}/entries",
    response_model=ProcurementEntryListOut,
    summary="List the entries of a procurement session",
    responses=error_responses(404, 500),
)
def list_entries(session_id: str, db: Session = Depends(get_db)):
    try:
        entries = list_procurement_entries(db, session_id=session_id)
    except LedgerReferenceError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    session = get_procurement_session(db, session_id)
    return ProcurementEntryListOut(
        session=_session_out(session),
        items=[
            ProcurementEntryOut(
                id=row.id,
                procurement_session_id=row.procurement_session_id,
                supplier_id=row.supplier_id,
                item_id=row.item_id,
                type_name=row.type_name,
                quantity=float(row.quantity),
                rate=float(row.rate),
                total_amount=float(row.total_amount),
                created_at=row.created_at,
            )
            for row in entries
        ],
    )


@router.get(
    "/entries",
    response_model=ProcurementSearchOut,
    summary="Search procurement entries by date range, supplier and item",
    responses=error_responses(400, 422, 500),
)
def search_entries(
    start_date: date = Query(..., description="From date (YYYY-MM-DD)"),
    end_date: date = Query(..., description="To date (YYYY-MM-DD)"),
    supplier_id: str | None = Query(default=None),
    item_id: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200, description="Page size"),
    offset: int = Query(default=0, ge=0, description="Pagination offset"),
    db: Session = Depends(get_db),
):
    if end_date < start_date:
        raise HTTPException(status_code=400, detail="end_date cannot be before start_date")
    rows = search_procurement_entries(
        db, start_date=start_date, end_date=end_date, supplier_id=supplier_id, item_id=item_id
    )
    page = rows[offset : offset + limit]
    items = [
        ProcurementSearchItemOut(
            id=row.id,
            session_date=session_date,
            procurement_session_id=row.procurement_session_id,
            supplier_id=row.supplier_id,
            item_id=row.item_id,
            type_name=row.type_name,
            quantity=float(row.quantity),
            rate=float(row.rate),
            total_amount=float(row.total_amount),
            created_at=row.created_at,
        )
        for row, session_date in page
    ]
    return ProcurementSearchOut(
        pagination=PaginationMeta(
            total=len(rows),
            limit=limit,
            offset=offset,
            count=len(items),
            has_next=(offset + len(items)) < len(rows),
        ),
        items=items,
    )
