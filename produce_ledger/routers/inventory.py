from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from produce_ledger.core.api_docs import error_responses
from produce_ledger.core.deps import get_business_date, get_db
from produce_ledger.core.errors import LedgerReferenceError
from produce_ledger.models.inventory import DailyInventorySnapshot
from produce_ledger.schemas.inventory import (
    AvailableStockOut,
    CurrentInventoryListOut,
    CurrentInventoryOut,
    SnapshotListOut,
    SnapshotOut,
    StockLineOut,
)
from produce_ledger.services import carry_forward
from produce_ledger.services.references import require_item
from produce_ledger.services.reporting_service import current_inventory, snapshots_between

router = APIRouter(prefix="/inventory", tags=["inventory"])


def snapshot_out(row: DailyInventorySnapshot) -> SnapshotOut:
    return SnapshotOut(
        inventory_date=row.inventory_date,
        item_id=row.item_id,
        type_name=row.type_name,
        opening_stock=float(row.opening_stock),
        purchased_today=float(row.purchased_today),
        sold_today=float(row.sold_today),
        returned_today=float(row.returned_today),
        closing_stock=float(row.closing_stock),
        weighted_avg_purchase_rate=float(row.weighted_avg_purchase_rate),
    )


@router.get(
    "/available",
    response_model=AvailableStockOut,
    summary="Stock available for sale on a date",
    description="Today reads live stock. Other dates read snapshots, carrying forward the last positive closing.",
    responses=error_responses(404, 422, 500),
)
def get_available_stock(
    item_id: str = Query(...),
    on_date: date | None = Query(default=None, alias="date", description="Defaults to today (YYYY-MM-DD)"),
    db: Session = Depends(get_db),
    as_of: date = Depends(get_business_date),
):
    try:
        require_item(db, item_id, active=False)
    except LedgerReferenceError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    target = on_date or as_of
    lines = carry_forward.available_stock(db, item_id=item_id, on_date=target, as_of=as_of)
    return AvailableStockOut(
        item_id=item_id,
        date=target,
        items=[
            StockLineOut(
                type_name=line.type_name,
                closing_stock=float(line.closing_stock),
                weighted_avg_purchase_rate=float(line.weighted_avg_purchase_rate),
                is_carried_forward=line.is_carried_forward,
                carried_from_date=line.carried_from_date,
                days_carried=line.days_carried,
            )
            for line in lines
        ],
    )


@router.get(
    "/current",
    response_model=CurrentInventoryListOut,
    summary="Live stock per type for an item",
    responses=error_responses(404, 422, 500),
)
def get_current_inventory(item_id: str = Query(...), db: Session = Depends(get_db)):
    try:
        rows = current_inventory(db, item_id=item_id)
    except LedgerReferenceError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return CurrentInventoryListOut(
        item_id=item_id,
        items=[
            CurrentInventoryOut(
                item_id=row.item_id,
                type_name=row.type_name,
                current_stock=float(row.current_stock),
                weighted_avg_rate=float(row.weighted_avg_rate),
                last_updated=row.last_updated,
            )
            for row in rows
        ],
    )


@router.get(
    "/snapshots",
    response_model=SnapshotListOut,
    summary="Daily inventory snapshots in a date range",
    responses=error_responses(400, 404, 422, 500),
)
def get_snapshots(
    item_id: str = Query(...),
    start_date: date = Query(..., description="From date (YYYY-MM-DD)"),
    end_date: date = Query(..., description="To date (YYYY-MM-DD)"),
    db: Session = Depends(get_db),
):
    if end_date < start_date:
        raise HTTPException(status_code=400, detail="end_date cannot be before start_date")
    try:
        rows = snapshots_between(db, item_id=item_id, start_date=start_date, end_date=end_date)
    except LedgerReferenceError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return SnapshotListOut(
        item_id=item_id,
        start_date=start_date,
        end_date=end_date,
        items=[snapshot_out(row) for row in rows],
    )
