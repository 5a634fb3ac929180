from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from produce_ledger.core.api_docs import error_responses
from produce_ledger.core.deps import get_db
from produce_ledger.core.errors import LedgerReferenceError
from produce_ledger.models.master import Item
from produce_ledger.routers.inventory import snapshot_out
from produce_ledger.routers.sales import sale_line_out
from produce_ledger.schemas.reports import (
    DailyDuesOut,
    DuesEntryOut,
    EndOfDayOut,
    ItemInfoOut,
    ProfitOut,
    SellerTotalsOut,
    SupplierDueOut,
)
from produce_ledger.services.reporting_service import daily_dues, end_of_day, profit_analysis

router = APIRouter(prefix="/reports", tags=["reports"])


def _item_info(item: Item) -> ItemInfoOut:
    return ItemInfoOut(id=item.id, name=item.name, unit_name=item.unit_name, show_crates=item.tracks_crates)


@router.get(
    "/daily-dues",
    response_model=DailyDuesOut,
    summary="The day's seller statements for an item",
    responses=error_responses(404, 422, 500),
)
def get_daily_dues(
    item_id: str = Query(...),
    on_date: date = Query(..., alias="date", description="Session date (YYYY-MM-DD)"),
    db: Session = Depends(get_db),
):
    try:
        report = daily_dues(db, item_id=item_id, on_date=on_date)
    except LedgerReferenceError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return DailyDuesOut(
        item=_item_info(report.item),
        date=report.on_date,
        entries=[
            DuesEntryOut(
                id=dues.entry.id,
                seller_id=dues.entry.seller_id,
                seller_name=dues.seller_name,
                total_amount_purchased=float(dues.entry.total_amount_purchased),
                total_quantity_purchased=float(dues.entry.total_quantity_purchased),
                quantity_returned=float(dues.entry.quantity_returned),
                amount_paid=float(dues.entry.amount_paid),
                less_discount=float(dues.entry.less_discount),
                final_quantity_outstanding=float(dues.entry.final_quantity_outstanding),
                final_payment_outstanding=float(dues.entry.final_payment_outstanding),
                line_items=[sale_line_out(line) for line in dues.line_items],
            )
            for dues in report.entries
        ],
    )


@router.get(
    "/end-of-day",
    response_model=EndOfDayOut,
    summary="Seller totals and supplier dues for an item and date",
    responses=error_responses(404, 422, 500),
)
def get_end_of_day(
    item_id: str = Query(...),
    on_date: date = Query(..., alias="date", description="Business date (YYYY-MM-DD)"),
    db: Session = Depends(get_db),
):
    try:
        report = end_of_day(db, item_id=item_id, on_date=on_date)
    except LedgerReferenceError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    totals = report.seller_totals
    return EndOfDayOut(
        item=_item_info(report.item),
        date=report.on_date,
        seller_totals=SellerTotalsOut(
            amount_sold=float(totals.amount_sold),
            amount_received=float(totals.amount_received),
            discount_given=float(totals.discount_given),
            quantity_sold=float(totals.quantity_sold),
            quantity_received=float(totals.quantity_received),
        ),
        supplier_dues=[
            SupplierDueOut(
                supplier_id=due.supplier_id,
                supplier_name=due.supplier_name,
                payment_due=float(due.payment_due),
                quantity_due=float(due.quantity_due),
            )
            for due in report.supplier_dues
        ],
        closing_stock=[snapshot_out(row) for row in report.closing_stock],
    )


@router.get(
    "/profit",
    response_model=ProfitOut,
    summary="Sales against procurement over a date range",
    responses=error_responses(400, 404, 422, 500),
)
def get_profit(
    start_date: date = Query(..., description="From date (YYYY-MM-DD)"),
    end_date: date = Query(..., description="To date (YYYY-MM-DD)"),
    item_id: str | None = Query(default=None),
    db: Session = Depends(get_db),
):
    if end_date < start_date:
        raise HTTPException(status_code=400, detail="end_date cannot be before start_date")
    try:
        report = profit_analysis(db, start_date=start_date, end_date=end_date, item_id=item_id)
    except LedgerReferenceError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return ProfitOut(
        start_date=report.start_date,
        end_date=report.end_date,
        item_id=report.item_id,
        total_sales=float(report.total_sales),
        total_procurement=float(report.total_procurement),
        quantity_sold=float(report.quantity_sold),
        quantity_procured=float(report.quantity_procured),
        gross_profit=float(report.gross_profit),
        profit_margin=float(report.profit_margin),
    )
