from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from produce_ledger.core.api_docs import error_responses
from produce_ledger.core.deps import get_business_date, get_db
from produce_ledger.core.errors import LedgerReferenceError
from produce_ledger.schemas.common import CreatedOut, PaginationMeta
from produce_ledger.schemas.damage import DamageCreate, DamageListOut, DamageOut
from produce_ledger.services.damage_service import list_damages, record_damage

router = APIRouter(prefix="/damages", tags=["damages"])


@router.post(
    "",
    response_model=CreatedOut,
    summary="Record damaged stock against a supplier",
    responses=error_responses(400, 404, 422, 500),
)
def create_damage(
    payload: DamageCreate,
    db: Session = Depends(get_db),
    as_of: date = Depends(get_business_date),
):
    try:
        entry = record_damage(
            db,
            damage_date=payload.damage_date,
            supplier_id=payload.supplier_id,
            item_id=payload.item_id,
            type_name=payload.type_name,
            damaged_quantity=payload.damaged_quantity,
            returned_quantity=payload.damaged_returned_quantity,
            discount_amount=payload.supplier_discount_amount,
            as_of=as_of,
        )
    except LedgerReferenceError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return CreatedOut(id=entry.id)


@router.get(
    "",
    response_model=DamageListOut,
    summary="List damage entries",
    responses=error_responses(422, 500),
)
def get_damages(
    damage_date: date | None = Query(default=None, description="Filter by date (YYYY-MM-DD)"),
    item_id: str | None = Query(default=None),
    supplier_id: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200, description="Page size"),
    offset: int = Query(default=0, ge=0, description="Pagination offset"),
    db: Session = Depends(get_db),
):
    rows = list_damages(db, damage_date=damage_date, item_id=item_id, supplier_id=supplier_id)
    page = rows[offset : offset + limit]
    items = [
        DamageOut(
            id=row.id,
            damage_date=row.damage_date,
            supplier_id=row.supplier_id,
            item_id=row.item_id,
            type_name=row.type_name,
            damaged_quantity=float(row.damaged_quantity),
            damaged_returned_quantity=float(row.damaged_returned_quantity),
            supplier_discount_amount=float(row.supplier_discount_amount),
            created_at=row.created_at,
        )
        for row in page
    ]
    return DamageListOut(
        pagination=PaginationMeta(
            total=len(rows),
            limit=limit,
            offset=offset,
            count=len(items),
            has_next=(offset + len(items)) < len(rows),
        ),
        items=items,
    )
