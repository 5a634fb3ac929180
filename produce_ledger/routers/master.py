from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from produce_ledger.core.api_docs import error_responses
from produce_ledger.core.deps import get_db
from produce_ledger.models.inventory import ItemType
from produce_ledger.models.master import Item, Seller, Supplier
from produce_ledger.schemas.master import ItemDetailOut, ItemOut, ItemTypeOut, PartyOut

router = APIRouter(prefix="/master", tags=["master"])


def _item_out(item: Item) -> ItemOut:
    return ItemOut(
        id=item.id,
        name=item.name,
        quantity_type=item.quantity_type,
        unit_name=item.unit_name,
        is_active=item.is_active,
    )


@router.get("/items", response_model=list[ItemOut], summary="List items", responses=error_responses(422, 500))
def list_items(
    include_inactive: bool = Query(default=False),
    db: Session = Depends(get_db),
):
    stmt = select(Item)
    if not include_inactive:
        stmt = stmt.where(Item.is_active.is_(True))
    return [_item_out(item) for item in db.execute(stmt.order_by(Item.name.asc())).scalars().all()]


@router.get(
    "/items/{item_id}",
    response_model=ItemDetailOut,
    summary="Get an item with its known types",
    responses=error_responses(404, 500),
)
def get_item(item_id: str, db: Session = Depends(get_db)):
    item = db.execute(select(Item).where(Item.id == item_id)).scalar_one_or_none()
    if not item:
        raise HTTPException(status_code=404, detail="Item not found")
    types = db.execute(
        select(ItemType).where(ItemType.item_id == item_id).order_by(ItemType.type_name.asc())
    ).scalars().all()
    return ItemDetailOut(
        **_item_out(item).model_dump(),
        types=[
            ItemTypeOut(
                type_name=row.type_name,
                first_introduced_date=row.first_introduced_date,
                last_seen_date=row.last_seen_date,
                is_active=row.is_active,
            )
            for row in types
        ],
    )


def _party_out(party: Supplier | Seller) -> PartyOut:
    return PartyOut(id=party.id, name=party.name, contact_info=party.contact_info, is_active=party.is_active)


@router.get("/suppliers", response_model=list[PartyOut], summary="List suppliers", responses=error_responses(422, 500))
def list_suppliers(
    include_inactive: bool = Query(default=False),
    db: Session = Depends(get_db),
):
    stmt = select(Supplier)
    if not include_inactive:
        stmt = stmt.where(Supplier.is_active.is_(True))
    return [_party_out(row) for row in db.execute(stmt.order_by(Supplier.name.asc())).scalars().all()]


@router.get("/sellers", response_model=list[PartyOut], summary="List sellers", responses=error_responses(422, 500))
def list_sellers(
    include_inactive: bool = Query(default=False),
    db: Session = Depends(get_db),
):
    stmt = select(Seller)
    if not include_inactive:
        stmt = stmt.where(Seller.is_active.is_(True))
    return [_party_out(row) for row in db.execute(stmt.order_by(Seller.name.asc())).scalars().all()]
