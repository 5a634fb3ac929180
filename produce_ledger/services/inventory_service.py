from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from produce_ledger.core.money import ZERO_QTY, ZERO_RATE, to_qty
from produce_ledger.models.inventory import InventoryMovement
from produce_ledger.services.valuation import reduce_stock, revalue


def add_movement(
    db: Session,
    *,
    movement_date: date,
    item_id: str,
    type_name: str,
    qty_delta: Decimal,
    reason: str,
    reference_id: str | None = None,
    unit_cost: Decimal | None = None,
) -> InventoryMovement:
    entry = InventoryMovement(
        movement_date=movement_date,
        item_id=item_id,
        type_name=type_name,
        qty_delta=to_qty(qty_delta),
        reason=reason,
        reference_id=reference_id,
        unit_cost=unit_cost,
    )
    db.add(entry)
    return entry


def replay_stock(db: Session, *, item_id: str, type_name: str) -> tuple[Decimal, Decimal]:
    """
    Rebuild (current_stock, weighted_avg_rate) for one variant from its movements,
    applying the same clamp and revalue rules the live engine uses.
    """
    rows = db.execute(
        select(InventoryMovement.qty_delta, InventoryMovement.unit_cost)
        .where(InventoryMovement.item_id == item_id, InventoryMovement.type_name == type_name)
        .order_by(InventoryMovement.seq.asc())
    ).all()

    stock = ZERO_QTY
    rate = ZERO_RATE
    for qty_delta, unit_cost in rows:
        if qty_delta > 0:
            rate = revalue(stock, rate, qty_delta, unit_cost if unit_cost is not None else rate)
            stock = to_qty(stock + qty_delta)
        else:
            stock, _ = reduce_stock(stock, -qty_delta)
    return stock, rate


def movement_keys(db: Session) -> list[tuple[str, str]]:
    rows = db.execute(
        select(InventoryMovement.item_id, InventoryMovement.type_name).distinct()
    ).all()
    return [(item_id, type_name) for item_id, type_name in rows]
