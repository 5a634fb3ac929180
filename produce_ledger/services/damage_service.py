from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from produce_ledger.core.errors import LedgerValidationError
from produce_ledger.core.id_utils import generate_shortuuid
from produce_ledger.core.money import to_money, to_qty
from produce_ledger.core.observability import log_ledger_event
from produce_ledger.db.unit_of_work import unit_of_work
from produce_ledger.models.damage import DamageEntry
from produce_ledger.services import ledger_engine
from produce_ledger.services.audit_service import log_audit_event
from produce_ledger.services.inventory_service import add_movement
from produce_ledger.services.key_locks import balance_key, inventory_key, ledger_locks
from produce_ledger.services.references import (
    clean_type_name,
    require_item,
    require_non_negative,
    require_party,
    require_positive,
)


def record_damage(
    db: Session,
    *,
    damage_date: date,
    supplier_id: str,
    item_id: str,
    type_name: str,
    damaged_quantity: Decimal,
    returned_quantity: Decimal,
    discount_amount: Decimal,
    as_of: date,
    actor: str | None = None,
) -> DamageEntry:
    """
    Only the returned part leaves stock. The unreturned remainder is a loss
    nobody books, and a discount reduces what is owed to the supplier.
    """
    type_name = clean_type_name(type_name)
    damaged_quantity = to_qty(damaged_quantity)
    returned_quantity = to_qty(returned_quantity)
    discount_amount = to_money(discount_amount)
    require_positive("damaged_quantity", damaged_quantity)
    require_non_negative("damaged_returned_quantity", returned_quantity)
    require_non_negative("supplier_discount_amount", discount_amount)
    if returned_quantity > damaged_quantity:
        raise LedgerValidationError("damaged_returned_quantity cannot exceed damaged_quantity")

    keys = [inventory_key(item_id, type_name), balance_key("supplier", supplier_id, item_id)]
    with ledger_locks.hold(keys), unit_of_work(db):
        require_party(db, "supplier", supplier_id)
        require_item(db, item_id)

        entry_id = generate_shortuuid()
        if returned_quantity > 0:
            ledger_engine.remove_stock(
                db,
                item_id=item_id,
                type_name=type_name,
                quantity=returned_quantity,
                as_of=as_of,
                reason="damage_return",
            )
            ledger_engine.record_snapshot_return(
                db, on_date=damage_date, item_id=item_id, type_name=type_name, quantity=returned_quantity
            )
            add_movement(
                db,
                movement_date=damage_date,
                item_id=item_id,
                type_name=type_name,
                qty_delta=-returned_quantity,
                reason="damage_return",
                reference_id=entry_id,
            )

        if discount_amount > 0:
            ledger_engine.apply_balance_delta(
                db,
                party_kind="supplier",
                party_id=supplier_id,
                item_id=item_id,
                payment_delta=-discount_amount,
                quantity_delta=to_qty(0),
                event_date=damage_date,
                event_type="damage",
                reference_id=entry_id,
                as_of=as_of,
            )

        entry = DamageEntry(
            id=entry_id,
            damage_date=damage_date,
            supplier_id=supplier_id,
            item_id=item_id,
            type_name=type_name,
            damaged_quantity=damaged_quantity,
            damaged_returned_quantity=returned_quantity,
            supplier_discount_amount=discount_amount,
        )
        db.add(entry)
        log_audit_event(
            db,
            actor=actor,
            action="damage.create",
            target_type="damage_entry",
            target_id=entry_id,
            metadata_json={
                "damage_date": damage_date.isoformat(),
                "supplier_id": supplier_id,
                "item_id": item_id,
                "type_name": type_name,
                "damaged_quantity": str(damaged_quantity),
                "returned_quantity": str(returned_quantity),
                "discount": str(discount_amount),
            },
        )

    log_ledger_event(
        "event_recorded",
        event_type="damage",
        entry_id=entry_id,
        item_id=item_id,
        type_name=type_name,
        returned_quantity=returned_quantity,
        discount=discount_amount,
    )
    return entry


def list_damages(
    db: Session,
    *,
    damage_date: date | None = None,
    item_id: str | None = None,
    supplier_id: str | None = None,
) -> list[DamageEntry]:
    stmt = select(DamageEntry)
    if damage_date is not None:
        stmt = stmt.where(DamageEntry.damage_date == damage_date)
    if item_id:
        stmt = stmt.where(DamageEntry.item_id == item_id)
    if supplier_id:
        stmt = stmt.where(DamageEntry.supplier_id == supplier_id)
    stmt = stmt.order_by(DamageEntry.damage_date.desc(), DamageEntry.created_at.desc())
    return list(db.execute(stmt).scalars().all())
