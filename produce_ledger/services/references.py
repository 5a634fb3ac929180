from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from produce_ledger.core.errors import LedgerReferenceError, LedgerValidationError
from produce_ledger.models.balances import PARTY_KINDS
from produce_ledger.models.master import Item, Seller, Supplier

_PARTY_MODELS = {"seller": Seller, "supplier": Supplier}


def require_item(db: Session, item_id: str, *, active: bool = True) -> Item:
    item = db.execute(select(Item).where(Item.id == item_id)).scalar_one_or_none()
    if item is None:
        raise LedgerReferenceError(f"Item not found: {item_id}")
    if active and not item.is_active:
        raise LedgerValidationError(f"Item is inactive: {item.name}")
    return item


def require_party(db: Session, party_kind: str, party_id: str, *, active: bool = True) -> Seller | Supplier:
    if party_kind not in PARTY_KINDS:
        raise LedgerValidationError(f"Unknown party kind '{party_kind}'")
    model = _PARTY_MODELS[party_kind]
    party = db.execute(select(model).where(model.id == party_id)).scalar_one_or_none()
    if party is None:
        raise LedgerReferenceError(f"{party_kind.capitalize()} not found: {party_id}")
    if active and not party.is_active:
        raise LedgerValidationError(f"{party_kind.capitalize()} is inactive: {party.name}")
    return party


def require_positive(name: str, value: Decimal) -> None:
    if value <= 0:
        raise LedgerValidationError(f"{name} must be greater than 0")


def require_non_negative(name: str, value: Decimal) -> None:
    if value < 0:
        raise LedgerValidationError(f"{name} cannot be negative")


def clean_type_name(type_name: str) -> str:
    cleaned = " ".join(type_name.split())
    if not cleaned:
        raise LedgerValidationError("type_name cannot be empty")
    return cleaned
