from datetime import date
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from produce_ledger.schemas.common import PartyKind


class OpeningBalanceIn(BaseModel):
    party_kind: PartyKind
    party_id: str
    item_id: str
    opening_payment_due: Decimal = Field(default=Decimal("0"), ge=0)
    opening_quantity_due: Decimal = Field(default=Decimal("0"), ge=0)
    effective_from_date: date

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "party_kind": "seller",
                "party_id": "seller-id-here",
                "item_id": "item-id-here",
                "opening_payment_due": 100.0,
                "opening_quantity_due": 5,
                "effective_from_date": "2026-02-01",
            }
        }
    )


class OpeningBalanceOut(BaseModel):
    id: str
    party_kind: str
    party_id: str
    item_id: str
    opening_payment_due: float
    opening_quantity_due: float
    effective_from_date: date
    created_date: date
    last_modified_date: date


class OpeningBalanceSetOut(BaseModel):
    opening_balance: OpeningBalanceOut
    replayed: bool
    payment_due: float | None = None
    quantity_due: float | None = None
    needs_review: bool | None = None


class OpeningBalanceDeleteOut(BaseModel):
    ok: bool = True
    replayed: bool


class BalanceOut(BaseModel):
    party_kind: str
    party_id: str
    item_id: str
    payment_due: float = Field(description="Display value, floored at zero")
    quantity_due: float = Field(description="Display value, floored at zero")
    signed_payment_due: float
    signed_quantity_due: float
    needs_review: bool
    has_activity: bool
    last_updated: date | None = None


class LedgerLineOut(BaseModel):
    seq: int
    event_date: date
    event_type: str
    reference_id: str | None = None
    payment_delta: float
    quantity_delta: float
    payment_due: float
    quantity_due: float


class LedgerBalanceOut(BaseModel):
    payment_due: float
    quantity_due: float


class LedgerOut(BaseModel):
    party_kind: str
    party_id: str
    item_id: str
    start_date: date | None = None
    end_date: date | None = None
    opening: LedgerBalanceOut
    brought_forward: LedgerBalanceOut
    closing: LedgerBalanceOut
    lines: list[LedgerLineOut]


class BalanceTotalsOut(BaseModel):
    party_kind: str
    parties: int
    total_payment_due: float
    total_quantity_due: float
    needs_review: int


class BalanceSummaryOut(BaseModel):
    items: list[BalanceTotalsOut]
