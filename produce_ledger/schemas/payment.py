from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from produce_ledger.schemas.common import PaginationMeta, PartyKind


class PaymentCreate(BaseModel):
    payment_date: date
    party_kind: PartyKind
    party_id: str
    item_id: str
    amount: Decimal = Field(default=Decimal("0"), ge=0)
    quantity_returned: Decimal = Field(default=Decimal("0"), ge=0)
    notes: Optional[str] = Field(default=None, max_length=255)

    @field_validator("notes")
    @classmethod
    def normalize_notes(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        cleaned = value.strip()
        return cleaned or None

    @model_validator(mode="after")
    def validate_has_settlement(self) -> "PaymentCreate":
        if self.amount == 0 and self.quantity_returned == 0:
            raise ValueError("amount or quantity_returned must be greater than 0")
        return self

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "payment_date": "2026-02-16",
                "party_kind": "seller",
                "party_id": "seller-id-here",
                "item_id": "item-id-here",
                "amount": 100.0,
                "quantity_returned": 3,
                "notes": "Evening collection",
            }
        }
    )


class PaymentOut(BaseModel):
    id: str
    payment_date: date
    party_kind: str
    party_id: str
    item_id: str
    amount: float
    quantity_returned: float
    notes: Optional[str] = None
    created_at: datetime | None = None


class PaymentListOut(BaseModel):
    pagination: PaginationMeta
    items: list[PaymentOut]
