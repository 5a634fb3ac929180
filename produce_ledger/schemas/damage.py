from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from produce_ledger.schemas.common import PaginationMeta


class DamageCreate(BaseModel):
    damage_date: date
    supplier_id: str
    item_id: str
    type_name: str = Field(min_length=1, max_length=100)
    damaged_quantity: Decimal = Field(gt=0)
    damaged_returned_quantity: Decimal = Field(default=Decimal("0"), ge=0)
    supplier_discount_amount: Decimal = Field(default=Decimal("0"), ge=0)

    @field_validator("type_name")
    @classmethod
    def validate_type_name(cls, value: str) -> str:
        cleaned = " ".join(value.split())
        if not cleaned:
            raise ValueError("type_name is required")
        return cleaned

    @model_validator(mode="after")
    def validate_returned_within_damaged(self) -> "DamageCreate":
        if self.damaged_returned_quantity > self.damaged_quantity:
            raise ValueError("damaged_returned_quantity cannot exceed damaged_quantity")
        return self

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "damage_date": "2026-02-16",
                "supplier_id": "supplier-id-here",
                "item_id": "item-id-here",
                "type_name": "Grade A",
                "damaged_quantity": 10,
                "damaged_returned_quantity": 8,
                "supplier_discount_amount": 40.0,
            }
        }
    )


class DamageOut(BaseModel):
    id: str
    damage_date: date
    supplier_id: str
    item_id: str
    type_name: str
    damaged_quantity: float
    damaged_returned_quantity: float
    supplier_discount_amount: float
    created_at: datetime | None = None


class DamageListOut(BaseModel):
    pagination: PaginationMeta
    items: list[DamageOut]
