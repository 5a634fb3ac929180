from datetime import date, datetime
from decimal import Decimal
from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from produce_ledger.schemas.common import PaginationMeta


class SalesSessionOut(BaseModel):
    id: str
    session_date: date
    total_sellers: int
    total_sales_amount: float
    status: str


class SaleLineIn(BaseModel):
    type_name: str = Field(min_length=1, max_length=100)
    quantity: Decimal = Field(gt=0)
    rate: Decimal = Field(ge=0)

    @field_validator("type_name")
    @classmethod
    def validate_type_name(cls, value: str) -> str:
        cleaned = " ".join(value.split())
        if not cleaned:
            raise ValueError("type_name is required")
        return cleaned


class SaleCreate(BaseModel):
    sales_session_id: str
    seller_id: str
    item_id: str
    line_items: List[SaleLineIn] = Field(min_length=1)
    quantity_returned: Decimal = Field(default=Decimal("0"), ge=0)
    amount_paid: Decimal = Field(default=Decimal("0"), ge=0)
    less_discount: Decimal = Field(default=Decimal("0"), ge=0)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "sales_session_id": "session-id-here",
                "seller_id": "seller-id-here",
                "item_id": "item-id-here",
                "line_items": [{"type_name": "Grade A", "quantity": 10, "rate": 20.0}],
                "quantity_returned": 2,
                "amount_paid": 50.0,
                "less_discount": 0,
            }
        }
    )


class SaleLineOut(BaseModel):
    type_name: str
    quantity: float
    sale_rate: float
    amount: float


class SaleEntryOut(BaseModel):
    id: str
    sales_session_id: str
    seller_id: str
    item_id: str
    total_amount_purchased: float
    total_quantity_purchased: float
    quantity_returned: float
    amount_paid: float
    less_discount: float
    final_quantity_outstanding: float
    final_payment_outstanding: float
    created_at: datetime | None = None
    line_items: list[SaleLineOut]


class SaleSearchItemOut(BaseModel):
    id: str
    session_date: date
    sales_session_id: str
    seller_id: str
    item_id: str
    total_amount_purchased: float
    total_quantity_purchased: float
    quantity_returned: float
    amount_paid: float
    less_discount: float
    final_quantity_outstanding: float
    final_payment_outstanding: float
    created_at: datetime | None = None


class SaleSearchOut(BaseModel):
    pagination: PaginationMeta
    items: list[SaleSearchItemOut]
