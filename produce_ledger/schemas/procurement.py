from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from produce_ledger.schemas.common import PaginationMeta


class SessionOpenIn(BaseModel):
    session_date: date


class ProcurementSessionOut(BaseModel):
    id: str
    session_date: date
    total_suppliers: int
    total_amount: float
    status: str


class ProcurementEntryCreate(BaseModel):
    procurement_session_id: str
    supplier_id: str
    item_id: str
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

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "procurement_session_id": "session-id-here",
                "supplier_id": "supplier-id-here",
                "item_id": "item-id-here",
                "type_name": "Grade A",
                "quantity": 10,
                "rate": 5.0,
            }
        }
    )


class ProcurementEntryOut(BaseModel):
    id: str
    procurement_session_id: str
    supplier_id: str
    item_id: str
    type_name: str
    quantity: float
    rate: float
    total_amount: float
    created_at: datetime | None = None


class ProcurementEntryListOut(BaseModel):
    session: ProcurementSessionOut
    items: list[ProcurementEntryOut]


class ProcurementSearchItemOut(ProcurementEntryOut):
    session_date: date


class ProcurementSearchOut(BaseModel):
    pagination: PaginationMeta
    items: list[ProcurementSearchItemOut]
