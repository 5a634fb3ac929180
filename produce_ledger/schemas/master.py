from datetime import date
from typing import Optional

from pydantic import BaseModel


class ItemOut(BaseModel):
    id: str
    name: str
    quantity_type: str
    unit_name: str
    is_active: bool


class ItemTypeOut(BaseModel):
    type_name: str
    first_introduced_date: date
    last_seen_date: date
    is_active: bool


class ItemDetailOut(ItemOut):
    types: list[ItemTypeOut]


class PartyOut(BaseModel):
    id: str
    name: str
    contact_info: Optional[str] = None
    is_active: bool
