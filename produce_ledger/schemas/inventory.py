from datetime import date

from pydantic import BaseModel


class StockLineOut(BaseModel):
    type_name: str
    closing_stock: float
    weighted_avg_purchase_rate: float
    is_carried_forward: bool
    carried_from_date: date
    days_carried: int


class AvailableStockOut(BaseModel):
    item_id: str
    date: date
    items: list[StockLineOut]


class CurrentInventoryOut(BaseModel):
    item_id: str
    type_name: str
    current_stock: float
    weighted_avg_rate: float
    last_updated: date


class CurrentInventoryListOut(BaseModel):
    item_id: str
    items: list[CurrentInventoryOut]


class SnapshotOut(BaseModel):
    inventory_date: date
    item_id: str
    type_name: str
    opening_stock: float
    purchased_today: float
    sold_today: float
    returned_today: float
    closing_stock: float
    weighted_avg_purchase_rate: float


class SnapshotListOut(BaseModel):
    item_id: str
    start_date: date
    end_date: date
    items: list[SnapshotOut]
