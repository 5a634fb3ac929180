from datetime import date

from pydantic import BaseModel

from produce_ledger.schemas.inventory import SnapshotOut
from produce_ledger.schemas.sales import SaleLineOut


class ItemInfoOut(BaseModel):
    id: str
    name: str
    unit_name: str
    show_crates: bool


class DuesEntryOut(BaseModel):
    id: str
    seller_id: str
    seller_name: str
    total_amount_purchased: float
    total_quantity_purchased: float
    quantity_returned: float
    amount_paid: float
    less_discount: float
    final_quantity_outstanding: float
    final_payment_outstanding: float
    line_items: list[SaleLineOut]


class DailyDuesOut(BaseModel):
    item: ItemInfoOut
    date: date
    entries: list[DuesEntryOut]


class SellerTotalsOut(BaseModel):
    amount_sold: float
    amount_received: float
    discount_given: float
    quantity_sold: float
    quantity_received: float


class SupplierDueOut(BaseModel):
    supplier_id: str
    supplier_name: str
    payment_due: float
    quantity_due: float


class EndOfDayOut(BaseModel):
    item: ItemInfoOut
    date: date
    seller_totals: SellerTotalsOut
    supplier_dues: list[SupplierDueOut]
    closing_stock: list[SnapshotOut]


class ProfitOut(BaseModel):
    start_date: date
    end_date: date
    item_id: str | None = None
    total_sales: float
    total_procurement: float
    quantity_sold: float
    quantity_procured: float
    gross_profit: float
    profit_margin: float
