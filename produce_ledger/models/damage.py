from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Date, DateTime, ForeignKey, Index, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column

from produce_ledger.db.base import Base


class DamageEntry(Base):
    """
    Damaged stock reported against a supplier. Only the returned part leaves inventory;
    the rest is an off-book loss.
    """
    __tablename__ = "damage_entries"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    damage_date: Mapped[date] = mapped_column(Date, nullable=False)
    supplier_id: Mapped[str] = mapped_column(String(36), ForeignKey("suppliers.id"), nullable=False)
    item_id: Mapped[str] = mapped_column(String(36), ForeignKey("items.id"), nullable=False)
    type_name: Mapped[str] = mapped_column(String(100), nullable=False)

    damaged_quantity: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False)
    damaged_returned_quantity: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False, default=0)
    supplier_discount_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("ix_damage_entries_date_supplier", "damage_date", "supplier_id"),
        Index("ix_damage_entries_supplier_item", "supplier_id", "item_id"),
    )
