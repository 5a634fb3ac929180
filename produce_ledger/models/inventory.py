from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from produce_ledger.db.base import Base


class ItemType(Base):
    """A free-text variant of an item (e.g. "A grade"), created on first procurement."""

    __tablename__ = "item_types"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    item_id: Mapped[str] = mapped_column(String(36), ForeignKey("items.id"), nullable=False, index=True)
    type_name: Mapped[str] = mapped_column(String(100), nullable=False)
    first_introduced_date: Mapped[date] = mapped_column(Date, nullable=False)
    last_seen_date: Mapped[date] = mapped_column(Date, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="1")

    __table_args__ = (
        UniqueConstraint("item_id", "type_name", name="uq_item_types_item_type"),
    )


class CurrentInventory(Base):
    """
    Real-time stock per (item, type). The only source of truth for what can be sold now.
    """
    __tablename__ = "current_inventory"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    item_id: Mapped[str] = mapped_column(String(36), ForeignKey("items.id"), nullable=False, index=True)
    type_name: Mapped[str] = mapped_column(String(100), nullable=False)
    current_stock: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False, default=0)
    weighted_avg_rate: Mapped[Decimal] = mapped_column(Numeric(14, 4), nullable=False, default=0)
    last_updated: Mapped[date] = mapped_column(Date, nullable=False)

    __table_args__ = (
        UniqueConstraint("item_id", "type_name", name="uq_current_inventory_item_type"),
    )


class DailyInventorySnapshot(Base):
    """
    Per-date stock history. closing_stock = max(0, opening + purchased - sold - returned).
    """
    __tablename__ = "daily_inventory"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    inventory_date: Mapped[date] = mapped_column(Date, nullable=False)
    item_id: Mapped[str] = mapped_column(String(36), ForeignKey("items.id"), nullable=False, index=True)
    type_name: Mapped[str] = mapped_column(String(100), nullable=False)

    opening_stock: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False, default=0)
    purchased_today: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False, default=0)
    sold_today: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False, default=0)
    returned_today: Mapped[Decimal] = mapped_column(
        Numeric(14, 3), nullable=False, default=0, server_default="0"
    )
    closing_stock: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False, default=0)
    weighted_avg_purchase_rate: Mapped[Decimal] = mapped_column(Numeric(14, 4), nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("inventory_date", "item_id", "type_name", name="uq_daily_inventory_date_item_type"),
        Index("ix_daily_inventory_date_item", "inventory_date", "item_id"),
        Index("ix_daily_inventory_item_type_date", "item_id", "type_name", "inventory_date"),
    )


class InventoryMovement(Base):
    """
    One row per stock movement. Positive = stock in (procurement). Negative = stock out
    (sale, damage_return). Replaying these in seq order rebuilds CurrentInventory.
    """
    __tablename__ = "inventory_movements"

    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    movement_date: Mapped[date] = mapped_column(Date, nullable=False)
    item_id: Mapped[str] = mapped_column(String(36), ForeignKey("items.id"), nullable=False)
    type_name: Mapped[str] = mapped_column(String(100), nullable=False)

    qty_delta: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False)
    reason: Mapped[str] = mapped_column(String(30), nullable=False)  # "procurement", "sale", "damage_return"
    reference_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)  # e.g., sales_entry_id
    unit_cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 4), nullable=True)  # procurement rate

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("ix_inventory_movements_item_type_seq", "item_id", "type_name", "seq"),
        Index("ix_inventory_movements_date", "movement_date"),
    )
