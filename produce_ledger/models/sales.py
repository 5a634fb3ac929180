from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Date, DateTime, ForeignKey, Index, Integer, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column

from produce_ledger.db.base import Base


class SalesSession(Base):
    __tablename__ = "sales_sessions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    session_date: Mapped[date] = mapped_column(Date, nullable=False, unique=True)
    total_sellers: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_sales_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")  # active/completed

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class SalesEntry(Base):
    __tablename__ = "sales_entries"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    sales_session_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("sales_sessions.id"), nullable=False, index=True
    )
    seller_id: Mapped[str] = mapped_column(String(36), ForeignKey("sellers.id"), nullable=False)
    item_id: Mapped[str] = mapped_column(String(36), ForeignKey("items.id"), nullable=False)

    total_amount_purchased: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    total_quantity_purchased: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False)
    quantity_returned: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False, default=0)
    amount_paid: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=0)
    less_discount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=0)

    # Point-in-time statement; stored unclamped.
    final_quantity_outstanding: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False)
    final_payment_outstanding: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("ix_sales_entries_seller_item", "seller_id", "item_id"),
        Index("ix_sales_entries_session_item", "sales_session_id", "item_id"),
    )


class SalesLineItem(Base):
    __tablename__ = "sales_line_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    sales_entry_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("sales_entries.id"), nullable=False, index=True
    )
    type_name: Mapped[str] = mapped_column(String(100), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False)
    sale_rate: Mapped[Decimal] = mapped_column(Numeric(14, 4), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
