from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Date, DateTime, ForeignKey, Index, Integer, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column

from produce_ledger.db.base import Base


class ProcurementSession(Base):
    __tablename__ = "procurement_sessions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    session_date: Mapped[date] = mapped_column(Date, nullable=False, unique=True)
    total_suppliers: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")  # active/completed

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class ProcurementEntry(Base):
    __tablename__ = "procurement_entries"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    procurement_session_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("procurement_sessions.id"), nullable=False, index=True
    )
    supplier_id: Mapped[str] = mapped_column(String(36), ForeignKey("suppliers.id"), nullable=False)
    item_id: Mapped[str] = mapped_column(String(36), ForeignKey("items.id"), nullable=False)
    type_name: Mapped[str] = mapped_column(String(100), nullable=False)

    quantity: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False)
    rate: Mapped[Decimal] = mapped_column(Numeric(14, 4), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("ix_procurement_entries_session_supplier", "procurement_session_id", "supplier_id"),
        Index("ix_procurement_entries_supplier_item", "supplier_id", "item_id"),
    )
