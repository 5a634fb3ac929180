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

from produce_ledger.core.money import ZERO_MONEY, ZERO_QTY
from produce_ledger.db.base import Base

PARTY_KINDS = ("seller", "supplier")


class OpeningBalance(Base):
    __tablename__ = "opening_balances"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    party_kind: Mapped[str] = mapped_column(String(10), nullable=False)  # seller/supplier
    party_id: Mapped[str] = mapped_column(String(36), nullable=False)
    item_id: Mapped[str] = mapped_column(String(36), ForeignKey("items.id"), nullable=False)

    opening_payment_due: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=0)
    opening_quantity_due: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False, default=0)
    effective_from_date: Mapped[date] = mapped_column(Date, nullable=False)
    created_date: Mapped[date] = mapped_column(Date, nullable=False)
    last_modified_date: Mapped[date] = mapped_column(Date, nullable=False)

    __table_args__ = (
        UniqueConstraint("party_kind", "party_id", "item_id", name="uq_opening_balances_party_item"),
        Index("ix_opening_balances_party", "party_kind", "party_id"),
    )


class OutstandingBalance(Base):
    """
    Running payable (supplier) or receivable (seller) per party+item.

    payment_due/quantity_due are signed accumulators; readers that present a
    balance use the display_* projections, which clamp at zero.
    """
    __tablename__ = "outstanding_balances"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    party_kind: Mapped[str] = mapped_column(String(10), nullable=False)
    party_id: Mapped[str] = mapped_column(String(36), nullable=False)
    item_id: Mapped[str] = mapped_column(String(36), ForeignKey("items.id"), nullable=False)

    payment_due: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=0)
    quantity_due: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False, default=0)
    needs_review: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="0")
    last_updated: Mapped[date] = mapped_column(Date, nullable=False)

    __table_args__ = (
        UniqueConstraint("party_kind", "party_id", "item_id", name="uq_outstanding_balances_party_item"),
        Index("ix_outstanding_balances_party", "party_kind", "party_id"),
        Index("ix_outstanding_balances_item", "item_id"),
    )

    @property
    def display_payment_due(self) -> Decimal:
        return max(ZERO_MONEY, self.payment_due)

    @property
    def display_quantity_due(self) -> Decimal:
        return max(ZERO_QTY, self.quantity_due)


class BalanceJournal(Base):
    """
    One row per outstanding-balance delta. Opening balance + the journal in
    seq order reproduces OutstandingBalance.
    """
    __tablename__ = "balance_journal"

    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_date: Mapped[date] = mapped_column(Date, nullable=False)
    party_kind: Mapped[str] = mapped_column(String(10), nullable=False)
    party_id: Mapped[str] = mapped_column(String(36), nullable=False)
    item_id: Mapped[str] = mapped_column(String(36), ForeignKey("items.id"), nullable=False)

    payment_delta: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    quantity_delta: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False)
    event_type: Mapped[str] = mapped_column(String(20), nullable=False)  # procurement/sale/damage/payment
    reference_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("ix_balance_journal_party_item_date", "party_kind", "party_id", "item_id", "event_date"),
    )
