from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Date, DateTime, ForeignKey, Index, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column

from produce_ledger.db.base import Base


class Payment(Base):
    """
    Standalone settlement. Seller payments are money received by the operator;
    supplier payments are money paid out. Both reduce the party's outstanding balance.
    """
    __tablename__ = "payments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    party_kind: Mapped[str] = mapped_column(String(10), nullable=False)  # seller/supplier
    party_id: Mapped[str] = mapped_column(String(36), nullable=False)
    item_id: Mapped[str] = mapped_column(String(36), ForeignKey("items.id"), nullable=False)

    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=0)
    quantity_returned: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False, default=0)
    notes: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("ix_payments_date", "payment_date"),
        Index("ix_payments_party_item", "party_kind", "party_id", "item_id"),
    )
