from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from produce_ledger.core.config import settings
from produce_ledger.core.money import ZERO_MONEY, ZERO_QTY, to_money, to_qty
from produce_ledger.models.balances import PARTY_KINDS, OutstandingBalance
from produce_ledger.models.inventory import CurrentInventory, DailyInventorySnapshot
from produce_ledger.models.master import Item, Seller, Supplier
from produce_ledger.models.procurement import ProcurementEntry, ProcurementSession
from produce_ledger.models.sales import SalesEntry, SalesLineItem, SalesSession
from produce_ledger.services.balance_algebra import (
    Balance,
    clamp,
    get_opening_row,
    get_outstanding_row,
    opening_balance_of,
    resolve_prior,
    step_balance,
)
from produce_ledger.services.references import require_item, require_party
from produce_ledger.services.replay_service import journal_rows


@dataclass(frozen=True)
class BalanceView:
    party_kind: str
    party_id: str
    item_id: str
    payment_due: Decimal
    quantity_due: Decimal
    display_payment_due: Decimal
    display_quantity_due: Decimal
    needs_review: bool
    has_activity: bool
    last_updated: date | None


def get_balance(db: Session, *, party_kind: str, party_id: str, item_id: str) -> BalanceView:
    require_party(db, party_kind, party_id, active=False)
    require_item(db, item_id, active=False)
    balance = resolve_prior(db, party_kind=party_kind, party_id=party_id, item_id=item_id)
    row = get_outstanding_row(db, party_kind=party_kind, party_id=party_id, item_id=item_id)
    shown = clamp(balance)
    return BalanceView(
        party_kind=party_kind,
        party_id=party_id,
        item_id=item_id,
        payment_due=balance.payment_due,
        quantity_due=balance.quantity_due,
        display_payment_due=shown.payment_due,
        display_quantity_due=shown.quantity_due,
        needs_review=row.needs_review if row is not None else False,
        has_activity=row is not None,
        last_updated=row.last_updated if row is not None else None,
    )


@dataclass(frozen=True)
class LedgerLine:
    seq: int
    event_date: date
    event_type: str
    reference_id: str | None
    payment_delta: Decimal
    quantity_delta: Decimal
    payment_due: Decimal
    quantity_due: Decimal


@dataclass
class LedgerHistory:
    opening: Balance
    brought_forward: Balance
    closing: Balance
    lines: list[LedgerLine] = field(default_factory=list)


def ledger_history(
    db: Session,
    *,
    party_kind: str,
    party_id: str,
    item_id: str,
    start_date: date | None = None,
    end_date: date | None = None,
) -> LedgerHistory:
    """
    Journal lines dated inside the window, with the running balance after each one.

    Rows are walked in seq order under the configured balance policy, the same
    fold replay uses, so an unbounded history closes on the stored balance.
    Backdated rows keep their arrival position.
    """
    require_party(db, party_kind, party_id, active=False)
    require_item(db, item_id, active=False)
    opening = opening_balance_of(get_opening_row(db, party_kind=party_kind, party_id=party_id, item_id=item_id))

    running = opening
    # balance after the rows dated before the window, used when the window is empty
    settled = opening
    brought_forward: Balance | None = None
    lines: list[LedgerLine] = []
    for row in journal_rows(db, party_kind=party_kind, party_id=party_id, item_id=item_id):
        step = step_balance(running, row.payment_delta, row.quantity_delta, policy=settings.balance_policy)
        before_window = start_date is not None and row.event_date < start_date
        after_window = end_date is not None and row.event_date > end_date
        if not before_window and not after_window:
            if brought_forward is None:
                brought_forward = running
            lines.append(
                LedgerLine(
                    seq=row.seq,
                    event_date=row.event_date,
                    event_type=row.event_type,
                    reference_id=row.reference_id,
                    payment_delta=to_money(row.payment_delta),
                    quantity_delta=to_qty(row.quantity_delta),
                    payment_due=step.new.payment_due,
                    quantity_due=step.new.quantity_due,
                )
            )
        elif before_window and not lines:
            settled = step.new
        running = step.new

    if not lines:
        return LedgerHistory(opening=opening, brought_forward=settled, closing=settled)
    closing = Balance(lines[-1].payment_due, lines[-1].quantity_due)
    return LedgerHistory(opening=opening, brought_forward=brought_forward, closing=closing, lines=lines)


@dataclass(frozen=True)
class BalanceTotals:
    party_kind: str
    parties: int
    total_payment_due: Decimal
    total_quantity_due: Decimal
    needs_review: int


def balance_summary(db: Session, *, party_kind: str | None = None) -> list[BalanceTotals]:
    kinds = [party_kind] if party_kind else list(PARTY_KINDS)
    summary = []
    for kind in kinds:
        rows = db.execute(select(OutstandingBalance).where(OutstandingBalance.party_kind == kind)).scalars().all()
        summary.append(
            BalanceTotals(
                party_kind=kind,
                parties=len({row.party_id for row in rows}),
                total_payment_due=to_money(sum((row.display_payment_due for row in rows), ZERO_MONEY)),
                total_quantity_due=to_qty(sum((row.display_quantity_due for row in rows), ZERO_QTY)),
                needs_review=sum(1 for row in rows if row.needs_review),
            )
        )
    return summary


@dataclass
class DuesEntry:
    entry: SalesEntry
    seller_name: str
    line_items: list[SalesLineItem]


@dataclass
class DailyDues:
    item: Item
    on_date: date
    entries: list[DuesEntry] = field(default_factory=list)


def _session_entries(db: Session, *, item_id: str, on_date: date) -> list[SalesEntry]:
    return list(
        db.execute(
            select(SalesEntry)
            .join(SalesSession, SalesSession.id == SalesEntry.sales_session_id)
            .where(SalesSession.session_date == on_date, SalesEntry.item_id == item_id)
        ).scalars().all()
    )


def daily_dues(db: Session, *, item_id: str, on_date: date) -> DailyDues:
    item = require_item(db, item_id, active=False)
    report = DailyDues(item=item, on_date=on_date)
    entries = _session_entries(db, item_id=item_id, on_date=on_date)
    if not entries:
        return report

    seller_names = dict(
        db.execute(select(Seller.id, Seller.name).where(Seller.id.in_({e.seller_id for e in entries}))).all()
    )
    lines_by_entry: dict[str, list[SalesLineItem]] = {}
    for line in db.execute(
        select(SalesLineItem)
        .where(SalesLineItem.sales_entry_id.in_([e.id for e in entries]))
        .order_by(SalesLineItem.type_name.asc())
    ).scalars():
        lines_by_entry.setdefault(line.sales_entry_id, []).append(line)

    for entry in entries:
        report.entries.append(
            DuesEntry(
                entry=entry,
                seller_name=seller_names.get(entry.seller_id, ""),
                line_items=lines_by_entry.get(entry.id, []),
            )
        )
    report.entries.sort(key=lambda dues: (dues.seller_name.lower(), dues.entry.id))
    return report


@dataclass(frozen=True)
class SellerTotals:
    amount_sold: Decimal
    amount_received: Decimal
    discount_given: Decimal
    quantity_sold: Decimal
    quantity_received: Decimal


@dataclass(frozen=True)
class SupplierDue:
    supplier_id: str
    supplier_name: str
    payment_due: Decimal
    quantity_due: Decimal


@dataclass
class EndOfDay:
    item: Item
    on_date: date
    seller_totals: SellerTotals
    supplier_dues: list[SupplierDue]
    closing_stock: list[DailyInventorySnapshot]


def end_of_day(db: Session, *, item_id: str, on_date: date) -> EndOfDay:
    item = require_item(db, item_id, active=False)
    entries = _session_entries(db, item_id=item_id, on_date=on_date)
    totals = SellerTotals(
        amount_sold=to_money(sum((e.total_amount_purchased for e in entries), ZERO_MONEY)),
        amount_received=to_money(sum((e.amount_paid for e in entries), ZERO_MONEY)),
        discount_given=to_money(sum((e.less_discount for e in entries), ZERO_MONEY)),
        quantity_sold=to_qty(sum((e.total_quantity_purchased for e in entries), ZERO_QTY)),
        quantity_received=to_qty(sum((e.quantity_returned for e in entries), ZERO_QTY)),
    )

    dues = []
    rows = db.execute(
        select(OutstandingBalance, Supplier.name)
        .join(Supplier, Supplier.id == OutstandingBalance.party_id)
        .where(OutstandingBalance.party_kind == "supplier", OutstandingBalance.item_id == item_id)
        .order_by(Supplier.name.asc())
    ).all()
    for balance, supplier_name in rows:
        if balance.payment_due > 0 or balance.quantity_due > 0:
            dues.append(
                SupplierDue(
                    supplier_id=balance.party_id,
                    supplier_name=supplier_name,
                    payment_due=balance.display_payment_due,
                    quantity_due=balance.display_quantity_due,
                )
            )

    snapshots = db.execute(
        select(DailyInventorySnapshot)
        .where(DailyInventorySnapshot.inventory_date == on_date, DailyInventorySnapshot.item_id == item_id)
        .order_by(DailyInventorySnapshot.type_name.asc())
    ).scalars().all()
    return EndOfDay(item=item, on_date=on_date, seller_totals=totals, supplier_dues=dues, closing_stock=list(snapshots))


def current_inventory(db: Session, *, item_id: str) -> list[CurrentInventory]:
    require_item(db, item_id, active=False)
    return list(
        db.execute(
            select(CurrentInventory)
            .where(CurrentInventory.item_id == item_id)
            .order_by(CurrentInventory.type_name.asc())
        ).scalars().all()
    )


def snapshots_between(
    db: Session,
    *,
    item_id: str,
    start_date: date,
    end_date: date,
) -> list[DailyInventorySnapshot]:
    require_item(db, item_id, active=False)
    return list(
        db.execute(
            select(DailyInventorySnapshot)
            .where(
                DailyInventorySnapshot.item_id == item_id,
                DailyInventorySnapshot.inventory_date >= start_date,
                DailyInventorySnapshot.inventory_date <= end_date,
            )
            .order_by(DailyInventorySnapshot.inventory_date.asc(), DailyInventorySnapshot.type_name.asc())
        ).scalars().all()
    )


@dataclass(frozen=True)
class ProfitAnalysis:
    start_date: date
    end_date: date
    item_id: str | None
    total_sales: Decimal
    total_procurement: Decimal
    quantity_sold: Decimal
    quantity_procured: Decimal
    gross_profit: Decimal
    # percent of sales; zero when nothing was sold
    profit_margin: Decimal


def profit_analysis(
    db: Session,
    *,
    start_date: date,
    end_date: date,
    item_id: str | None = None,
) -> ProfitAnalysis:
    """Sales against procurement for sessions dated in [start_date, end_date]."""
    if item_id:
        require_item(db, item_id, active=False)

    sales_stmt = (
        select(
            func.coalesce(func.sum(SalesEntry.total_amount_purchased), 0),
            func.coalesce(func.sum(SalesEntry.total_quantity_purchased), 0),
        )
        .join(SalesSession, SalesSession.id == SalesEntry.sales_session_id)
        .where(SalesSession.session_date >= start_date, SalesSession.session_date <= end_date)
    )
    procurement_stmt = (
        select(
            func.coalesce(func.sum(ProcurementEntry.total_amount), 0),
            func.coalesce(func.sum(ProcurementEntry.quantity), 0),
        )
        .join(ProcurementSession, ProcurementSession.id == ProcurementEntry.procurement_session_id)
        .where(ProcurementSession.session_date >= start_date, ProcurementSession.session_date <= end_date)
    )
    if item_id:
        sales_stmt = sales_stmt.where(SalesEntry.item_id == item_id)
        procurement_stmt = procurement_stmt.where(ProcurementEntry.item_id == item_id)

    sales_amount, sales_quantity = db.execute(sales_stmt).one()
    procurement_amount, procurement_quantity = db.execute(procurement_stmt).one()
    total_sales = to_money(sales_amount)
    total_procurement = to_money(procurement_amount)
    gross_profit = to_money(total_sales - total_procurement)
    margin = to_money(gross_profit / total_sales * 100) if total_sales > 0 else ZERO_MONEY
    return ProfitAnalysis(
        start_date=start_date,
        end_date=end_date,
        item_id=item_id,
        total_sales=total_sales,
        total_procurement=total_procurement,
        quantity_sold=to_qty(sales_quantity),
        quantity_procured=to_qty(procurement_quantity),
        gross_profit=gross_profit,
        profit_margin=margin,
    )
