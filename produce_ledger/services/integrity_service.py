import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from produce_ledger.core.id_utils import generate_shortuuid
from produce_ledger.core.money import ZERO_QTY, to_money, to_qty, to_rate
from produce_ledger.core.observability import log_ledger_event
from produce_ledger.db.unit_of_work import unit_of_work
from produce_ledger.models.balances import BalanceJournal, OutstandingBalance
from produce_ledger.models.inventory import CurrentInventory, DailyInventorySnapshot
from produce_ledger.services import carry_forward
from produce_ledger.services.audit_service import log_audit_event
from produce_ledger.services.inventory_service import movement_keys, replay_stock
from produce_ledger.services.key_locks import balance_key, inventory_key, ledger_locks
from produce_ledger.services.ledger_engine import closing_identity
from produce_ledger.services.replay_service import compute_fold, replay_balance


@dataclass
class IntegrityIssue:
    kind: str
    key: dict[str, Any]
    expected: dict[str, Any]
    actual: dict[str, Any] | None
    repaired: bool = False


@dataclass
class IntegrityReport:
    checked_balances: int = 0
    checked_inventory: int = 0
    checked_snapshots: int = 0
    issues: list[IntegrityIssue] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.issues

    @property
    def repaired(self) -> int:
        return sum(1 for issue in self.issues if issue.repaired)


def _balance_keys(db: Session) -> list[tuple[str, str, str]]:
    keys = set(
        db.execute(
            select(BalanceJournal.party_kind, BalanceJournal.party_id, BalanceJournal.item_id).distinct()
        ).all()
    )
    keys.update(
        db.execute(
            select(OutstandingBalance.party_kind, OutstandingBalance.party_id, OutstandingBalance.item_id)
        ).all()
    )
    return sorted((kind, party, item) for kind, party, item in keys)


def _inventory_keys(db: Session) -> list[tuple[str, str]]:
    keys = set(movement_keys(db))
    keys.update(db.execute(select(CurrentInventory.item_id, CurrentInventory.type_name)).all())
    return sorted((item, type_name) for item, type_name in keys)


def _check_balances(db: Session, report: IntegrityReport, *, repair: bool, as_of: date) -> None:
    for party_kind, party_id, item_id in _balance_keys(db):
        report.checked_balances += 1
        fold = compute_fold(db, party_kind=party_kind, party_id=party_id, item_id=item_id)
        row = db.execute(
            select(OutstandingBalance).where(
                OutstandingBalance.party_kind == party_kind,
                OutstandingBalance.party_id == party_id,
                OutstandingBalance.item_id == item_id,
            )
        ).scalar_one_or_none()
        expected = {"payment_due": fold.balance.payment_due, "quantity_due": fold.balance.quantity_due}
        key = {"party_kind": party_kind, "party_id": party_id, "item_id": item_id}

        if row is None:
            issue = IntegrityIssue(kind="balance_missing", key=key, expected=expected, actual=None)
        elif to_money(row.payment_due) != fold.balance.payment_due or to_qty(row.quantity_due) != fold.balance.quantity_due:
            issue = IntegrityIssue(
                kind="balance_mismatch",
                key=key,
                expected=expected,
                actual={"payment_due": to_money(row.payment_due), "quantity_due": to_qty(row.quantity_due)},
            )
        else:
            continue

        if repair:
            replay_balance(db, party_kind=party_kind, party_id=party_id, item_id=item_id, as_of=as_of)
            issue.repaired = True
        report.issues.append(issue)


def _check_inventory(db: Session, report: IntegrityReport, *, repair: bool, as_of: date) -> None:
    for item_id, type_name in _inventory_keys(db):
        report.checked_inventory += 1
        stock, rate = replay_stock(db, item_id=item_id, type_name=type_name)
        row = db.execute(
            select(CurrentInventory).where(
                CurrentInventory.item_id == item_id, CurrentInventory.type_name == type_name
            )
        ).scalar_one_or_none()
        expected = {"current_stock": stock, "weighted_avg_rate": rate}
        key = {"item_id": item_id, "type_name": type_name}

        if row is None:
            if stock == ZERO_QTY:
                continue
            issue = IntegrityIssue(kind="inventory_missing", key=key, expected=expected, actual=None)
        elif to_qty(row.current_stock) != stock or to_rate(row.weighted_avg_rate) != rate:
            issue = IntegrityIssue(
                kind="inventory_mismatch",
                key=key,
                expected=expected,
                actual={"current_stock": to_qty(row.current_stock), "weighted_avg_rate": to_rate(row.weighted_avg_rate)},
            )
        else:
            continue

        if repair:
            if row is None:
                row = CurrentInventory(id=generate_shortuuid(), item_id=item_id, type_name=type_name)
                db.add(row)
            row.current_stock = stock
            row.weighted_avg_rate = rate
            row.last_updated = as_of
            db.flush()
            issue.repaired = True
        report.issues.append(issue)


def _check_snapshots(db: Session, report: IntegrityReport) -> None:
    rows = db.execute(
        select(DailyInventorySnapshot).order_by(
            DailyInventorySnapshot.item_id.asc(),
            DailyInventorySnapshot.type_name.asc(),
            DailyInventorySnapshot.inventory_date.asc(),
        )
    ).scalars().all()
    for row in rows:
        report.checked_snapshots += 1
        key = {"inventory_date": row.inventory_date, "item_id": row.item_id, "type_name": row.type_name}

        expected_closing = closing_identity(row)
        if to_qty(row.closing_stock) != expected_closing:
            report.issues.append(
                IntegrityIssue(
                    kind="snapshot_closing",
                    key=key,
                    expected={"closing_stock": expected_closing},
                    actual={"closing_stock": to_qty(row.closing_stock)},
                )
            )

        found = carry_forward.resolve(db, item_id=row.item_id, type_name=row.type_name, on_date=row.inventory_date)
        expected_opening = to_qty(found.stock) if found is not None else ZERO_QTY
        if to_qty(row.opening_stock) != expected_opening:
            report.issues.append(
                IntegrityIssue(
                    kind="snapshot_opening",
                    key=key,
                    expected={"opening_stock": expected_opening},
                    actual={"opening_stock": to_qty(row.opening_stock)},
                )
            )


def run_integrity_check(db: Session, *, repair: bool, as_of: date, actor: str | None = None) -> IntegrityReport:
    """
    Compare every aggregate with what its journal says it should be.

    Outstanding balances and current inventory can be repaired from their
    journals. Snapshots are history and are only reported.
    """
    report = IntegrityReport()
    if repair:
        keys = [balance_key(kind, party, item) for kind, party, item in _balance_keys(db)]
        keys.extend(inventory_key(item, type_name) for item, type_name in _inventory_keys(db))
        db.rollback()
        with ledger_locks.hold(keys), unit_of_work(db):
            _check_balances(db, report, repair=True, as_of=as_of)
            _check_inventory(db, report, repair=True, as_of=as_of)
            _check_snapshots(db, report)
            if report.repaired:
                log_audit_event(
                    db,
                    actor=actor,
                    action="integrity.repair",
                    target_type="ledger",
                    metadata_json={"repaired": report.repaired, "issues": len(report.issues)},
                )
    else:
        _check_balances(db, report, repair=False, as_of=as_of)
        _check_inventory(db, report, repair=False, as_of=as_of)
        _check_snapshots(db, report)

    log_ledger_event(
        "integrity_check",
        level=logging.INFO if report.ok else logging.WARNING,
        repair=repair,
        checked_balances=report.checked_balances,
        checked_inventory=report.checked_inventory,
        checked_snapshots=report.checked_snapshots,
        issues=len(report.issues),
        repaired=report.repaired,
    )
    return report
