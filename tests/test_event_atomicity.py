import threading
from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import sessionmaker

from produce_ledger.core.id_utils import generate_shortuuid
from produce_ledger.db.base import Base
from produce_ledger.main import app
from produce_ledger.models.balances import BalanceJournal, OutstandingBalance
from produce_ledger.models.inventory import CurrentInventory, DailyInventorySnapshot, InventoryMovement, ItemType
from produce_ledger.models.master import Item, Supplier
from produce_ledger.models.procurement import ProcurementEntry, ProcurementSession
from produce_ledger.services import ledger_engine
from produce_ledger.services.key_locks import ledger_locks
from produce_ledger.services.procurement_service import open_procurement_session, record_procurement

TODAY = date(2026, 2, 16)


def _fail_balance_update(*args, **kwargs):
    raise RuntimeError("balance store unavailable")


def test_failure_after_stock_update_rolls_back_whole_event(session_local, master_data, monkeypatch):
    ids = master_data
    with session_local() as db:
        session_id = open_procurement_session(db, session_date=TODAY).id

    monkeypatch.setattr(ledger_engine, "apply_balance_delta", _fail_balance_update)
    with session_local() as db:
        with pytest.raises(RuntimeError, match="balance store unavailable"):
            record_procurement(
                db,
                session_id=session_id,
                supplier_id=ids["supplier"],
                item_id=ids["item"],
                type_name="A",
                quantity=Decimal("10"),
                rate=Decimal("5"),
                as_of=TODAY,
            )

    with session_local() as db:
        assert db.execute(select(CurrentInventory)).scalars().all() == []
        assert db.execute(select(DailyInventorySnapshot)).scalars().all() == []
        assert db.execute(select(ItemType)).scalars().all() == []
        assert db.execute(select(InventoryMovement)).scalars().all() == []
        assert db.execute(select(BalanceJournal)).scalars().all() == []
        assert db.execute(select(ProcurementEntry)).scalars().all() == []
        session = db.get(ProcurementSession, session_id)
        assert session.total_amount == Decimal("0")
        assert session.total_suppliers == 0
    assert len(ledger_locks) == 0


def test_failed_event_returns_error_envelope_and_writes_nothing(test_context, master_data, monkeypatch):
    _, session_local = test_context
    ids = master_data
    with session_local() as db:
        session_id = open_procurement_session(db, session_date=TODAY).id

    monkeypatch.setattr(ledger_engine, "apply_balance_delta", _fail_balance_update)
    with TestClient(app, raise_server_exceptions=False) as client:
        res = client.post(
            "/procurement/entries",
            json={
                "procurement_session_id": session_id,
                "supplier_id": ids["supplier"],
                "item_id": ids["item"],
                "type_name": "A",
                "quantity": 10,
                "rate": 5,
            },
        )
    assert res.status_code == 500, res.text
    assert res.json()["error"]["code"] == "internal_error"

    with session_local() as db:
        assert db.execute(select(func.count(CurrentInventory.id))).scalar_one() == 0
        assert db.execute(select(func.count(DailyInventorySnapshot.id))).scalar_one() == 0


def test_unknown_references_do_not_leave_locks_behind(test_context, master_data):
    client, _ = test_context
    ids = master_data
    baseline = len(ledger_locks)

    for n in range(25):
        res = client.post(
            "/procurement/entries",
            json={
                "procurement_session_id": f"missing-session-{n}",
                "supplier_id": f"missing-supplier-{n}",
                "item_id": f"missing-item-{n}",
                "type_name": f"T{n}",
                "quantity": 1,
                "rate": 1,
            },
        )
        assert res.status_code == 404, res.text

        pay = client.post(
            "/payments",
            json={
                "payment_date": TODAY.isoformat(),
                "party_kind": "seller",
                "party_id": f"missing-seller-{n}",
                "item_id": ids["item"],
                "amount": 5,
            },
        )
        assert pay.status_code == 404, pay.text

    assert len(ledger_locks) == baseline


@pytest.fixture()
def file_session_local(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'ledger.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


def test_concurrent_procurements_on_one_stock_lose_no_update(file_session_local):
    item_id = generate_shortuuid()
    supplier_id = generate_shortuuid()
    with file_session_local() as db:
        db.add(Item(id=item_id, name="Tomato", quantity_type="crates", unit_name="crate", is_active=True))
        db.add(Supplier(id=supplier_id, name="Ravi Farms", is_active=True))
        db.commit()
        session_id = open_procurement_session(db, session_date=TODAY).id

    rates = [Decimal("3"), Decimal("6"), Decimal("9"), Decimal("12")]
    start = threading.Barrier(len(rates))
    errors: list[Exception] = []

    def worker(rate: Decimal) -> None:
        try:
            start.wait(timeout=5)
            with file_session_local() as db:
                record_procurement(
                    db,
                    session_id=session_id,
                    supplier_id=supplier_id,
                    item_id=item_id,
                    type_name="A",
                    quantity=Decimal("10"),
                    rate=rate,
                    as_of=TODAY,
                )
        except Exception as exc:
            errors.append(exc)

    threads = [threading.Thread(target=worker, args=(rate,)) for rate in rates]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert errors == []
    with file_session_local() as db:
        stock = db.execute(select(CurrentInventory)).scalar_one()
        assert stock.current_stock == Decimal("40")
        assert stock.weighted_avg_rate == Decimal("7.5")

        snapshot = db.execute(select(DailyInventorySnapshot)).scalar_one()
        assert snapshot.purchased_today == Decimal("40")
        assert snapshot.closing_stock == Decimal("40")
        assert snapshot.weighted_avg_purchase_rate == Decimal("7.5")

        balance = db.execute(select(OutstandingBalance)).scalar_one()
        assert balance.payment_due == Decimal("300")
        assert balance.quantity_due == Decimal("40")

        assert db.execute(select(func.count(BalanceJournal.seq))).scalar_one() == 4
        assert db.execute(select(func.count(InventoryMovement.seq))).scalar_one() == 4

        session = db.get(ProcurementSession, session_id)
        assert session.total_amount == Decimal("300")
        assert session.total_suppliers == 1
    assert len(ledger_locks) == 0
