import pytest
import os
from datetime import date

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite://")

import produce_ledger.models  # noqa: F401
from produce_ledger.core.config import settings
from produce_ledger.core.deps import get_business_date, get_db
from produce_ledger.core.id_utils import generate_shortuuid
from produce_ledger.db.base import Base
from produce_ledger.main import app
from produce_ledger.models.master import Item, Seller, Supplier

BUSINESS_DATE = date(2026, 2, 16)


@pytest.fixture()
def business_clock():
    return {"today": BUSINESS_DATE}


@pytest.fixture()
def session_local():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)
    yield factory
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def test_context(session_local, business_clock):
    original_policy = settings.balance_policy
    original_enforce = settings.enforce_stock_availability

    def override_get_db():
        db = session_local()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_business_date] = lambda: business_clock["today"]

    with TestClient(app) as client:
        yield client, session_local

    app.dependency_overrides.clear()
    settings.balance_policy = original_policy
    settings.enforce_stock_availability = original_enforce


@pytest.fixture()
def master_data(session_local):
    """One item, two suppliers and two sellers."""
    ids = {
        "item": generate_shortuuid(),
        "supplier": generate_shortuuid(),
        "supplier_b": generate_shortuuid(),
        "seller": generate_shortuuid(),
        "seller_b": generate_shortuuid(),
    }
    with session_local() as db:
        db.add(Item(id=ids["item"], name="Tomato", quantity_type="crates", unit_name="crate", is_active=True))
        db.add(Supplier(id=ids["supplier"], name="Ravi Farms", is_active=True))
        db.add(Supplier(id=ids["supplier_b"], name="Hill Orchards", is_active=True))
        db.add(Seller(id=ids["seller"], name="Asha Stores", is_active=True))
        db.add(Seller(id=ids["seller_b"], name="Bala Vegetables", is_active=True))
        db.commit()
    return ids
