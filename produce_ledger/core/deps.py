from collections.abc import Generator
from datetime import date, datetime
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from produce_ledger.core.config import settings
from produce_ledger.db.session import SessionLocal


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_business_date() -> date:
    """The market's "today". The only place the wall clock is read."""
    return datetime.now(ZoneInfo(settings.business_timezone)).date()
