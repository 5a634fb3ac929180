from datetime import date
from decimal import Decimal
from typing import Any

from sqlalchemy.orm import Session

from produce_ledger.core.id_utils import generate_shortuuid
from produce_ledger.models.audit_log import AuditLog

SYSTEM_ACTOR = "system"


def _plain(value: Any) -> Any:
    # JSON columns reject Decimal and date.
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, date):
        return value.isoformat()
    return value


def log_audit_event(
    db: Session,
    *,
    action: str,
    target_type: str,
    target_id: str | None = None,
    metadata_json: dict[str, Any] | None = None,
    actor: str | None = None,
) -> AuditLog:
    """Stage an audit row in the caller's transaction; it commits or rolls back with the event."""
    row = AuditLog(
        id=generate_shortuuid(),
        actor=actor or SYSTEM_ACTOR,
        action=action,
        target_type=target_type,
        target_id=target_id,
        metadata_json={key: _plain(value) for key, value in metadata_json.items()} if metadata_json else None,
    )
    db.add(row)
    return row
