from typing import Any

from pydantic import BaseModel, ConfigDict


class IntegrityCheckIn(BaseModel):
    repair: bool = False

    model_config = ConfigDict(json_schema_extra={"example": {"repair": False}})


class IntegrityIssueOut(BaseModel):
    kind: str
    key: dict[str, Any]
    expected: dict[str, Any]
    actual: dict[str, Any] | None = None
    repaired: bool


class IntegrityReportOut(BaseModel):
    ok: bool
    checked_balances: int
    checked_inventory: int
    checked_snapshots: int
    repaired: int
    issues: list[IntegrityIssueOut]
