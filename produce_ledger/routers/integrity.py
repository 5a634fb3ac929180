from datetime import date

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from produce_ledger.core.api_docs import error_responses
from produce_ledger.core.deps import get_business_date, get_db
from produce_ledger.schemas.integrity import IntegrityCheckIn, IntegrityIssueOut, IntegrityReportOut
from produce_ledger.services.integrity_service import run_integrity_check

router = APIRouter(prefix="/integrity", tags=["integrity"])


@router.post(
    "/check",
    response_model=IntegrityReportOut,
    summary="Compare aggregates with their journals",
    description="With repair=true, outstanding balances and live stock are rewritten from the journals.",
    responses=error_responses(422, 500),
)
def check_integrity(
    payload: IntegrityCheckIn,
    db: Session = Depends(get_db),
    as_of: date = Depends(get_business_date),
):
    report = run_integrity_check(db, repair=payload.repair, as_of=as_of)
    return IntegrityReportOut(
        ok=report.ok,
        checked_balances=report.checked_balances,
        checked_inventory=report.checked_inventory,
        checked_snapshots=report.checked_snapshots,
        repaired=report.repaired,
        issues=[
            IntegrityIssueOut(
                kind=issue.kind,
                key=issue.key,
                expected=issue.expected,
                actual=issue.actual,
                repaired=issue.repaired,
            )
            for issue in report.issues
        ],
    )
