from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from produce_ledger.core.errors import LedgerValidationError
from produce_ledger.core.id_utils import generate_shortuuid
from produce_ledger.core.money import to_money, to_qty
from produce_ledger.core.observability import log_ledger_event
from produce_ledger.db.unit_of_work import unit_of_work
from produce_ledger.models.payment import Payment
from produce_ledger.services import ledger_engine
from produce_ledger.services.audit_service import log_audit_event
from produce_ledger.services.key_locks import balance_key, ledger_locks
from produce_ledger.services.references import require_item, require_non_negative, require_party


def record_payment(
    db: Session,
    *,
    payment_date: date,
    party_kind: str,
    party_id: str,
    item_id: str,
    amount: Decimal,
    quantity_returned: Decimal,
    notes: str | None,
    as_of: date,
    actor: str | None = None,
) -> Payment:
    amount = to_money(amount)
    quantity_returned = to_qty(quantity_returned)
    require_non_negative("amount", amount)
    require_non_negative("quantity_returned", quantity_returned)
    if amount == 0 and quantity_returned == 0:
        raise LedgerValidationError("A payment needs a positive amount or quantity_returned")

    with ledger_locks.hold([balance_key(party_kind, party_id, item_id)]), unit_of_work(db):
        require_party(db, party_kind, party_id)
        require_item(db, item_id)

        payment_id = generate_shortuuid()
        update = ledger_engine.apply_balance_delta(
            db,
            party_kind=party_kind,
            party_id=party_id,
            item_id=item_id,
            payment_delta=-amount,
            quantity_delta=-quantity_returned,
            event_date=payment_date,
            event_type="payment",
            reference_id=payment_id,
            as_of=as_of,
        )
        payment = Payment(
            id=payment_id,
            payment_date=payment_date,
            party_kind=party_kind,
            party_id=party_id,
            item_id=item_id,
            amount=amount,
            quantity_returned=quantity_returned,
            notes=(notes or "").strip() or None,
        )
        db.add(payment)
        log_audit_event(
            db,
            actor=actor,
            action="payment.create",
            target_type="payment",
            target_id=payment_id,
            metadata_json={
                "payment_date": payment_date.isoformat(),
                "party_kind": party_kind,
                "party_id": party_id,
                "item_id": item_id,
                "amount": str(amount),
                "quantity_returned": str(quantity_returned),
            },
        )

    log_ledger_event(
        "event_recorded",
        event_type="payment",
        entry_id=payment_id,
        party_kind=party_kind,
        party_id=party_id,
        item_id=item_id,
        amount=amount,
        payment_due=update.new.payment_due,
    )
    return payment


def list_payments(
    db: Session,
    *,
    party_kind: str | None = None,
    party_id: str | None = None,
    payment_date: date | None = None,
) -> list[Payment]:
    stmt = select(Payment)
    if party_kind:
        stmt = stmt.where(Payment.party_kind == party_kind)
    if party_id:
        stmt = stmt.where(Payment.party_id == party_id)
    if payment_date is not None:
        stmt = stmt.where(Payment.payment_date == payment_date)
    stmt = stmt.order_by(Payment.payment_date.desc(), Payment.created_at.desc())
    return list(db.execute(stmt).scalars().all())
