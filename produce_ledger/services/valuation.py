from decimal import Decimal

from produce_ledger.core.money import ZERO_QTY, to_qty, to_rate


def revalue(
    existing_qty: Decimal,
    existing_rate: Decimal,
    incoming_qty: Decimal,
    incoming_rate: Decimal,
) -> Decimal:
    """
    Weighted-average cost basis after adding incoming_qty at incoming_rate.

    Only stock increases go through here; reductions use reduce_stock and keep
    the existing rate.
    """
    total_qty = existing_qty + incoming_qty
    if total_qty <= 0:
        return to_rate(incoming_rate)
    total_value = existing_qty * existing_rate + incoming_qty * incoming_rate
    return to_rate(total_value / total_qty)


def reduce_stock(stock: Decimal, qty: Decimal) -> tuple[Decimal, Decimal]:
    """Returns (new_stock, shortfall); new_stock never goes below zero."""
    remaining = stock - qty
    if remaining < 0:
        return ZERO_QTY, to_qty(-remaining)
    return to_qty(remaining), ZERO_QTY
