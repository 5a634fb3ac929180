from decimal import Decimal, ROUND_HALF_UP

MONEY_QUANT = Decimal("0.01")
ZERO_MONEY = Decimal("0.00")

# Quantities may be weights, so they keep grams.
QTY_QUANT = Decimal("0.001")
ZERO_QTY = Decimal("0.000")

RATE_QUANT = Decimal("0.0001")
ZERO_RATE = Decimal("0.0000")


def to_money(value: Decimal | int | float | str) -> Decimal:
    return Decimal(str(value)).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def to_qty(value: Decimal | int | float | str) -> Decimal:
    return Decimal(str(value)).quantize(QTY_QUANT, rounding=ROUND_HALF_UP)


def to_rate(value: Decimal | int | float | str) -> Decimal:
    return Decimal(str(value)).quantize(RATE_QUANT, rounding=ROUND_HALF_UP)
