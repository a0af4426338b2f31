# core/money.py
from decimal import ROUND_HALF_UP, Decimal

DECIMAL_ZERO = Decimal("0.00")
QTY_ZERO = Decimal("0.000")
CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def money(value) -> Decimal:
    """Round to euro cents, half up."""
    return Decimal(value or 0).quantize(CENT, rounding=ROUND_HALF_UP)


def line_amounts(quantity, unit_price, vat_rate) -> tuple[Decimal, Decimal]:
    """
    (net line total, VAT on the line), both rounded to cents.
    """
    net = money(Decimal(quantity or 0) * Decimal(unit_price or 0))
    vat = money(net * Decimal(vat_rate or 0) / HUNDRED)
    return net, vat
