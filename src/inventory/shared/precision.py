"""Rounding rules for stock quantities and money.

Quantities are kept to 3 decimal places, currency to 2, both rounded half-up.
Values are quantized through ``Decimal`` so that float noise never leaks into
persisted counters or ledger entries.
"""

from decimal import ROUND_HALF_UP, Decimal

QUANTITY_PLACES = Decimal("0.001")
CURRENCY_PLACES = Decimal("0.01")


def _to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_quantity(value) -> float:
    return float(_to_decimal(value).quantize(QUANTITY_PLACES, rounding=ROUND_HALF_UP))


def round_currency(value) -> Decimal:
    """Round a monetary amount to 2 decimal places."""
    return _to_decimal(value).quantize(CURRENCY_PLACES, rounding=ROUND_HALF_UP)


def line_value(quantity, unit_cost) -> float | None:
    """Value of ``quantity`` units at ``unit_cost``, or None when no cost is known."""
    if unit_cost is None:
        return None
    return float(round_currency(_to_decimal(quantity) * _to_decimal(unit_cost)))


def format_quantity(value) -> str:
    """Render a quantity without trailing zeros, e.g. ``80`` or ``12.5``."""
    return format(_to_decimal(round_quantity(value)).normalize(), "f")
