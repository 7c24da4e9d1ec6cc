"""Decimal helpers for cash, prices and share counts.

Cash and trade amounts are Decimal so that cash conservation holds exactly:
initial_cash - sum(trade amounts) == cash, with no float drift.
Prices are exact (percent / 100). Share counts are fractional.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

_CENT = Decimal("0.01")


def to_decimal(value: object) -> Decimal:
    """Coerce a request/DB value to Decimal. Floats go through str() to avoid
    binary artefacts (0.1 -> Decimal('0.1'), not 0.1000000000000000055...)."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        value = repr(value)
    try:
        return Decimal(value)  # type: ignore[arg-type]
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise ValueError(f"Not a decimal value: {value!r}") from exc


def price_from_percent(percent: int) -> Decimal:
    """YES quote for an integer percent: 40 -> Decimal('0.40')."""
    return Decimal(percent) / Decimal(100)


def money_display(amount: Decimal) -> str:
    """Render money: Decimal('1234.5') -> '$1,234.50', Decimal('-12') -> '-$12.00'."""
    rounded = amount.quantize(_CENT, rounding=ROUND_HALF_UP)
    if rounded < 0:
        return f"-${-rounded:,.2f}"
    return f"${rounded:,.2f}"
