"""Decimal helpers shared by the calculators.

All money is Decimal. Amounts are rounded half-up to centavos only where a
value becomes a bill or allocation line; intermediate figures keep full precision.
"""

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
ZERO = Decimal("0")


def to_decimal(value) -> Decimal:
    """Convert int/float/str/None to Decimal without binary float artefacts."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(value) -> Decimal:
    """Round to centavos, half-up (spreadsheet ROUND semantics)."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


__all__ = ["CENT", "ZERO", "to_decimal", "round_money"]
