"""
Module: practice_kernel.db.types
Responsibility: Annotated type aliases and rounding helpers for monetary
    columns.  Centralizes precision so every model and service uses identical
    definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - MONEY_DECIMAL_PLACES is the precision of every invoice and ledger
      amount.  round_money() is the ONLY sanctioned rounding function.
    - No floats anywhere in the kernel.

Failure modes:
    - decimal.InvalidOperation on non-numeric input to to_money().
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated

from sqlalchemy import Numeric, String

# Monetary amount: 15 digits, 2 decimal places
Money = Annotated[Decimal, Numeric(15, 2)]

# Percentage rate (e.g. 18.0000 for 18%)
Rate = Annotated[Decimal, Numeric(7, 4)]

# Short identifier strings (codes, statuses)
ShortCode = Annotated[str, String(50)]

# Display names and narrations
LongText = Annotated[str, String(1000)]

MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0.00")


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to specified decimal places.

    This is the ONLY sanctioned rounding function for monetary values.
    Tax amounts are computed as round_money(subtotal * rate / 100).
    """
    quantize_str = "0." + "0" * decimal_places
    return value.quantize(Decimal(quantize_str), rounding=rounding)


def to_money(value: Decimal | int | str | None) -> Decimal | None:
    """Coerce a numeric input to a rounded Decimal; None passes through."""
    if value is None:
        return None
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return round_money(value)
