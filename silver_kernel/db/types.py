"""
Module: silver_kernel.db.types
Responsibility: Annotated type aliases and rounding functions for weight and
    money columns.  Centralizes precision so that every model and service
    uses identical definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - Weights (grams of fine silver) persist with 3 decimal places.
    - Money (currency units) persists with 2 decimal places.
    - round_weight() / round_money() are the ONLY sanctioned rounding
      functions.  They are applied when a value is persisted, never to
      intermediate results.
    - No floats anywhere.  All quantities are Decimal.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Annotated

from sqlalchemy import Numeric

from silver_kernel.exceptions import InvalidArgumentError

WEIGHT_DECIMAL_PLACES = 3
MONEY_DECIMAL_PLACES = 2
PERCENT_DECIMAL_PLACES = 3
RATE_DECIMAL_PLACES = 4
DEFAULT_ROUNDING = ROUND_HALF_UP

# Grams of silver, 3 decimal places
Weight = Annotated[Decimal, Numeric(14, WEIGHT_DECIMAL_PLACES)]

# Currency units, 2 decimal places
Money = Annotated[Decimal, Numeric(16, MONEY_DECIMAL_PLACES)]

# Touch / wastage / GST percentages
Percent = Annotated[Decimal, Numeric(7, PERCENT_DECIMAL_PLACES)]

# Silver rate per gram, labor rate per kg
Rate = Annotated[Decimal, Numeric(16, RATE_DECIMAL_PLACES)]


ZERO = Decimal("0")


def _quantize(value: Decimal, decimal_places: int, rounding: str) -> Decimal:
    quantize_str = "0." + "0" * decimal_places
    return value.quantize(Decimal(quantize_str), rounding=rounding)


def round_weight(value: Decimal, rounding: str = DEFAULT_ROUNDING) -> Decimal:
    """
    Round a silver weight to 3 decimal places.

    Preconditions: value is a Decimal.
    Postconditions: Returns value quantized to 0.001 g.
    """
    return _quantize(value, WEIGHT_DECIMAL_PLACES, rounding)


def round_money(value: Decimal, rounding: str = DEFAULT_ROUNDING) -> Decimal:
    """
    Round a monetary amount to 2 decimal places.

    Preconditions: value is a Decimal.
    Postconditions: Returns value quantized to 0.01.
    """
    return _quantize(value, MONEY_DECIMAL_PLACES, rounding)


def to_decimal(value, field_name: str = "value") -> Decimal:
    """
    Convert a caller-supplied number to Decimal.

    Strings and ints convert exactly.  Floats convert through ``str()`` so
    that ``0.1`` becomes ``Decimal("0.1")`` rather than its binary expansion.

    Raises:
        InvalidArgumentError: If the value is None, a bool, or not numeric.
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool) or value is None:
        raise InvalidArgumentError(f"{field_name} must be a number, got {value!r}", field=field_name)
    elif isinstance(value, float):
        result = Decimal(str(value))
    else:
        try:
            result = Decimal(value)
        except (InvalidOperation, TypeError):
            raise InvalidArgumentError(f"{field_name} must be a number, got {value!r}", field=field_name) from None
    if not result.is_finite():
        raise InvalidArgumentError(f"{field_name} must be finite, got {value!r}", field=field_name)
    return result
