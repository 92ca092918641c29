"""
Core Module - Decimal Math.

============================================================
RESPONSIBILITY
============================================================
Exact base-10 arithmetic over money-like values.

- Amounts travel through the system as decimal strings
- Every combination of amounts goes through this module
- Long-running cumulative sums never drift

============================================================
DESIGN PRINCIPLES
============================================================
- No floats, ever
- Missing values (None, "") count as zero for plus/minus
- Output is a plain decimal string: no exponent, no trailing
  fractional zeros ("6000.06006", "100", "0")
- Division keeps DIVISION_PLACES fractional digits (half-up)

============================================================
"""

from decimal import (
    MAX_EMAX,
    MAX_PREC,
    MIN_EMIN,
    Context,
    Decimal,
    InvalidOperation,
    ROUND_DOWN,
    ROUND_HALF_UP,
)
from fractions import Fraction
from typing import Iterable, Optional, Union


Numeric = Union[str, int, Decimal, None]


# ============================================================
# CONSTANTS
# ============================================================

DIVISION_PLACES = 20
"""Fractional digits kept by div()."""

# Unbounded precision: add, subtract and multiply are always exact.
# Division never runs in this context (see div()).
_CONTEXT = Context(prec=MAX_PREC, Emax=MAX_EMAX, Emin=MIN_EMIN, rounding=ROUND_HALF_UP)
_DIVISION_SCALE = 10 ** DIVISION_PLACES


class DecimalArithmeticError(ValueError):
    """Raised on malformed operands or division by zero."""
    pass


# ============================================================
# CONVERSION
# ============================================================

def to_decimal(value: Numeric, allow_empty: bool = True) -> Decimal:
    """
    Convert an operand to Decimal.

    Args:
        value: Decimal string, int, Decimal or None
        allow_empty: Treat None/"" as zero

    Returns:
        Decimal value

    Raises:
        DecimalArithmeticError: On malformed or non-finite input
    """
    if value is None or (isinstance(value, str) and value.strip() == ""):
        if allow_empty:
            return Decimal(0)
        raise DecimalArithmeticError("Missing decimal operand")

    if isinstance(value, float):
        raise DecimalArithmeticError(f"Refusing float operand: {value!r}")

    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except InvalidOperation as e:
        raise DecimalArithmeticError(f"Malformed decimal operand: {value!r}") from e

    if not result.is_finite():
        raise DecimalArithmeticError(f"Non-finite decimal operand: {value!r}")

    return result


def to_string(value: Decimal) -> str:
    """Render a Decimal as a plain decimal string."""
    if value.is_zero():
        return "0"
    return format(value.normalize(_CONTEXT), "f")


# ============================================================
# OPERATIONS
# ============================================================

def plus(a: Numeric, b: Numeric) -> str:
    """a + b"""
    return to_string(_CONTEXT.add(to_decimal(a), to_decimal(b)))


def minus(a: Numeric, b: Numeric) -> str:
    """a - b"""
    return to_string(_CONTEXT.subtract(to_decimal(a), to_decimal(b)))


def times(a: Numeric, b: Numeric) -> str:
    """a * b"""
    return to_string(
        _CONTEXT.multiply(to_decimal(a, False), to_decimal(b, False))
    )


def div(a: Numeric, b: Numeric) -> str:
    """
    a / b, rounded half-up to DIVISION_PLACES fractional digits.

    The quotient is computed as an exact fraction first, so operand
    size never affects the result.

    Raises:
        DecimalArithmeticError: If b is zero or the quotient cannot be represented
    """
    dividend = to_decimal(a, False)
    divisor = to_decimal(b, False)
    if divisor.is_zero():
        raise DecimalArithmeticError(f"Division by zero: {a!r} / {b!r}")

    scaled = Fraction(dividend) / Fraction(divisor) * _DIVISION_SCALE
    units, remainder = divmod(abs(scaled.numerator), scaled.denominator)
    if 2 * remainder >= scaled.denominator:
        units += 1
    if scaled < 0:
        units = -units

    try:
        quotient = Decimal(units).scaleb(-DIVISION_PLACES, context=_CONTEXT)
    except InvalidOperation as e:
        raise DecimalArithmeticError(f"Cannot represent {a!r} / {b!r}") from e

    return to_string(quotient)


def get_integer_portion(a: Numeric) -> str:
    """Integer part of a, truncated toward zero."""
    return to_string(to_decimal(a, False).to_integral_value(rounding=ROUND_DOWN, context=_CONTEXT))


def is_zero(a: Numeric) -> bool:
    """True when a is zero or missing."""
    return to_decimal(a).is_zero()


def sum_all(values: Iterable[Numeric], start: Optional[Numeric] = None) -> str:
    """Exact sum of an iterable of amounts."""
    total = to_decimal(start)
    for value in values:
        total = _CONTEXT.add(total, to_decimal(value))
    return to_string(total)


__all__ = [
    "DIVISION_PLACES",
    "DecimalArithmeticError",
    "to_decimal",
    "to_string",
    "plus",
    "minus",
    "times",
    "div",
    "get_integer_portion",
    "is_zero",
    "sum_all",
]
