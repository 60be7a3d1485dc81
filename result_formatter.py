# result_formatter.py
"""
Makes results readable: thousands separators plus an optional unit suggestion.

    format_grouped(Decimal('50000000'))               -> '50,000,000'
    format_with_unit_suggestion(Decimal('50000000'))  -> '50,000,000 (50m)'
    format_with_unit_suggestion(Decimal('1728'))      -> '1,728 (1 shulker box)'
"""

import unicodedata
from decimal import MAX_EMAX, MAX_PREC, MIN_EMIN, ROUND_HALF_EVEN, ROUND_HALF_UP, Context, Decimal
from typing import Optional

MAX_FRACTION_DIGITS = 10

_EXACT = Context(prec=MAX_PREC, Emax=MAX_EMAX, Emin=MIN_EMIN)
_FRACTION_QUANTUM = Decimal(1).scaleb(-MAX_FRACTION_DIGITS)
_TWO_PLACES = Decimal('0.01')

# Storage containers are named instead of shown as a ratio
CONTAINERS = (
    (Decimal(2880), "1 ender chest"),
    (Decimal(3456), "1 double chest"),
    (Decimal(1728), "1 shulker box"),
)

# Checked largest first; (threshold, exact reciprocal, letter)
MAGNITUDES = (
    (Decimal('1E12'), Decimal('1E-12'), 't'),
    (Decimal('1E9'), Decimal('1E-9'), 'b'),
    (Decimal('1E6'), Decimal('1E-6'), 'm'),
    (Decimal('1E3'), Decimal('1E-3'), 'k'),
)

STACK_SIZE = Decimal(64)
STACK_RECIPROCAL = Decimal('0.015625')
STACK_LIMIT = Decimal(10000)


def _plain(value: Decimal) -> str:
    """Render without exponent or trailing fractional zeros."""
    text = format(value, 'f')
    if '.' in text:
        text = text.rstrip('0').rstrip('.')
    return text


def format_grouped(value: Decimal, grouping: bool = True) -> str:
    """Format with commas and at most 10 fractional digits, trailing zeros removed."""
    if value.as_tuple().exponent < -MAX_FRACTION_DIGITS:
        value = value.quantize(_FRACTION_QUANTUM, rounding=ROUND_HALF_EVEN, context=_EXACT)
    if value.is_zero():
        value = value.copy_abs()
    text = format(value, ',f' if grouping else 'f')
    if '.' in text:
        text = text.rstrip('0').rstrip('.')
    return text


def suggest_unit(value: Decimal) -> Optional[str]:
    """Suggest a unit that matches this number, or None."""
    magnitude = value.copy_abs()

    for size, name in CONTAINERS:
        if magnitude == size:
            return name

    # the quotient is rounded to 2 places, so it is always "clean" enough to show
    for threshold, reciprocal, letter in MAGNITUDES:
        if magnitude >= threshold:
            quotient = _EXACT.multiply(value, reciprocal)
            quotient = quotient.quantize(_TWO_PLACES, rounding=ROUND_HALF_UP, context=_EXACT)
            return _plain(quotient) + letter

    if STACK_SIZE <= magnitude < STACK_LIMIT:
        stacks = _EXACT.multiply(value, STACK_RECIPROCAL)
        stacks = stacks.quantize(_FRACTION_QUANTUM, rounding=ROUND_HALF_UP, context=_EXACT)
        if stacks == stacks.to_integral_value():
            count = int(stacks)
            return "1 stack" if count == 1 else f"{count} stacks"
        if stacks.normalize(_EXACT).as_tuple().exponent >= -2:
            return f"{_plain(stacks)} stacks"

    return None


def format_with_unit_suggestion(value: Decimal, show_suggestions: bool = True,
                                grouping: bool = True) -> str:
    """Format with commas and, when one fits, a unit suggestion: '50,000,000 (50m)'."""
    result = format_grouped(value, grouping)
    if show_suggestions:
        suggestion = suggest_unit(value)
        if suggestion is not None:
            result += f" ({suggestion})"
    return result


def clean_input(raw: Optional[str]) -> str:
    """Strip invisible format characters (zero-width spaces, BOMs) and surrounding whitespace."""
    if raw is None:
        return ""
    return "".join(ch for ch in raw if unicodedata.category(ch) != 'Cf').strip()
