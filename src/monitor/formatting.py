"""Display formatting helpers.

Missing or non-finite numbers render as PLACEHOLDER instead of leaking
"NaN" or raising into the display layer.
"""

import time
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

PLACEHOLDER = "-"

_AMOUNT_QUANTUM = Decimal("0.00000001")
_PRICE_SIGNIFICANT_DIGITS = 5


def to_decimal(value: Any) -> Decimal | None:
    """Convert an exchange payload value to Decimal, or None if it is not a finite number."""
    if value is None or isinstance(value, bool):
        return None
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not result.is_finite():
        return None
    return result


def format_amount(value: Any) -> str:
    """Render an amount with 8 decimal places."""
    amount = to_decimal(value)
    if amount is None:
        return PLACEHOLDER
    return f"{amount.quantize(_AMOUNT_QUANTUM, rounding=ROUND_HALF_UP):f}"


def format_price(value: Any) -> str:
    """Render a price with 5 significant digits, never truncating the integer part."""
    price = to_decimal(value)
    if price is None:
        return PLACEHOLDER
    if price == 0:
        return "0"
    exponent = price.adjusted() - (_PRICE_SIGNIFICANT_DIGITS - 1)
    quantum = Decimal(1).scaleb(min(exponent, 0))
    return f"{price.quantize(quantum, rounding=ROUND_HALF_UP):f}"


def format_percent(value: Any) -> str:
    """Render a percentage with 2 decimal places."""
    percent = to_decimal(value)
    if percent is None:
        return PLACEHOLDER
    return f"{percent.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP):f}%"


def time_ago(value_ms: int | None, now_ms: int | None = None) -> str:
    """Convert a millisecond timestamp to a relative time string (e.g. '2m ago')."""
    if value_ms is None:
        return "N/A"
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    diff_seconds = (now_ms - value_ms) / 1000
    if diff_seconds < 60:
        return "just now"
    if diff_seconds < 3600:
        minutes = int(diff_seconds / 60)
        return f"{minutes}m ago"
    if diff_seconds < 86400:
        hours = int(diff_seconds / 3600)
        return f"{hours}h ago"
    days = int(diff_seconds / 86400)
    return f"{days}d ago"
