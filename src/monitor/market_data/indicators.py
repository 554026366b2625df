"""Moving-average indicator over the candle close history.

The EMA is recomputed over the full history on every call. There is no
incremental path, so cost grows linearly with the number of stored candles.
"""

from decimal import Decimal

#: Precision limit for EMA intermediate results (12 decimal places).
#: Prevents Decimal division from producing arbitrarily long representations.
_EMA_QUANTIZE = Decimal("0.000000000001")


def compute_ema(values: list[Decimal], span: int) -> list[Decimal]:
    """Compute an Exponential Moving Average over a list of Decimal values.

    Uses the standard recursive formula:
        alpha = 2 / (span + 1)
        EMA_t = alpha * value_t + (1 - alpha) * EMA_{t-1}

    The first EMA value is the first input value; there is no warm-up
    period, so the output always has the same length as the input.

    Args:
        values: Ordered list of Decimal values (oldest first).
        span: Number of periods for EMA smoothing.

    Returns:
        List of EMA values, same length as input. Empty list if input is empty.
    """
    if not values:
        return []

    alpha = Decimal("2") / (Decimal(span) + Decimal("1"))
    one_minus_alpha = Decimal("1") - alpha

    ema = [values[0].quantize(_EMA_QUANTIZE)]
    for v in values[1:]:
        ema.append((alpha * v + one_minus_alpha * ema[-1]).quantize(_EMA_QUANTIZE))

    return ema


class IndicatorEngine:
    """Holds the configured EMA period and the most recently computed series.

    Args:
        period: EMA span in candles. Must be positive.
    """

    def __init__(self, period: int = 30) -> None:
        self._period = _validate_period(period)
        self._series: list[Decimal] = []

    @property
    def period(self) -> int:
        return self._period

    @property
    def series(self) -> list[Decimal]:
        """Series from the last recompute() call (empty after a period change)."""
        return list(self._series)

    @property
    def title(self) -> str:
        return f"EMA({self._period})"

    def set_period(self, period: int) -> None:
        """Change the EMA period. The stored series is discarded."""
        self._period = _validate_period(period)
        self._series = []

    def recompute(self, closes: list[Decimal]) -> list[Decimal]:
        """Recompute the EMA over all closes, aligned 1:1 with the input."""
        self._series = compute_ema(closes, self._period)
        return list(self._series)


def _validate_period(period: int) -> int:
    if period < 1:
        raise ValueError(f"EMA period must be positive, got {period}")
    return period
