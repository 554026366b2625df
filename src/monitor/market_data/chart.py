"""Trailing chart windows over the price and indicator series."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal


@dataclass
class ChartSeries:
    """One plotted line: labels and values have equal length."""

    title: str
    labels: list[str] = field(default_factory=list)
    values: list[Decimal] = field(default_factory=list)


@dataclass
class ChartProjection:
    """Price and indicator lines for the left (long) and right (short) charts."""

    left_window: int
    right_window: int
    price_left: ChartSeries
    indicator_left: ChartSeries
    price_right: ChartSeries
    indicator_right: ChartSeries

    @property
    def min_left(self) -> Decimal | None:
        return min(self.price_left.values, default=None)

    @property
    def min_right(self) -> Decimal | None:
        return min(self.price_right.values, default=None)


def time_label(timestamp_ms: int) -> str:
    """Format a candle timestamp as an HH:MM UTC label."""
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc).strftime("%H:%M")


def _tail(values: list, window: int) -> list:
    # values[-0:] would return the whole list
    if window <= 0:
        return []
    return values[-window:]


class ChartProjector:
    """Slices the full series into two independently sized trailing windows.

    Window sizes are counts of the most recent candles (minutes for a 1m
    feed). A history shorter than the window yields a shorter series.
    """

    def __init__(self, left_window: int = 180, right_window: int = 30) -> None:
        self._left_window = _validate_window(left_window)
        self._right_window = _validate_window(right_window)

    @property
    def left_window(self) -> int:
        return self._left_window

    @property
    def right_window(self) -> int:
        return self._right_window

    def set_left_window(self, window: int) -> None:
        self._left_window = _validate_window(window)

    def set_right_window(self, window: int) -> None:
        self._right_window = _validate_window(window)

    def project(
        self,
        timestamps: list[int],
        closes: list[Decimal],
        indicator: list[Decimal],
        indicator_title: str = "EMA",
    ) -> ChartProjection:
        """Build the four windowed series from aligned full-history inputs.

        Args:
            timestamps: Ascending candle timestamps.
            closes: Candle closes aligned with timestamps.
            indicator: Indicator values aligned with timestamps.
            indicator_title: Legend title for the indicator lines.
        """
        labels = [time_label(ts) for ts in timestamps]

        def window(size: int) -> tuple[ChartSeries, ChartSeries]:
            window_labels = _tail(labels, size)
            price = ChartSeries("Price", window_labels, _tail(closes, size))
            ind = ChartSeries(indicator_title, list(window_labels), _tail(indicator, size))
            return price, ind

        price_left, indicator_left = window(self._left_window)
        price_right, indicator_right = window(self._right_window)

        return ChartProjection(
            left_window=self._left_window,
            right_window=self._right_window,
            price_left=price_left,
            indicator_left=indicator_left,
            price_right=price_right,
            indicator_right=indicator_right,
        )


def _validate_window(window: int) -> int:
    if window < 1:
        raise ValueError(f"Chart window must be positive, got {window}")
    return window
