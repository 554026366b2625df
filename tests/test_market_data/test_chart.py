"""Tests for ChartProjector windowing and labels."""

from decimal import Decimal

import pytest

from monitor.market_data.chart import ChartProjector, time_label

_BASE_MS = 1_700_000_040_000  # 2023-11-14 22:14 UTC


def _series(n: int) -> tuple[list[int], list[Decimal], list[Decimal]]:
    timestamps = [_BASE_MS + i * 60_000 for i in range(n)]
    closes = [Decimal(100 + i) for i in range(n)]
    indicator = [Decimal(200 + i) for i in range(n)]
    return timestamps, closes, indicator


def test_time_label_is_utc_hour_minute() -> None:
    assert time_label(_BASE_MS) == "22:14"


def test_windows_hold_most_recent_points() -> None:
    projector = ChartProjector(left_window=5, right_window=2)
    timestamps, closes, indicator = _series(10)

    projection = projector.project(timestamps, closes, indicator)

    assert projection.price_left.values == closes[-5:]
    assert projection.indicator_left.values == indicator[-5:]
    assert projection.price_right.values == closes[-2:]
    assert projection.indicator_right.values == indicator[-2:]
    assert len(projection.price_left.labels) == 5
    assert projection.price_right.labels == [time_label(ts) for ts in timestamps[-2:]]


def test_short_history_yields_short_series() -> None:
    projector = ChartProjector(left_window=180, right_window=30)
    timestamps, closes, indicator = _series(4)

    projection = projector.project(timestamps, closes, indicator)

    assert len(projection.price_left.values) == 4
    assert len(projection.price_right.values) == 4


def test_empty_history_yields_empty_series() -> None:
    projection = ChartProjector().project([], [], [])

    assert projection.price_left.values == []
    assert projection.min_left is None
    assert projection.min_right is None


def test_min_values_per_window() -> None:
    projector = ChartProjector(left_window=10, right_window=3)
    timestamps, closes, indicator = _series(10)

    projection = projector.project(timestamps, closes, indicator)

    assert projection.min_left == Decimal("100")
    assert projection.min_right == Decimal("107")


def test_indicator_title_used_for_indicator_lines() -> None:
    timestamps, closes, indicator = _series(3)

    projection = ChartProjector().project(
        timestamps, closes, indicator, indicator_title="EMA(30)"
    )

    assert projection.indicator_left.title == "EMA(30)"
    assert projection.price_left.title == "Price"


def test_set_windows_changes_projection() -> None:
    projector = ChartProjector(left_window=5, right_window=2)
    projector.set_left_window(3)
    projector.set_right_window(1)
    timestamps, closes, indicator = _series(10)

    projection = projector.project(timestamps, closes, indicator)

    assert projection.left_window == 3
    assert len(projection.price_left.values) == 3
    assert len(projection.price_right.values) == 1


@pytest.mark.parametrize("window", [0, -1])
def test_non_positive_window_rejected(window: int) -> None:
    projector = ChartProjector()
    with pytest.raises(ValueError):
        projector.set_left_window(window)
    with pytest.raises(ValueError):
        projector.set_right_window(window)
