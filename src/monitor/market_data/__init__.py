"""Market data layer -- candles, indicator, chart windows and trade grouping."""

from monitor.market_data.candle_store import CandleStore
from monitor.market_data.chart import ChartProjection, ChartProjector, ChartSeries
from monitor.market_data.indicators import IndicatorEngine, compute_ema
from monitor.market_data.trade_groups import Severity, TradeGroup, TradeGroupAggregator

__all__ = [
    "CandleStore",
    "ChartProjection",
    "ChartProjector",
    "ChartSeries",
    "IndicatorEngine",
    "Severity",
    "TradeGroup",
    "TradeGroupAggregator",
    "compute_ema",
]
