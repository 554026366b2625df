"""Tests for same-side trade grouping and severity tiers."""

from decimal import Decimal

from monitor.market_data.trade_groups import Severity, TradeGroupAggregator
from monitor.models import OrderSide, Trade


def _trade(amount: str) -> Trade:
    return Trade(timestamp_ms=1_700_000_000_000, amount=Decimal(amount), price=Decimal("50000"))


def test_same_side_trades_accumulate() -> None:
    agg = TradeGroupAggregator()
    agg.push(_trade("0.1"))
    group = agg.push(_trade("0.2"))

    assert group.side == OrderSide.BUY
    assert group.total_amount == Decimal("0.3")
    assert group.trade_count == 2


def test_opposite_side_starts_new_group() -> None:
    agg = TradeGroupAggregator()
    agg.push(_trade("0.5"))
    agg.push(_trade("0.5"))
    group = agg.push(_trade("-0.2"))

    assert group.side == OrderSide.SELL
    assert group.total_amount == Decimal("-0.2")
    assert group.trade_count == 1
    assert agg.last_buy_group.total_amount == Decimal("1.0")
    assert agg.last_sell_group is group


def test_group_total_equals_sum_of_run() -> None:
    agg = TradeGroupAggregator()
    amounts = ["1", "-0.3", "-0.4", "-0.5"]
    for amount in amounts:
        agg.push(_trade(amount))

    assert agg.current.total_amount == Decimal("-1.2")
    assert agg.current.trade_count == 3


def test_classify_trade_uses_strict_threshold() -> None:
    agg = TradeGroupAggregator(trade_size_alert=Decimal("0.75"))

    assert agg.classify_trade(Decimal("0.75")) == Severity.NORMAL
    assert agg.classify_trade(Decimal("0.76")) == Severity.ALERT
    assert agg.classify_trade(Decimal("-0.8")) == Severity.ALERT


def test_group_alert_when_total_exceeds_group_threshold() -> None:
    agg = TradeGroupAggregator(trade_size_alert=Decimal("0.75"), group_size_alert=Decimal("3"))
    for _ in range(7):
        agg.push(_trade("0.5"))

    assert agg.classify_group() == Severity.ALERT


def test_group_elevated_when_only_last_trade_is_large() -> None:
    agg = TradeGroupAggregator(trade_size_alert=Decimal("0.75"), group_size_alert=Decimal("3"))
    agg.push(_trade("0.1"))
    agg.push(_trade("1"))

    assert agg.classify_group() == Severity.ELEVATED


def test_group_normal_below_thresholds() -> None:
    agg = TradeGroupAggregator()
    agg.push(_trade("-0.1"))

    assert agg.classify_group() == Severity.NORMAL


def test_classify_without_trades_is_normal() -> None:
    assert TradeGroupAggregator().classify_group() == Severity.NORMAL


def test_threshold_change_applies_to_next_classification() -> None:
    agg = TradeGroupAggregator()
    agg.push(_trade("0.5"))
    assert agg.classify_group() == Severity.NORMAL

    agg.group_size_alert = Decimal("0.4")

    assert agg.classify_group() == Severity.ALERT


def test_buy_run_then_sell_resets_group() -> None:
    agg = TradeGroupAggregator()
    agg.push(_trade("1"))
    group = agg.push(_trade("2"))
    assert (group.side, group.total_amount, group.trade_count) == (OrderSide.BUY, Decimal("3"), 2)

    group = agg.push(_trade("-1"))

    assert (group.side, group.total_amount, group.trade_count) == (OrderSide.SELL, Decimal("-1"), 1)


def test_classify_group_with_explicit_last_trade() -> None:
    agg = TradeGroupAggregator()
    group = agg.push(_trade("0.1"))

    assert agg.classify_group(group, last_trade=_trade("0.9")) == Severity.ELEVATED
    assert agg.classify_group(group, last_trade=_trade("-0.9")) == Severity.NORMAL
