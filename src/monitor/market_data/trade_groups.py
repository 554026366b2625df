"""Grouping of consecutive same-side trades.

A group is the most recent maximal run of trades sharing an amount sign.
A trade of the opposite sign closes the running group and starts a new one.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from monitor.models import OrderSide, Trade


class Severity(str, Enum):
    """Visual tier for trades and groups."""

    NORMAL = "normal"
    ELEVATED = "elevated"
    ALERT = "alert"


@dataclass
class TradeGroup:
    """Running total of a same-side trade run."""

    side: OrderSide
    total_amount: Decimal
    trade_count: int = 1


class TradeGroupAggregator:
    """Maintains the current trade group and classifies trades against alert thresholds.

    Args:
        trade_size_alert: Single-trade magnitude above which a trade is an alert.
        group_size_alert: Group magnitude above which a group is an alert.
    """

    def __init__(
        self,
        trade_size_alert: Decimal = Decimal("0.75"),
        group_size_alert: Decimal = Decimal("3"),
    ) -> None:
        self.trade_size_alert = trade_size_alert
        self.group_size_alert = group_size_alert
        self._current: TradeGroup | None = None
        self._last_trade: Trade | None = None
        self._last_by_side: dict[OrderSide, TradeGroup] = {}

    @property
    def current(self) -> TradeGroup | None:
        return self._current

    @property
    def last_trade(self) -> Trade | None:
        return self._last_trade

    @property
    def last_buy_group(self) -> TradeGroup | None:
        return self._last_by_side.get(OrderSide.BUY)

    @property
    def last_sell_group(self) -> TradeGroup | None:
        return self._last_by_side.get(OrderSide.SELL)

    def push(self, trade: Trade) -> TradeGroup:
        """Fold a trade into the running group and return the updated group."""
        side = trade.side
        group = self._current

        if group is None or group.side != side:
            group = TradeGroup(side=side, total_amount=trade.amount, trade_count=1)
        else:
            group = TradeGroup(
                side=side,
                total_amount=group.total_amount + trade.amount,
                trade_count=group.trade_count + 1,
            )

        self._current = group
        self._last_trade = trade
        self._last_by_side[side] = group
        return group

    def classify_trade(self, amount: Decimal) -> Severity:
        if abs(amount) > self.trade_size_alert:
            return Severity.ALERT
        return Severity.NORMAL

    def classify_group(
        self, group: TradeGroup | None = None, last_trade: Trade | None = None
    ) -> Severity:
        """Classify a group (the current one by default).

        ALERT when the group total exceeds the group threshold, ELEVATED when
        only the latest trade (the last pushed one by default) exceeds the
        single-trade threshold.
        """
        group = group if group is not None else self._current
        last_trade = last_trade if last_trade is not None else self._last_trade
        if group is None:
            return Severity.NORMAL
        if abs(group.total_amount) > self.group_size_alert:
            return Severity.ALERT
        if (
            last_trade is not None
            and last_trade.side == group.side
            and self.classify_trade(last_trade.amount) == Severity.ALERT
        ):
            return Severity.ELEVATED
        return Severity.NORMAL
