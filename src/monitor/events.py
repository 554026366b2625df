"""Display events and the bus that fans them out to subscribers.

Events are fire-and-forget: publishers never see subscriber results, and a
failing subscriber is logged without affecting the others.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any

from monitor.logging import get_logger

logger = get_logger(__name__)


class EngineStatus(str, Enum):
    """Prime engine state as shown in the status widget."""

    IDLE = "idle"
    PRIMED = "primed"
    TRIGGERED = "triggered"


@dataclass
class DisplayEvent:
    """Base class for everything published on the bus."""

    kind: str = field(init=False, default="event")

    def to_dict(self) -> dict[str, Any]:
        return jsonable(asdict(self))


@dataclass
class StatusEvent(DisplayEvent):
    """Status panel contents. Numeric fields are pre-formatted strings."""

    last_price: str
    margin_pl: str
    margin_balance: str
    margin_net: str
    tradable_balance: str
    min_trade_size: str
    max_leverage: str
    quick_order_size: str
    trade_size_alert: str
    group_size_alert: str
    primes: list[str]
    kind: str = field(init=False, default="status")


@dataclass
class PositionEvent(DisplayEvent):
    """Current position, or has_position=False for the "no position" marker."""

    has_position: bool
    amount: str = "-"
    base_price: str = "-"
    pl: str = "-"
    pl_percent: str = "-"
    liquidation_price: str = "-"
    kind: str = field(init=False, default="position")


@dataclass
class TradeGroupEvent(DisplayEvent):
    """Latest trade and running group with their tiers, plus the last group per side."""

    trade_amount: Decimal
    trade_price: Decimal
    trade_severity: str
    side: str
    total_amount: Decimal
    trade_count: int
    group_severity: str
    last_buy_group: dict[str, Any] | None = None
    last_sell_group: dict[str, Any] | None = None
    kind: str = field(init=False, default="trade_group")


@dataclass
class ChartEvent(DisplayEvent):
    """The four windowed chart series."""

    left_window: int
    right_window: int
    series: dict[str, dict[str, Any]]
    kind: str = field(init=False, default="chart")


@dataclass
class OrderLogEvent(DisplayEvent):
    """Full order history, oldest first, with relative submission times."""

    orders: list[dict[str, Any]]
    kind: str = field(init=False, default="order_log")


@dataclass
class PrimeTriggerEvent(DisplayEvent):
    """A prime rule fired on a trade."""

    rule_type: str
    threshold: Decimal
    trade_amount: Decimal
    kind: str = field(init=False, default="prime_trigger")

    @property
    def message(self) -> str:
        op = "<=" if self.threshold < 0 else ">="
        return f"Rule ({self.rule_type}) triggered\n{self.trade_amount} {op} {self.threshold}"


@dataclass
class EngineStatusEvent(DisplayEvent):
    """Engine state; highlighted toggles while PRIMED to make the widget blink."""

    status: EngineStatus
    highlighted: bool = False
    kind: str = field(init=False, default="engine_status")


Subscriber = Callable[[DisplayEvent], None]


class EventBus:
    """Synchronous fan-out of display events to subscribers."""

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []

    def subscribe(self, subscriber: Subscriber) -> None:
        self._subscribers.append(subscriber)

    def unsubscribe(self, subscriber: Subscriber) -> None:
        if subscriber in self._subscribers:
            self._subscribers.remove(subscriber)

    def publish(self, event: DisplayEvent) -> None:
        for subscriber in list(self._subscribers):
            try:
                subscriber(event)
            except Exception:
                logger.warning("event_subscriber_error", event_kind=event.kind, exc_info=True)


def jsonable(obj: Any) -> Any:
    """Recursively convert Decimal and Enum values for JSON serialization."""
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, dict):
        return {k: jsonable(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [jsonable(item) for item in obj]
    return obj
