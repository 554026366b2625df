"""Prime rule definitions and their trigger conditions."""

from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from monitor.models import Trade


class PrimeType(str, Enum):
    """Kinds of prime rule. Each kind registers a condition in CONDITIONS."""

    SIZE = "size"


class ClearPolicy(str, Enum):
    """What happens to the other rules when one fires."""

    CLEAR_ALL = "clear_all"
    CLEAR_FIRED = "clear_fired"


@dataclass(frozen=True)
class PrimeRule:
    """A one-shot conditional market order.

    Attributes:
        type: Rule kind.
        threshold: Signed trigger level. Positive thresholds fire on buys at or
            above it, negative thresholds on sells at or below it. The sign
            also picks the order side when no fixed amount is set.
        amount: Fixed signed order amount overriding the quick order size.
        expiry_ms: Absolute deadline (Unix ms) after which the rule is dropped.
    """

    type: PrimeType
    threshold: Decimal
    amount: Decimal | None = None
    expiry_ms: int | None = None

    def __post_init__(self) -> None:
        if self.threshold == 0:
            raise ValueError("Prime threshold must be non-zero")

    @property
    def key(self) -> tuple[PrimeType, Decimal]:
        return (self.type, self.threshold)

    def is_expired(self, now_ms: int) -> bool:
        return self.expiry_ms is not None and self.expiry_ms < now_ms

    def matches(self, trade: Trade) -> bool:
        return CONDITIONS[self.type](self, trade)

    def order_amount(self, default_size: Decimal) -> Decimal:
        """Fixed amount if set, otherwise default_size signed like the threshold."""
        if self.amount is not None:
            return self.amount
        return -default_size if self.threshold < 0 else default_size

    def describe(self) -> str:
        return f"{self.type.value} {self.threshold}"


def _size_condition(rule: PrimeRule, trade: Trade) -> bool:
    if rule.threshold > 0:
        return trade.amount >= rule.threshold
    return trade.amount <= rule.threshold


CONDITIONS: dict[PrimeType, Callable[[PrimeRule, Trade], bool]] = {
    PrimeType.SIZE: _size_condition,
}
