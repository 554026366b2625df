"""Prime rule engine -- one-shot conditional market orders evaluated per trade.

Engine states:
  IDLE       no active rules
  PRIMED     one or more active rules
  TRIGGERED  transient, a rule fired on the current trade

When a rule fires under the default CLEAR_ALL policy the whole rule set is
dropped: the premise behind the remaining rules is assumed to be gone once
one of them has executed. CLEAR_FIRED removes only the rule that fired.

The rule set is cleared BEFORE the order is awaited. A failed submission
therefore leaves the rules cleared; the failure is raised to the caller as
OrderSubmissionError and nothing is restored.
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from decimal import Decimal
from typing import Any

from monitor.events import EngineStatus, EngineStatusEvent, EventBus, PrimeTriggerEvent
from monitor.exceptions import DuplicateRuleError, OrderSubmissionError
from monitor.logging import get_logger
from monitor.primes.models import ClearPolicy, PrimeRule

logger = get_logger(__name__)

OrderSubmitter = Callable[[Decimal], Awaitable[Any]]


class PrimeEngine:
    """Owns the active prime rules and evaluates them against incoming trades.

    Args:
        submit_order: Async callable placing a market order for a signed amount.
        event_bus: Bus receiving trigger notifications and engine status events.
        default_order_size: Unsigned size used by rules without a fixed amount.
        clear_policy: Which rules are removed after a trigger.
        on_status_change: Optional hook called with the new EngineStatus.
    """

    def __init__(
        self,
        submit_order: OrderSubmitter,
        event_bus: EventBus,
        default_order_size: Decimal = Decimal("0"),
        clear_policy: ClearPolicy = ClearPolicy.CLEAR_ALL,
        on_status_change: Callable[[EngineStatus], None] | None = None,
    ) -> None:
        self._submit_order = submit_order
        self._bus = event_bus
        self.default_order_size = default_order_size
        self.clear_policy = clear_policy
        self._on_status_change = on_status_change
        self._rules: list[PrimeRule] = []
        self._status = EngineStatus.IDLE

    @property
    def rules(self) -> list[PrimeRule]:
        """Active rules in insertion order."""
        return list(self._rules)

    @property
    def status(self) -> EngineStatus:
        return self._status

    def add_rule(self, rule: PrimeRule) -> None:
        """Activate a rule.

        Raises:
            DuplicateRuleError: If an active rule has the same type and threshold.
        """
        if any(r.key == rule.key for r in self._rules):
            raise DuplicateRuleError(
                f"Prime rule already exists for type {rule.type.value} "
                f"with threshold {rule.threshold}"
            )

        self._rules.append(rule)
        logger.info(
            "prime_rule_added",
            type=rule.type.value,
            threshold=str(rule.threshold),
            amount=str(rule.amount) if rule.amount is not None else None,
            expiry_ms=rule.expiry_ms,
        )

        if len(self._rules) == 1:
            self._set_status(EngineStatus.PRIMED)

    async def evaluate(self, trade: Any, now_ms: int | None = None) -> PrimeRule | None:
        """Evaluate the active rules against one trade.

        Rules are scanned newest first; expired rules are pruned in the same
        pass. At most one rule fires per trade.

        Args:
            trade: The incoming Trade.
            now_ms: Current time in Unix ms (defaults to the wall clock).

        Returns:
            The rule that fired, or None.

        Raises:
            OrderSubmissionError: If the triggered order could not be submitted.
        """
        if not self._rules:
            return None

        if now_ms is None:
            now_ms = int(time.time() * 1000)

        fired: PrimeRule | None = None
        for i in range(len(self._rules) - 1, -1, -1):
            rule = self._rules[i]

            if rule.is_expired(now_ms):
                logger.info(
                    "prime_rule_expired",
                    type=rule.type.value,
                    threshold=str(rule.threshold),
                )
                del self._rules[i]
                continue

            if rule.matches(trade):
                fired = rule
                break

        if fired is None:
            if not self._rules:
                self._set_status(EngineStatus.IDLE)
            return None

        logger.info(
            "prime_rule_triggered",
            type=fired.type.value,
            threshold=str(fired.threshold),
            trade_amount=str(trade.amount),
        )
        self._bus.publish(
            PrimeTriggerEvent(
                rule_type=fired.type.value,
                threshold=fired.threshold,
                trade_amount=trade.amount,
            )
        )

        order_amount = fired.order_amount(self.default_order_size)

        self._set_status(EngineStatus.TRIGGERED)
        self._reset_after_trigger(fired)

        try:
            await self._submit_order(order_amount)
        except OrderSubmissionError:
            raise
        except Exception as e:
            raise OrderSubmissionError(
                f"Failed to submit prime order for {fired.describe()}: {e}"
            ) from e

        return fired

    def _reset_after_trigger(self, fired: PrimeRule) -> None:
        if self.clear_policy == ClearPolicy.CLEAR_ALL:
            self._rules = []
        else:
            self._rules = [r for r in self._rules if r is not fired]

        self._set_status(EngineStatus.PRIMED if self._rules else EngineStatus.IDLE)

    def _set_status(self, status: EngineStatus) -> None:
        if status == self._status and status != EngineStatus.TRIGGERED:
            return
        self._status = status
        logger.debug("prime_engine_status", status=status.value)
        self._bus.publish(EngineStatusEvent(status=status))
        if self._on_status_change is not None:
            self._on_status_change(status)
