"""Abstract executor interface.

Order submission goes through this ABC so the orchestrator and prime engine
behave identically in paper and live mode.
"""

from abc import ABC, abstractmethod

from monitor.models import OrderRequest, OrderResult


class Executor(ABC):
    """Abstract base class for order executors.

    The concrete executor (paper or live) is injected at startup based on
    MonitorSettings.mode.
    """

    @abstractmethod
    async def place_order(self, request: OrderRequest) -> OrderResult:
        """Execute an order and return the acknowledged result.

        Args:
            request: Order parameters (symbol, side, type, quantity).

        Returns:
            OrderResult with fill details.

        Raises:
            PriceUnavailableError: If a simulated fill has no reference price.
        """
        ...
