"""Abstract exchange session interface.

The orchestrator depends only on this contract; exchange-specific parsing
lives in the concrete implementation.
"""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable

from monitor.models import Candle, MarginSnapshot, MarketConfig, PositionSnapshot, Trade

TradeCallback = Callable[[Trade], Awaitable[None]]
CandleCallback = Callable[[Candle | list[Candle]], Awaitable[None]]
MarginCallback = Callable[[MarginSnapshot], Awaitable[None]]
#: Called with the lifecycle kind ("snapshot", "new", "update", "close") and positions.
PositionCallback = Callable[[str, list[PositionSnapshot]], Awaitable[None]]


class ExchangeSession(ABC):
    """Authenticated streaming session for a single instrument."""

    @abstractmethod
    async def connect(self) -> None:
        """Open the connection and load markets."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Stop all streams and release the connection."""
        ...

    @abstractmethod
    async def fetch_margin_info(self) -> MarginSnapshot:
        """Fetch the account-wide ("base") margin snapshot."""
        ...

    @abstractmethod
    async def fetch_market_configs(self) -> list[MarketConfig]:
        """Fetch the per-instrument trading configuration table."""
        ...

    @abstractmethod
    def subscribe_trades(self, symbol: str, callback: TradeCallback) -> None:
        """Deliver public trades for symbol, one Trade per call, in exchange order."""
        ...

    @abstractmethod
    def subscribe_candles(
        self, symbol: str, timeframe: str, callback: CandleCallback
    ) -> None:
        """Deliver candle updates for symbol (single candle or batch)."""
        ...

    @abstractmethod
    def subscribe_margin(self, callback: MarginCallback) -> None:
        """Deliver margin snapshots (all scopes)."""
        ...

    @abstractmethod
    def subscribe_positions(self, symbol: str, callback: PositionCallback) -> None:
        """Deliver position lifecycle events."""
        ...

    @abstractmethod
    def request_calc(self, symbol: str) -> None:
        """Ask the exchange to recalculate margin and position figures.

        Send-and-forget: results arrive through the margin and position
        callbacks, errors are logged by the session.
        """
        ...

    @abstractmethod
    async def create_order(
        self,
        symbol: str,
        order_type: str,
        side: str,
        amount: float,
        price: float | None = None,
        params: dict | None = None,
    ) -> dict:
        """Place an order; resolves on exchange acknowledgment."""
        ...
