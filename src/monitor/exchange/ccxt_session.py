"""Exchange session built on ccxt.pro.

Trades and candles are streamed with watch_trades / watch_ohlcv. Margin and
positions are refreshed over REST whenever request_calc() is called, and
position lifecycle kinds are derived by comparing successive refreshes.
"""

from __future__ import annotations

import asyncio
from decimal import Decimal

import ccxt.pro as ccxtpro

from monitor.config import ExchangeSettings
from monitor.exchange.session import (
    CandleCallback,
    ExchangeSession,
    MarginCallback,
    PositionCallback,
    TradeCallback,
)
from monitor.formatting import to_decimal
from monitor.logging import get_logger
from monitor.models import Candle, MarginSnapshot, MarketConfig, PositionSnapshot, Trade

logger = get_logger(__name__)

# Bitfinex pub:info:pair rows: [pair, [.., .., .., min_order, max_order, .., .., .., initial_margin, min_margin]]
_PAIR_INFO_MIN_ORDER = 3
_PAIR_INFO_INITIAL_MARGIN = 8


def parse_trade(raw: dict) -> Trade:
    """Convert a ccxt trade into a Trade with a signed amount."""
    amount = Decimal(str(raw["amount"]))
    if raw.get("side") == "sell":
        amount = -abs(amount)
    return Trade(
        timestamp_ms=int(raw["timestamp"]),
        amount=amount,
        price=Decimal(str(raw["price"])),
    )


def parse_candle(row: list) -> Candle:
    """Convert a ccxt OHLCV row [ts, open, high, low, close, volume] into a Candle."""
    ts, o, h, low, c, v = row[:6]
    return Candle(
        timestamp_ms=int(ts),
        open=Decimal(str(o)),
        high=Decimal(str(h)),
        low=Decimal(str(low)),
        close=Decimal(str(c)),
        volume=Decimal(str(v)) if v is not None else Decimal("0"),
    )


def parse_position(raw: dict) -> PositionSnapshot:
    """Convert a ccxt position into a PositionSnapshot (amount signed by side)."""
    contracts = to_decimal(raw.get("contracts"))
    if contracts is not None and raw.get("side") == "short":
        contracts = -abs(contracts)
    percentage = to_decimal(raw.get("percentage"))
    return PositionSnapshot(
        symbol=raw.get("symbol", ""),
        base_price=to_decimal(raw.get("entryPrice")),
        amount=contracts,
        pl=to_decimal(raw.get("unrealizedPnl")),
        pl_perc=percentage / 100 if percentage is not None else None,
        liquidation_price=to_decimal(raw.get("liquidationPrice")),
    )


def parse_market_config(symbol: str, market: dict) -> MarketConfig:
    """Extract minimum order size and initial margin factor from a ccxt market.

    Prefers the raw Bitfinex pair-info row when present, then the unified
    leverage limit. Markets without any leverage data get a factor of 1.
    """
    info = market.get("info")
    min_size = to_decimal(market.get("limits", {}).get("amount", {}).get("min"))
    margin_factor: Decimal | None = None

    if isinstance(info, list) and len(info) > 1 and isinstance(info[1], list):
        row = info[1]
        if len(row) > _PAIR_INFO_INITIAL_MARGIN:
            margin_factor = to_decimal(row[_PAIR_INFO_INITIAL_MARGIN])
        if min_size is None and len(row) > _PAIR_INFO_MIN_ORDER:
            min_size = to_decimal(row[_PAIR_INFO_MIN_ORDER])

    if margin_factor is None:
        max_leverage = to_decimal(market.get("limits", {}).get("leverage", {}).get("max"))
        if max_leverage:
            margin_factor = Decimal("1") / max_leverage

    return MarketConfig(
        symbol=symbol,
        min_trade_size=min_size if min_size is not None else Decimal("0"),
        margin_factor=margin_factor if margin_factor else Decimal("1"),
    )


class CcxtSession(ExchangeSession):
    """ExchangeSession backed by a ccxt.pro exchange instance."""

    def __init__(self, settings: ExchangeSettings) -> None:
        self._settings = settings
        exchange_class = getattr(ccxtpro, settings.exchange_id)
        self._exchange = exchange_class(
            {
                "apiKey": settings.api_key.get_secret_value(),
                "secret": settings.api_secret.get_secret_value(),
                "enableRateLimit": True,
            }
        )
        if settings.sandbox:
            self._exchange.set_sandbox_mode(True)

        self._markets: dict = {}
        self._tasks: list[asyncio.Task] = []  # type: ignore[type-arg]
        self._calc_task: asyncio.Task | None = None  # type: ignore[type-arg]
        self._margin_callbacks: list[MarginCallback] = []
        self._position_callbacks: dict[str, list[PositionCallback]] = {}
        self._last_positions: dict[str, PositionSnapshot | None] = {}
        self._symbols: list[str] = []
        self._running = False

    @property
    def exchange(self) -> ccxtpro.Exchange:
        """Access the underlying ccxt.pro exchange instance."""
        return self._exchange

    async def connect(self) -> None:
        logger.info("session_connecting", exchange=self._settings.exchange_id)
        self._markets = await self._exchange.load_markets()
        self._running = True
        logger.info(
            "session_connected",
            exchange=self._settings.exchange_id,
            market_count=len(self._markets),
        )

    async def close(self) -> None:
        """Cancel stream tasks and close ccxt resources. Must be called to avoid leaks."""
        self._running = False
        tasks = list(self._tasks)
        if self._calc_task is not None:
            tasks.append(self._calc_task)
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception:
                logger.warning("session_task_error_on_close", exc_info=True)
        self._tasks = []
        self._calc_task = None
        await self._exchange.close()
        logger.info("session_closed")

    async def fetch_margin_info(self) -> MarginSnapshot:
        """Fetch base margin info.

        Uses the Bitfinex margin-info endpoint when the exchange exposes it,
        otherwise falls back to the unified balance of the quote currency.
        """
        if hasattr(self._exchange, "private_post_auth_r_info_margin_key"):
            raw = await self._exchange.private_post_auth_r_info_margin_key({"key": "base"})
            # ["base", [USER_PL, USER_SWAPS, MARGIN_BALANCE, MARGIN_NET, MARGIN_MIN]]
            values = raw[1] if isinstance(raw, list) and len(raw) > 1 else []
            values = list(values) + [None] * (4 - len(values))
            return MarginSnapshot(
                scope="base",
                user_pl=to_decimal(values[0]),
                margin_balance=to_decimal(values[2]),
                margin_net=to_decimal(values[3]),
            )

        balance = await self._exchange.fetch_balance()
        quote = self._quote_currency()
        return MarginSnapshot(
            scope="base",
            margin_balance=to_decimal(balance.get("total", {}).get(quote)),
            margin_net=to_decimal(balance.get("free", {}).get(quote)),
        )

    async def fetch_market_configs(self) -> list[MarketConfig]:
        if not self._markets:
            self._markets = await self._exchange.load_markets()
        return [
            parse_market_config(symbol, market)
            for symbol, market in self._markets.items()
        ]

    def subscribe_trades(self, symbol: str, callback: TradeCallback) -> None:
        if symbol not in self._symbols:
            self._symbols.append(symbol)

        async def _watch() -> None:
            raw_trades = await self._exchange.watch_trades(symbol)
            for raw in raw_trades:
                await callback(parse_trade(raw))

        self._start_stream(f"trades:{symbol}", _watch)

    def subscribe_candles(
        self, symbol: str, timeframe: str, callback: CandleCallback
    ) -> None:
        async def _watch() -> None:
            rows = await self._exchange.watch_ohlcv(symbol, timeframe)
            candles = [parse_candle(row) for row in rows]
            if candles:
                await callback(candles if len(candles) > 1 else candles[0])

        self._start_stream(f"candles:{timeframe}:{symbol}", _watch)

    def subscribe_margin(self, callback: MarginCallback) -> None:
        self._margin_callbacks.append(callback)

    def subscribe_positions(self, symbol: str, callback: PositionCallback) -> None:
        self._position_callbacks.setdefault(symbol, []).append(callback)

    def request_calc(self, symbol: str) -> None:
        if self._calc_task is not None and not self._calc_task.done():
            logger.debug("calc_request_skipped", reason="in_flight")
            return
        self._calc_task = asyncio.create_task(self._refresh_account(symbol))

    async def create_order(
        self,
        symbol: str,
        order_type: str,
        side: str,
        amount: float,
        price: float | None = None,
        params: dict | None = None,
    ) -> dict:
        logger.info(
            "creating_order",
            symbol=symbol,
            order_type=order_type,
            side=side,
            amount=amount,
        )
        return await self._exchange.create_order(
            symbol, order_type, side, amount, price, params or {}
        )

    def _start_stream(self, name: str, watch_once) -> None:
        self._tasks.append(asyncio.create_task(self._stream_loop(name, watch_once)))
        logger.info("stream_subscribed", stream=name)

    async def _stream_loop(self, name: str, watch_once) -> None:
        """Run one watch call after another, retrying after errors."""
        while self._running:
            try:
                await watch_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.warning("stream_error", stream=name, exc_info=True)
                if self._running:
                    await asyncio.sleep(self._settings.reconnect_delay)

    async def _refresh_account(self, symbol: str) -> None:
        try:
            margin = await self.fetch_margin_info()
            for callback in self._margin_callbacks:
                await callback(margin)

            callbacks = self._position_callbacks.get(symbol, [])
            if not callbacks:
                return

            raw_positions = await self._exchange.fetch_positions([symbol])
            positions = [
                parse_position(p)
                for p in raw_positions
                if p.get("symbol") == symbol and to_decimal(p.get("contracts"))
            ]
            kind, payload = self._position_transition(symbol, positions)
            for callback in callbacks:
                await callback(kind, payload)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.warning("account_refresh_failed", symbol=symbol, exc_info=True)

    def _position_transition(
        self, symbol: str, positions: list[PositionSnapshot]
    ) -> tuple[str, list[PositionSnapshot]]:
        """Derive the lifecycle kind from the previous and current refresh."""
        current = positions[0] if positions else None
        first_refresh = symbol not in self._last_positions
        previous = self._last_positions.get(symbol)
        self._last_positions[symbol] = current

        if first_refresh:
            return "snapshot", positions
        if previous is None and current is not None:
            return "new", [current]
        if previous is not None and current is None:
            return "close", [previous]
        if current is not None:
            return "update", [current]
        return "snapshot", []

    def _quote_currency(self) -> str:
        for symbol in self._symbols:
            quote = self._markets.get(symbol, {}).get("quote")
            if quote:
                return quote
        return "USD"
