"""Monitor orchestrator -- wires exchange events to the core components.

Every inbound event (trade, candle, margin, position, timer firing) is put
on one bounded asyncio.Queue and handled by a single dispatch task, so
handlers never run concurrently. A handler may suspend (order submission);
events arriving meanwhile wait in the queue.

Queue overflow policy (MonitorSettings.queue_overflow):
  drop_oldest   discard the oldest queued event to make room (default)
  backpressure  the producer waits for space

Handler errors are logged at the dispatch boundary and never stop the loop.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Any

import structlog

from monitor.config import MonitorSettings, RuntimeConfig
from monitor.events import (
    ChartEvent,
    EngineStatus,
    EngineStatusEvent,
    EventBus,
    OrderLogEvent,
    PositionEvent,
    StatusEvent,
    TradeGroupEvent,
)
from monitor.exceptions import (
    AlreadyConnectedError,
    OrderSubmissionError,
    UnknownSymbolConfigError,
)
from monitor.exchange.session import ExchangeSession
from monitor.execution.executor import Executor
from monitor.formatting import (
    PLACEHOLDER,
    format_amount,
    format_percent,
    format_price,
    time_ago,
)
from monitor.logging import get_logger
from monitor.market_data import (
    CandleStore,
    ChartProjection,
    ChartProjector,
    IndicatorEngine,
    TradeGroup,
    TradeGroupAggregator,
)
from monitor.models import (
    Candle,
    MarginSnapshot,
    OrderRecord,
    OrderRequest,
    OrderResult,
    OrderSide,
    OrderType,
    PositionSnapshot,
    Trade,
)
from monitor.primes import ClearPolicy, PrimeEngine, PrimeRule
from monitor.session import SessionState

logger = get_logger(__name__)


@dataclass
class QueuedEvent:
    """An inbound event waiting for the dispatcher."""

    name: str
    handler: Callable[..., Awaitable[None]]
    args: tuple


class Orchestrator:
    """Owns the monitor state for one instrument and routes events to it.

    Args:
        settings: Monitor settings (thresholds, windows, timers, queue policy).
        session: Exchange session delivering market and account events.
        executor: Order executor (paper or live).
        event_bus: Bus receiving display refresh events.
    """

    def __init__(
        self,
        settings: MonitorSettings,
        session: ExchangeSession,
        executor: Executor,
        event_bus: EventBus,
    ) -> None:
        self._settings = settings
        self._session = session
        self._executor = executor
        self._bus = event_bus
        self._symbol: str | None = None

        self.state = SessionState()
        self.candles = CandleStore()
        self.indicator = IndicatorEngine(settings.ema_period)
        self.projector = ChartProjector(
            settings.left_chart_window, settings.right_chart_window
        )
        self.trade_groups = TradeGroupAggregator(
            settings.trade_size_alert_threshold,
            settings.group_size_alert_threshold,
        )
        self.primes = PrimeEngine(
            submit_order=self.submit_order,
            event_bus=event_bus,
            clear_policy=ClearPolicy(settings.prime_clear_policy),
            on_status_change=self._on_engine_status,
        )

        self._quick_order_size = Decimal("0")
        self._order_history: list[OrderRecord] = []
        self._queue: asyncio.Queue[QueuedEvent] = asyncio.Queue(
            maxsize=settings.event_queue_size
        )
        self._dropped_events = 0
        self._running = False
        self._stopped = asyncio.Event()
        self._tasks: list[asyncio.Task] = []  # type: ignore[type-arg]
        self._blink_task: asyncio.Task | None = None  # type: ignore[type-arg]

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def symbol(self) -> str | None:
        return self._symbol

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def quick_order_size(self) -> Decimal:
        return self._quick_order_size

    @property
    def dropped_events(self) -> int:
        return self._dropped_events

    async def connect(self, symbol: str) -> None:
        """Seed account state, load the market config and subscribe to streams.

        Raises:
            AlreadyConnectedError: If a symbol is already connected.
            UnknownSymbolConfigError: If the symbol is missing from the market
                configuration. Startup must abort.
        """
        if self._symbol is not None:
            raise AlreadyConnectedError(f"Already connected for {self._symbol}")

        self._symbol = symbol
        try:
            await self._session.connect()

            logger.info("fetching_margin_info", symbol=symbol)
            self.state.set_margin(await self._session.fetch_margin_info())
            self.refresh_status()

            logger.info("fetching_market_config", symbol=symbol)
            configs = await self._session.fetch_market_configs()
            config = next((c for c in configs if c.symbol == symbol), None)
            if config is None:
                raise UnknownSymbolConfigError(
                    f"Failed to fetch market information for symbol {symbol}"
                )
        except Exception:
            self._symbol = None
            raise

        if config.margin_factor > 0:
            self.state.max_leverage = Decimal("1") / config.margin_factor
        self.state.min_trade_size = config.min_trade_size
        self.set_quick_order_size(config.min_trade_size)

        logger.info(
            "market_config_loaded",
            symbol=symbol,
            max_leverage=format_amount(self.state.max_leverage),
            min_trade_size=str(config.min_trade_size),
        )

        self._session.subscribe_margin(self._queue_margin)
        self._session.subscribe_positions(symbol, self._queue_position)
        self._session.subscribe_trades(symbol, self._queue_trade)
        self._session.subscribe_candles(
            symbol, self._settings.candle_timeframe, self._queue_candles
        )
        logger.info("monitor_connected", symbol=symbol)

    async def start(self) -> None:
        """Start the dispatcher and the periodic timers."""
        if self._running:
            logger.warning("orchestrator_already_running")
            return

        self._running = True
        self._stopped.clear()
        self._tasks = [
            asyncio.create_task(self._dispatch_loop()),
            asyncio.create_task(
                self._timer_loop(
                    "calc_timer", self._settings.calc_interval, self._request_calc
                )
            ),
            asyncio.create_task(
                self._timer_loop(
                    "display_timer",
                    self._settings.display_refresh_interval,
                    self._refresh_display,
                )
            ),
        ]

        self.refresh_status()
        self.refresh_position()
        self._bus.publish(EngineStatusEvent(status=self.primes.status))
        if self.primes.status == EngineStatus.PRIMED:
            self._start_blink()

        logger.info(
            "orchestrator_started",
            symbol=self._symbol,
            queue_size=self._settings.event_queue_size,
            queue_overflow=self._settings.queue_overflow,
        )

    async def stop(self) -> None:
        """Cancel the dispatcher, timers and blink task."""
        logger.info("orchestrator_stopping")
        self._running = False
        self._stop_blink()
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks = []
        self._stopped.set()
        logger.info("orchestrator_stopped", dropped_events=self._dropped_events)

    async def wait_stopped(self) -> None:
        await self._stopped.wait()

    async def drain(self) -> None:
        """Wait until every queued event has been handled."""
        await self._queue.join()

    # ------------------------------------------------------------------
    # Event queue
    # ------------------------------------------------------------------

    async def enqueue(
        self, name: str, handler: Callable[..., Awaitable[None]], *args: Any
    ) -> None:
        """Queue an event for sequential dispatch, applying the overflow policy."""
        item = QueuedEvent(name=name, handler=handler, args=args)

        if self._settings.queue_overflow == "backpressure":
            await self._queue.put(item)
            return

        while True:
            try:
                self._queue.put_nowait(item)
                return
            except asyncio.QueueFull:
                dropped = self._queue.get_nowait()
                self._queue.task_done()
                self._dropped_events += 1
                logger.warning(
                    "event_dropped",
                    event_name=dropped.name,
                    dropped_total=self._dropped_events,
                )

    async def _dispatch_loop(self) -> None:
        while True:
            item = await self._queue.get()
            try:
                with structlog.contextvars.bound_contextvars(
                    symbol=self._symbol, event_name=item.name
                ):
                    await item.handler(*item.args)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(
                    "event_handler_error",
                    event_name=item.name,
                    error=str(e),
                    exc_info=True,
                )
            finally:
                self._queue.task_done()

    async def _timer_loop(
        self, name: str, interval: float, handler: Callable[[], Awaitable[None]]
    ) -> None:
        while self._running:
            await asyncio.sleep(interval)
            await self.enqueue(name, handler)

    async def _queue_trade(self, trade: Trade) -> None:
        await self.enqueue("trade", self.on_trade, trade)

    async def _queue_candles(self, candles: Candle | list[Candle]) -> None:
        await self.enqueue("candles", self.on_candles, candles)

    async def _queue_margin(self, snapshot: MarginSnapshot) -> None:
        await self.enqueue("margin", self.on_margin, snapshot)

    async def _queue_position(self, kind: str, positions: list[PositionSnapshot]) -> None:
        await self.enqueue("position", self.on_position, kind, positions)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def on_trade(self, trade: Trade) -> None:
        """Group the trade, patch the live candle, refresh displays, evaluate primes."""
        group = self.trade_groups.push(trade)
        self._publish_trade_group(trade, group)

        self.candles.patch_last_close(trade.price)
        self.state.last_trade_price = trade.price
        self.refresh_chart()
        self.refresh_status()

        try:
            await self.primes.evaluate(trade)
        except OrderSubmissionError as e:
            # rules stay cleared; the failure is surfaced, not rolled back
            logger.error("prime_order_failed", error=str(e))
            self.refresh_status()

    async def on_candles(self, candles: Candle | list[Candle]) -> None:
        batch = candles if isinstance(candles, list) else [candles]
        for candle in batch:
            self.candles.upsert(candle)
        self.refresh_chart()

    async def on_margin(self, snapshot: MarginSnapshot) -> None:
        if snapshot.scope != "base":
            return
        self.state.set_margin(snapshot)
        self.refresh_status()

    async def on_position(self, kind: str, positions: list[PositionSnapshot]) -> None:
        """Apply a position lifecycle event (snapshot, new, update, close)."""
        matching = [p for p in positions if p.symbol == self._symbol]

        if kind == "snapshot":
            self.state.set_position(matching[0] if matching else None)
        elif not matching:
            return
        elif kind == "close":
            self.state.set_position(None)
        else:
            self.state.set_position(matching[0])

        self.refresh_position()

    async def _request_calc(self) -> None:
        if self._symbol is None:
            return
        try:
            self._session.request_calc(self._symbol)
        except Exception:
            logger.warning("calc_request_failed", symbol=self._symbol, exc_info=True)

    async def _refresh_display(self) -> None:
        self.refresh_order_log()
        self.refresh_status()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def add_prime(self, rule: PrimeRule) -> None:
        """Activate a prime rule. Raises DuplicateRuleError on collision."""
        self.primes.add_rule(rule)
        self.refresh_status()

    def set_trade_size_alert(self, size: Decimal) -> None:
        self.trade_groups.trade_size_alert = size
        self.refresh_status()

    def set_group_size_alert(self, size: Decimal) -> None:
        self.trade_groups.group_size_alert = size
        self.refresh_status()

    def set_left_chart_window(self, window: int) -> None:
        self.projector.set_left_window(window)
        self.refresh_chart()

    def set_right_chart_window(self, window: int) -> None:
        self.projector.set_right_window(window)
        self.refresh_chart()

    def set_ema_period(self, period: int) -> None:
        self.indicator.set_period(period)
        self.refresh_chart()

    def set_quick_order_size(self, size: Decimal) -> None:
        if size < 0:
            raise ValueError(f"Quick order size must not be negative, got {size}")
        self._quick_order_size = size
        self.primes.default_order_size = size
        self.refresh_status()

    def apply_runtime_config(self, rc: RuntimeConfig) -> None:
        """Apply every non-None field of a runtime config overlay."""
        if rc.trade_size_alert_threshold is not None:
            self.set_trade_size_alert(rc.trade_size_alert_threshold)
        if rc.group_size_alert_threshold is not None:
            self.set_group_size_alert(rc.group_size_alert_threshold)
        if rc.left_chart_window is not None:
            self.set_left_chart_window(rc.left_chart_window)
        if rc.right_chart_window is not None:
            self.set_right_chart_window(rc.right_chart_window)
        if rc.ema_period is not None:
            self.set_ema_period(rc.ema_period)
        if rc.quick_order_size is not None:
            self.set_quick_order_size(rc.quick_order_size)
        logger.info("runtime_config_applied", config=str(rc))

    async def submit_order(self, amount: Decimal) -> OrderResult:
        """Submit a market order for a signed amount and record it in the order log.

        Raises:
            OrderSubmissionError: If not connected, the amount is zero, or the
                executor fails.
        """
        if self._symbol is None:
            raise OrderSubmissionError("Cannot submit orders before connect()")
        if amount == 0:
            raise OrderSubmissionError("Order amount must be non-zero")

        request = OrderRequest(
            symbol=self._symbol,
            side=OrderSide.from_amount(amount),
            order_type=OrderType.MARKET,
            quantity=abs(amount),
        )
        logger.info("submitting_order", symbol=self._symbol, amount=str(amount))

        try:
            result = await self._executor.place_order(request)
        except Exception as e:
            logger.error("order_submission_failed", amount=str(amount), error=str(e))
            raise OrderSubmissionError(f"Order for {amount} failed: {e}") from e

        self._order_history.append(
            OrderRecord(
                order_id=result.order_id,
                symbol=self._symbol,
                amount=amount,
                order_type=OrderType.MARKET,
                price=result.filled_price,
            )
        )
        logger.info("order_submitted", order_id=result.order_id, amount=str(amount))
        self.refresh_order_log()
        return result

    async def quick_order(self, side: OrderSide) -> OrderResult:
        """Submit a market order of the quick order size on the given side."""
        size = self._quick_order_size
        if size <= 0:
            raise ValueError("Quick order size is unset")
        return await self.submit_order(size if side == OrderSide.BUY else -size)

    # ------------------------------------------------------------------
    # Display refresh
    # ------------------------------------------------------------------

    def build_status_event(self) -> StatusEvent:
        margin = self.state.margin
        derived = self.state.get_derived()
        leverage = self.state.max_leverage
        return StatusEvent(
            last_price=format_price(self.state.last_trade_price),
            margin_pl=format_amount(margin.user_pl),
            margin_balance=format_amount(margin.margin_balance),
            margin_net=format_amount(margin.margin_net),
            tradable_balance=format_amount(derived.tradable_balance),
            min_trade_size=(
                str(self.state.min_trade_size) if self.state.min_trade_size else PLACEHOLDER
            ),
            max_leverage=f"{leverage:.1f}" if leverage else PLACEHOLDER,
            quick_order_size=(
                str(self._quick_order_size) if self._quick_order_size else "unset"
            ),
            trade_size_alert=str(self.trade_groups.trade_size_alert),
            group_size_alert=str(self.trade_groups.group_size_alert),
            primes=[rule.describe() for rule in self.primes.rules],
        )

    def build_position_event(self) -> PositionEvent:
        if not self.state.has_position:
            return PositionEvent(has_position=False)
        position = self.state.position
        assert position is not None
        return PositionEvent(
            has_position=True,
            amount=format_amount(position.amount),
            base_price=format_price(position.base_price),
            pl=format_amount(position.pl),
            pl_percent=format_percent(self.state.get_derived().pl_percent),
            liquidation_price=format_price(position.liquidation_price),
        )

    def get_chart(self) -> ChartProjection:
        """Recompute the indicator over the full history and project both windows."""
        timestamps = self.candles.ordered_timestamps()
        closes = self.candles.closes()
        indicator = self.indicator.recompute(closes)
        return self.projector.project(
            timestamps, closes, indicator, indicator_title=self.indicator.title
        )

    def get_order_log(self) -> list[dict[str, Any]]:
        now_ms = int(time.time() * 1000)
        return [
            {
                "order_id": record.order_id,
                "amount": str(record.amount),
                "side": OrderSide.from_amount(record.amount).value,
                "price": format_price(record.price),
                "created_at_ms": record.created_at_ms,
                "age": time_ago(record.created_at_ms, now_ms),
            }
            for record in self._order_history
        ]

    def get_status(self) -> dict[str, Any]:
        status = self.build_status_event().to_dict()
        status.update(
            {
                "symbol": self._symbol,
                "mode": self._settings.mode,
                "running": self._running,
                "engine_status": self.primes.status.value,
                "position": self.build_position_event().to_dict(),
                "dropped_events": self._dropped_events,
            }
        )
        return status

    def refresh_status(self) -> None:
        self._bus.publish(self.build_status_event())

    def refresh_position(self) -> None:
        self._bus.publish(self.build_position_event())

    def refresh_chart(self) -> None:
        projection = self.get_chart()
        self._bus.publish(
            ChartEvent(
                left_window=projection.left_window,
                right_window=projection.right_window,
                series={
                    "price_left": asdict(projection.price_left),
                    "indicator_left": asdict(projection.indicator_left),
                    "price_right": asdict(projection.price_right),
                    "indicator_right": asdict(projection.indicator_right),
                },
            )
        )

    def refresh_order_log(self) -> None:
        self._bus.publish(OrderLogEvent(orders=self.get_order_log()))

    def _publish_trade_group(self, trade: Trade, group: TradeGroup) -> None:
        self._bus.publish(
            TradeGroupEvent(
                trade_amount=trade.amount,
                trade_price=trade.price,
                trade_severity=self.trade_groups.classify_trade(trade.amount).value,
                side=group.side.value,
                total_amount=group.total_amount,
                trade_count=group.trade_count,
                group_severity=self.trade_groups.classify_group(group).value,
                last_buy_group=self._group_summary(self.trade_groups.last_buy_group),
                last_sell_group=self._group_summary(self.trade_groups.last_sell_group),
            )
        )

    def _group_summary(self, group: TradeGroup | None) -> dict[str, Any] | None:
        if group is None:
            return None
        return {
            "total_amount": group.total_amount,
            "trade_count": group.trade_count,
            "severity": self.trade_groups.classify_group(group).value,
        }

    # ------------------------------------------------------------------
    # Engine status blink
    # ------------------------------------------------------------------

    def _on_engine_status(self, status: EngineStatus) -> None:
        if status == EngineStatus.PRIMED:
            self._start_blink()
        else:
            self._stop_blink()

    def _start_blink(self) -> None:
        if not self._running or self._blink_task is not None:
            return
        self._blink_task = asyncio.create_task(self._blink_loop())

    def _stop_blink(self) -> None:
        if self._blink_task is not None:
            self._blink_task.cancel()
            self._blink_task = None

    async def _blink_loop(self) -> None:
        highlighted = False
        while True:
            await asyncio.sleep(self._settings.blink_interval)
            highlighted = not highlighted
            self._bus.publish(
                EngineStatusEvent(status=EngineStatus.PRIMED, highlighted=highlighted)
            )
