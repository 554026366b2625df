"""Entry point for the market monitor.

Wires all components together, optionally embeds the FastAPI dashboard,
and starts the orchestrator. When the dashboard is enabled (default), the
monitor and dashboard share a single asyncio event loop via uvicorn's
programmatic API and FastAPI's lifespan context manager.

Handles SIGINT/SIGTERM for graceful shutdown.

Component wiring order (in _build_components):
1. AppSettings (configuration)
2. Logging setup
3. EventBus (display event fan-out)
4. CcxtSession (exchange streams and REST)
5. Executor (PaperExecutor or LiveExecutor based on mode)
6. Orchestrator (event dispatch, state, prime engine)
"""

import asyncio
import signal
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI

from monitor.config import AppSettings
from monitor.events import DisplayEvent, EventBus, PrimeTriggerEvent
from monitor.exchange.ccxt_session import CcxtSession
from monitor.logging import get_logger, setup_logging
from monitor.orchestrator import Orchestrator


def _log_prime_trigger(event: DisplayEvent) -> None:
    """EventBus subscriber: surface prime trigger notifications in the log."""
    if isinstance(event, PrimeTriggerEvent):
        get_logger("monitor.main").warning("prime_triggered", message=event.message)


def _build_components(settings: AppSettings) -> dict[str, Any]:
    """Build all monitor components from settings.

    Note: Does NOT connect to the exchange -- that happens in the lifespan
    (dashboard mode) or run() (non-dashboard mode).

    Args:
        settings: Application-wide settings.

    Returns:
        Dict mapping component names to instances.
    """
    logger = get_logger("monitor.main")

    event_bus = EventBus()
    event_bus.subscribe(_log_prime_trigger)

    session = CcxtSession(settings.exchange)

    if not settings.exchange.api_key.get_secret_value():
        logger.warning(
            "no_api_keys_configured",
            mode=settings.monitor.mode,
            note="Public streams will work. Margin, positions and live orders will fail.",
        )

    if settings.monitor.mode == "paper":
        from monitor.execution.paper_executor import PaperExecutor

        # orchestrator is bound below; the price is only read once trades flow
        executor = PaperExecutor(
            lambda: orchestrator.state.last_trade_price,
            taker_fee=settings.monitor.paper_taker_fee,
        )
    else:
        from monitor.execution.live_executor import LiveExecutor

        executor = LiveExecutor(session)

    orchestrator = Orchestrator(
        settings=settings.monitor,
        session=session,
        executor=executor,
        event_bus=event_bus,
    )

    return {
        "event_bus": event_bus,
        "session": session,
        "executor": executor,
        "orchestrator": orchestrator,
    }


def _setup_signal_handlers(orchestrator: Orchestrator) -> None:
    """Register SIGINT/SIGTERM to stop the orchestrator gracefully.

    Must be called after the asyncio event loop is running.
    """
    logger = get_logger("monitor.main")
    loop = asyncio.get_running_loop()

    def _graceful_handler() -> None:
        logger.info("graceful_shutdown_signal")
        asyncio.create_task(orchestrator.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _graceful_handler)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage monitor lifecycle within the FastAPI application.

    On startup: stores the orchestrator on app.state, forwards bus events to
    the WebSocket hub, connects and starts the orchestrator.

    On shutdown: stops the orchestrator and closes the exchange session.
    """
    logger = get_logger("monitor.main")
    settings: AppSettings = app.state.settings
    components = app.state.components
    orchestrator: Orchestrator = components["orchestrator"]

    app.state.orchestrator = orchestrator
    components["event_bus"].subscribe(app.state.hub.on_event)

    try:
        await orchestrator.connect(settings.monitor.symbol)
        await orchestrator.start()

        logger.info(
            "lifespan_started", mode=settings.monitor.mode, symbol=orchestrator.symbol
        )

        yield
    finally:
        if orchestrator.is_running:
            await orchestrator.stop()
        components["event_bus"].unsubscribe(app.state.hub.on_event)
        await app.state.hub.close()
        await components["session"].close()

        logger.info("market_monitor_stopped")


async def run() -> None:
    """Run the market monitor.

    When the dashboard is enabled (DASHBOARD_ENABLED=true, the default) the
    lifespan manages startup and shutdown inside uvicorn. Otherwise the
    orchestrator runs directly until a signal stops it.
    """
    settings = AppSettings()

    setup_logging(settings.log_level)
    logger = get_logger("monitor.main")

    components = _build_components(settings)
    orchestrator: Orchestrator = components["orchestrator"]

    if settings.dashboard.enabled:
        from monitor.dashboard.app import create_dashboard_app

        app = create_dashboard_app(lifespan=lifespan)
        app.state.settings = settings
        app.state.components = components

        logger.info(
            "starting_with_dashboard",
            host=settings.dashboard.host,
            port=settings.dashboard.port,
            mode=settings.monitor.mode,
            symbol=settings.monitor.symbol,
        )

        config = uvicorn.Config(
            app,
            host=settings.dashboard.host,
            port=settings.dashboard.port,
            log_level="warning",  # Suppress uvicorn access logs
        )
        server = uvicorn.Server(config)
        await server.serve()
    else:
        _setup_signal_handlers(orchestrator)

        logger.info(
            "starting_without_dashboard",
            mode=settings.monitor.mode,
            symbol=settings.monitor.symbol,
        )

        try:
            await orchestrator.connect(settings.monitor.symbol)
            await orchestrator.start()
            await orchestrator.wait_stopped()
        finally:
            if orchestrator.is_running:
                await orchestrator.stop()
            await components["session"].close()
            logger.info("market_monitor_stopped")


def main() -> None:
    """Synchronous entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
