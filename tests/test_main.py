"""Tests for settings loading and component wiring."""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from monitor.config import AppSettings, ExchangeSettings, MonitorSettings
from monitor.execution.live_executor import LiveExecutor
from monitor.execution.paper_executor import PaperExecutor
from monitor.dashboard.app import create_dashboard_app
from monitor.events import EventBus
from monitor.exceptions import UnknownSymbolConfigError
from monitor.exchange.session import ExchangeSession
from monitor.main import _build_components, lifespan
from monitor.orchestrator import Orchestrator


def test_monitor_defaults() -> None:
    settings = MonitorSettings()

    assert settings.trade_size_alert_threshold == Decimal("0.75")
    assert settings.group_size_alert_threshold == Decimal("3")
    assert settings.left_chart_window == 180
    assert settings.right_chart_window == 30
    assert settings.ema_period == 30
    assert settings.calc_interval == 5.0
    assert settings.blink_interval == 0.5
    assert settings.prime_clear_policy == "clear_all"


def test_monitor_settings_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MONITOR_SYMBOL", "ETH/USD")
    monkeypatch.setenv("MONITOR_TRADE_SIZE_ALERT_THRESHOLD", "1.25")
    monkeypatch.setenv("MONITOR_QUEUE_OVERFLOW", "backpressure")

    settings = MonitorSettings()

    assert settings.symbol == "ETH/USD"
    assert settings.trade_size_alert_threshold == Decimal("1.25")
    assert settings.queue_overflow == "backpressure"


def _app_settings(mode: str) -> AppSettings:
    return AppSettings(
        log_level="DEBUG",
        exchange=ExchangeSettings(
            api_key="test-key",  # type: ignore[arg-type]
            api_secret="test-secret",  # type: ignore[arg-type]
        ),
        monitor=MonitorSettings(mode=mode),
    )


def test_paper_mode_reads_price_from_orchestrator() -> None:
    components = _build_components(_app_settings("paper"))
    executor = components["executor"]
    orchestrator = components["orchestrator"]

    assert isinstance(executor, PaperExecutor)
    orchestrator.state.last_trade_price = Decimal("50000")
    assert executor._price_source() == Decimal("50000")


def test_live_mode_uses_exchange_session() -> None:
    components = _build_components(_app_settings("live"))

    assert isinstance(components["executor"], LiveExecutor)
    assert components["executor"]._session is components["session"]


@pytest.mark.asyncio
async def test_lifespan_closes_session_when_connect_fails() -> None:
    session = AsyncMock(spec=ExchangeSession)
    orchestrator = MagicMock(spec=Orchestrator)
    orchestrator.connect = AsyncMock(side_effect=UnknownSymbolConfigError("no config"))
    orchestrator.is_running = False
    event_bus = EventBus()

    app = create_dashboard_app(lifespan=lifespan)
    app.state.settings = _app_settings("paper")
    app.state.components = {
        "event_bus": event_bus,
        "session": session,
        "orchestrator": orchestrator,
    }

    with pytest.raises(UnknownSymbolConfigError):
        async with lifespan(app):
            pass

    session.close.assert_awaited_once()
    orchestrator.stop.assert_not_called()
    assert app.state.hub.on_event not in event_bus._subscribers
