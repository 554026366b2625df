"""Shared test fixtures for the market monitor."""

import pytest

from monitor.config import MonitorSettings
from monitor.events import DisplayEvent, EventBus


@pytest.fixture
def monitor_settings() -> MonitorSettings:
    """Return MonitorSettings with test defaults (paper mode, fast timers)."""
    return MonitorSettings(
        symbol="BTC/USD",
        mode="paper",
        calc_interval=0.05,
        display_refresh_interval=0.05,
        blink_interval=0.01,
        event_queue_size=100,
    )


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def published(event_bus: EventBus) -> list[DisplayEvent]:
    """Collect every event published on the bus."""
    events: list[DisplayEvent] = []
    event_bus.subscribe(events.append)
    return events
