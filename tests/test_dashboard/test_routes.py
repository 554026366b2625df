"""Tests for the dashboard JSON, command and WebSocket endpoints."""

import time
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from monitor.config import MonitorSettings
from monitor.dashboard.app import create_dashboard_app
from monitor.events import EventBus, StatusEvent
from monitor.exceptions import OrderSubmissionError
from monitor.exchange.session import ExchangeSession
from monitor.execution.executor import Executor
from monitor.models import OrderResult, OrderSide
from monitor.orchestrator import Orchestrator
from monitor.primes import PrimeType


@pytest.fixture
def orchestrator(monitor_settings: MonitorSettings, event_bus: EventBus) -> Orchestrator:
    return Orchestrator(
        monitor_settings,
        AsyncMock(spec=ExchangeSession),
        AsyncMock(spec=Executor),
        event_bus,
    )


@pytest.fixture
def client(orchestrator: Orchestrator) -> TestClient:
    app = create_dashboard_app()
    app.state.orchestrator = orchestrator
    return TestClient(app)


def _order_result(side: OrderSide = OrderSide.BUY) -> OrderResult:
    return OrderResult(
        order_id="paper_abc",
        symbol="BTC/USD",
        side=side,
        filled_qty=Decimal("0.01"),
        filled_price=Decimal("50025"),
        fee=Decimal("1"),
        timestamp=time.time(),
        is_simulated=True,
    )


# ---------------------------------------------------------------------------
# Read endpoints
# ---------------------------------------------------------------------------


def test_status_endpoint(client: TestClient) -> None:
    resp = client.get("/api/status")

    assert resp.status_code == 200
    body = resp.json()
    assert body["engine_status"] == "idle"
    assert body["max_leverage"] == "-"
    assert body["position"]["has_position"] is False


def test_chart_endpoint_empty_history(client: TestClient) -> None:
    resp = client.get("/api/chart")

    assert resp.status_code == 200
    body = resp.json()
    assert body["left_window"] == 180
    assert body["right_window"] == 30
    assert body["min_left"] is None
    assert body["indicator_left"]["title"] == "EMA(30)"
    assert body["price_left"]["values"] == []


def test_orders_endpoint_empty(client: TestClient) -> None:
    assert client.get("/api/orders").json() == []


# ---------------------------------------------------------------------------
# Prime rules
# ---------------------------------------------------------------------------


def test_add_prime_rule(client: TestClient, orchestrator: Orchestrator) -> None:
    resp = client.post(
        "/actions/primes",
        json={"type": "size", "threshold": "-5", "amount": "0.2", "expires_in": 60},
    )

    assert resp.status_code == 201
    assert resp.json() == {"rule": "size -5"}
    rule = orchestrator.primes.rules[0]
    assert rule.type == PrimeType.SIZE
    assert rule.threshold == Decimal("-5")
    assert rule.amount == Decimal("0.2")
    assert rule.expiry_ms > int(time.time() * 1000)

    listed = client.get("/api/primes").json()
    assert listed == [
        {"type": "size", "threshold": "-5", "amount": "0.2", "expiry_ms": rule.expiry_ms}
    ]


def test_duplicate_prime_rule_conflict(client: TestClient) -> None:
    client.post("/actions/primes", json={"type": "size", "threshold": 5})
    resp = client.post("/actions/primes", json={"type": "size", "threshold": "5"})

    assert resp.status_code == 409


@pytest.mark.parametrize(
    "body",
    [
        {"type": "size", "threshold": "abc"},
        {"type": "size", "threshold": "0"},
        {"type": "size"},
        {"type": "price", "threshold": "5"},
    ],
)
def test_invalid_prime_rule_rejected(
    client: TestClient, orchestrator: Orchestrator, body: dict
) -> None:
    resp = client.post("/actions/primes", json=body)

    assert resp.status_code == 400
    assert orchestrator.primes.rules == []


# ---------------------------------------------------------------------------
# Runtime config
# ---------------------------------------------------------------------------


def test_config_update(client: TestClient, orchestrator: Orchestrator) -> None:
    resp = client.post(
        "/actions/config",
        json={"trade_size_alert_threshold": "1.5", "ema_period": "12", "left_chart_window": 90},
    )

    assert resp.status_code == 200
    assert resp.json()["trade_size_alert"] == "1.5"
    assert orchestrator.indicator.period == 12
    assert orchestrator.projector.left_window == 90
    assert orchestrator.projector.right_window == 30


@pytest.mark.parametrize(
    "body",
    [
        {"ema_period": "0"},
        {"right_chart_window": "x"},
        {"quick_order_size": "-1"},
    ],
)
def test_invalid_config_rejected(client: TestClient, body: dict) -> None:
    assert client.post("/actions/config", json=body).status_code == 400


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_orchestrator() -> MagicMock:
    orchestrator = MagicMock(spec=Orchestrator)
    orchestrator.submit_order = AsyncMock(return_value=_order_result())
    orchestrator.quick_order = AsyncMock(return_value=_order_result(OrderSide.SELL))
    return orchestrator


@pytest.fixture
def order_client(mock_orchestrator: MagicMock) -> TestClient:
    app = create_dashboard_app()
    app.state.orchestrator = mock_orchestrator
    return TestClient(app)


def test_submit_signed_amount(order_client: TestClient, mock_orchestrator: MagicMock) -> None:
    resp = order_client.post("/actions/orders", json={"amount": "-0.01"})

    assert resp.status_code == 200
    mock_orchestrator.submit_order.assert_awaited_once_with(Decimal("-0.01"))
    assert resp.json()["order_id"] == "paper_abc"


def test_quick_order_by_side(order_client: TestClient, mock_orchestrator: MagicMock) -> None:
    resp = order_client.post("/actions/orders", json={"side": "sell"})

    assert resp.status_code == 200
    mock_orchestrator.quick_order.assert_awaited_once_with(OrderSide.SELL)
    assert resp.json()["side"] == "sell"


def test_invalid_side_rejected(order_client: TestClient) -> None:
    assert order_client.post("/actions/orders", json={"side": "hold"}).status_code == 400


def test_order_failure_maps_to_bad_gateway(
    order_client: TestClient, mock_orchestrator: MagicMock
) -> None:
    mock_orchestrator.submit_order.side_effect = OrderSubmissionError("rejected")

    resp = order_client.post("/actions/orders", json={"amount": "1"})

    assert resp.status_code == 502
    assert resp.json() == {"error": "rejected"}


# ---------------------------------------------------------------------------
# WebSocket
# ---------------------------------------------------------------------------


def test_websocket_receives_bus_events(
    client: TestClient, orchestrator: Orchestrator, event_bus: EventBus
) -> None:
    hub = client.app.state.hub

    # one shared portal so the command handler and the socket share an event loop
    with client:
        with client.websocket_connect("/ws") as ws:
            event_bus.subscribe(hub.on_event)
            try:
                client.post("/actions/config", json={"trade_size_alert_threshold": "2"})
                message = ws.receive_json()
            finally:
                event_bus.unsubscribe(hub.on_event)
        client.portal.call(hub.close)

    assert message["kind"] == "status"
    assert message["trade_size_alert"] == "2"


def test_status_event_serializes_to_json_types() -> None:
    event = StatusEvent(
        last_price="50000",
        margin_pl="-",
        margin_balance="-",
        margin_net="-",
        tradable_balance="-",
        min_trade_size="0.001",
        max_leverage="10.0",
        quick_order_size="unset",
        trade_size_alert="0.75",
        group_size_alert="3",
        primes=["size 5"],
    )

    assert event.to_dict()["kind"] == "status"
    assert event.to_dict()["primes"] == ["size 5"]
