"""POST endpoints forming the runtime command layer.

Bodies are JSON objects. Numeric values may be sent as strings or numbers
and are parsed with Decimal(str(value)).
"""

from __future__ import annotations

import time
from decimal import Decimal, InvalidOperation
from typing import Any

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from monitor.config import RuntimeConfig
from monitor.exceptions import DuplicateRuleError, OrderSubmissionError
from monitor.models import OrderSide
from monitor.primes import PrimeRule, PrimeType

log = structlog.get_logger(__name__)

router = APIRouter()

_DECIMAL_FIELDS = ("trade_size_alert_threshold", "group_size_alert_threshold", "quick_order_size")
_INT_FIELDS = ("left_chart_window", "right_chart_window", "ema_period")


def _parse_decimal(value: Any) -> Decimal | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return Decimal(str(value).strip())


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@router.post("/primes")
async def add_prime(request: Request) -> JSONResponse:
    """Create a prime rule: {"type", "threshold", "amount"?, "expires_in"? (seconds)}."""
    orchestrator = request.app.state.orchestrator
    body = await request.json()

    try:
        threshold = _parse_decimal(body.get("threshold"))
        if threshold is None:
            raise ValueError("threshold is required")
        expires_in = body.get("expires_in")
        rule = PrimeRule(
            type=PrimeType(body.get("type", PrimeType.SIZE.value)),
            threshold=threshold,
            amount=_parse_decimal(body.get("amount")),
            expiry_ms=(
                int(time.time() * 1000 + float(expires_in) * 1000)
                if expires_in is not None
                else None
            ),
        )
        orchestrator.add_prime(rule)
    except DuplicateRuleError as e:
        log.warning("prime_rule_rejected", error=str(e))
        return _error(409, str(e))
    except (InvalidOperation, ValueError) as e:
        log.error("prime_rule_validation_error", error=str(e))
        return _error(400, f"Invalid value: {e}")

    log.info("prime_rule_added_via_dashboard", rule=rule.describe())
    return JSONResponse(status_code=201, content={"rule": rule.describe()})


@router.post("/config")
async def update_config(request: Request) -> JSONResponse:
    """Apply runtime config overrides and return the refreshed status."""
    orchestrator = request.app.state.orchestrator
    body = await request.json()

    try:
        rc = RuntimeConfig()
        for name in _DECIMAL_FIELDS:
            setattr(rc, name, _parse_decimal(body.get(name)))
        for name in _INT_FIELDS:
            value = body.get(name)
            if value is not None and str(value).strip():
                setattr(rc, name, int(str(value).strip()))
        orchestrator.apply_runtime_config(rc)
    except (InvalidOperation, ValueError) as e:
        log.error("config_update_validation_error", error=str(e))
        return _error(400, f"Invalid value: {e}")

    log.info("config_updated_via_dashboard", config=str(rc))
    return JSONResponse(content=orchestrator.get_status())


@router.post("/orders")
async def submit_order(request: Request) -> JSONResponse:
    """Submit a market order: {"amount": signed} or {"side": "buy"|"sell"} for a quick order."""
    orchestrator = request.app.state.orchestrator
    body = await request.json()

    try:
        amount = _parse_decimal(body.get("amount"))
        if amount is not None:
            result = await orchestrator.submit_order(amount)
        else:
            result = await orchestrator.quick_order(OrderSide(body.get("side")))
    except (InvalidOperation, ValueError) as e:
        return _error(400, f"Invalid order: {e}")
    except OrderSubmissionError as e:
        return _error(502, str(e))

    return JSONResponse(
        content={
            "order_id": result.order_id,
            "side": result.side.value,
            "filled_qty": str(result.filled_qty),
            "filled_price": str(result.filled_price),
            "is_simulated": result.is_simulated,
        }
    )
