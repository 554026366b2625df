"""JSON read endpoints for the monitor state."""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from monitor.events import jsonable

router = APIRouter()


@router.get("/status")
async def get_status(request: Request) -> JSONResponse:
    """Status panel, engine state and position."""
    orchestrator = request.app.state.orchestrator
    return JSONResponse(content=orchestrator.get_status())


@router.get("/chart")
async def get_chart(request: Request) -> JSONResponse:
    """Left and right chart windows with price and indicator series."""
    orchestrator = request.app.state.orchestrator
    projection = orchestrator.get_chart()
    return JSONResponse(
        content=jsonable(
            {
                "left_window": projection.left_window,
                "right_window": projection.right_window,
                "min_left": projection.min_left,
                "min_right": projection.min_right,
                "price_left": asdict(projection.price_left),
                "indicator_left": asdict(projection.indicator_left),
                "price_right": asdict(projection.price_right),
                "indicator_right": asdict(projection.indicator_right),
            }
        )
    )


@router.get("/orders")
async def get_orders(request: Request) -> JSONResponse:
    """Order history with relative submission times."""
    orchestrator = request.app.state.orchestrator
    return JSONResponse(content=orchestrator.get_order_log())


@router.get("/primes")
async def get_primes(request: Request) -> JSONResponse:
    """Active prime rules in insertion order."""
    orchestrator = request.app.state.orchestrator
    return JSONResponse(
        content=[
            jsonable(
                {
                    "type": rule.type,
                    "threshold": rule.threshold,
                    "amount": rule.amount,
                    "expiry_ms": rule.expiry_ms,
                }
            )
            for rule in orchestrator.primes.rules
        ]
    )
