"""Tests for PaperExecutor simulated order execution.

Verifies:
- Slippage applied in correct direction (higher for buys, lower for sells)
- Taker fee computed on the filled notional
- PriceUnavailableError when no trade price is known
- Simulated position tracking
- is_simulated=True and paper_{hex} order IDs
"""

from decimal import Decimal

import pytest

from monitor.exceptions import PriceUnavailableError
from monitor.execution.paper_executor import PaperExecutor
from monitor.models import OrderRequest, OrderSide, OrderType


def _request(side: OrderSide, quantity: str = "1") -> OrderRequest:
    return OrderRequest(
        symbol="BTC/USD",
        side=side,
        order_type=OrderType.MARKET,
        quantity=Decimal(quantity),
    )


@pytest.fixture
def price() -> dict[str, Decimal | None]:
    return {"last": Decimal("50000")}


@pytest.fixture
def executor(price: dict[str, Decimal | None]) -> PaperExecutor:
    return PaperExecutor(lambda: price["last"], taker_fee=Decimal("0.002"))


@pytest.mark.asyncio
async def test_buy_order_applies_positive_slippage(executor: PaperExecutor) -> None:
    """Buy orders should fill at price * (1 + 0.0005) -- slightly higher."""
    result = await executor.place_order(_request(OrderSide.BUY))

    assert result.filled_price == Decimal("50000") * Decimal("1.0005")
    assert result.filled_qty == Decimal("1")


@pytest.mark.asyncio
async def test_sell_order_applies_negative_slippage(executor: PaperExecutor) -> None:
    """Sell orders should fill at price * (1 - 0.0005) -- slightly lower."""
    result = await executor.place_order(_request(OrderSide.SELL))

    assert result.filled_price == Decimal("50000") * Decimal("0.9995")


@pytest.mark.asyncio
async def test_fee_on_filled_notional(executor: PaperExecutor) -> None:
    result = await executor.place_order(_request(OrderSide.BUY, "0.5"))

    expected_fee = Decimal("0.5") * Decimal("50000") * Decimal("1.0005") * Decimal("0.002")
    assert result.fee == expected_fee


@pytest.mark.asyncio
async def test_missing_price_raises(
    executor: PaperExecutor, price: dict[str, Decimal | None]
) -> None:
    price["last"] = None

    with pytest.raises(PriceUnavailableError):
        await executor.place_order(_request(OrderSide.BUY))


@pytest.mark.asyncio
async def test_simulated_position_tracks_signed_fills(executor: PaperExecutor) -> None:
    await executor.place_order(_request(OrderSide.BUY, "1"))
    await executor.place_order(_request(OrderSide.SELL, "0.25"))

    assert executor.simulated_position == Decimal("0.75")


@pytest.mark.asyncio
async def test_results_are_simulated_with_paper_ids(executor: PaperExecutor) -> None:
    first = await executor.place_order(_request(OrderSide.BUY))
    second = await executor.place_order(_request(OrderSide.BUY))

    assert first.is_simulated is True
    assert first.order_id.startswith("paper_")
    assert len(first.order_id) == len("paper_") + 12
    assert first.order_id != second.order_id
