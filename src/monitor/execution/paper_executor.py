"""Paper executor with simulated fills at the last trade price.

Fills are instant market-order simulations with fixed slippage and a taker
fee. The reference price comes from a callable so the executor does not
depend on the session state object.
"""

import time
from collections.abc import Callable
from decimal import Decimal
from uuid import uuid4

from monitor.exceptions import PriceUnavailableError
from monitor.execution.executor import Executor
from monitor.logging import get_logger
from monitor.models import OrderRequest, OrderResult, OrderSide

logger = get_logger(__name__)

# Simulated slippage: 0.05% (5 basis points)
_SLIPPAGE = Decimal("0.0005")


class PaperExecutor(Executor):
    """Simulated order executor for paper trading.

    Args:
        price_source: Returns the latest trade price, or None if none is known.
        taker_fee: Fee rate applied to the filled notional.
    """

    def __init__(
        self,
        price_source: Callable[[], Decimal | None],
        taker_fee: Decimal = Decimal("0.002"),
    ) -> None:
        self._price_source = price_source
        self._taker_fee = taker_fee
        self._position = Decimal("0")

    @property
    def simulated_position(self) -> Decimal:
        """Net signed amount of all simulated fills."""
        return self._position

    async def place_order(self, request: OrderRequest) -> OrderResult:
        """Simulate a market fill.

        Raises:
            PriceUnavailableError: If no trade has been seen yet.
        """
        price = self._price_source()
        if price is None:
            raise PriceUnavailableError(f"No trade price available for {request.symbol}")

        if request.side == OrderSide.BUY:
            fill_price = price * (Decimal("1") + _SLIPPAGE)
        else:
            fill_price = price * (Decimal("1") - _SLIPPAGE)

        fee = request.quantity * fill_price * self._taker_fee
        self._position += request.signed_amount

        order_id = f"paper_{uuid4().hex[:12]}"

        logger.info(
            "paper_order_filled",
            order_id=order_id,
            symbol=request.symbol,
            side=request.side.value,
            quantity=str(request.quantity),
            fill_price=str(fill_price),
            fee=str(fee),
        )

        return OrderResult(
            order_id=order_id,
            symbol=request.symbol,
            side=request.side,
            filled_qty=request.quantity,
            filled_price=fill_price,
            fee=fee,
            timestamp=time.time(),
            is_simulated=True,
        )
