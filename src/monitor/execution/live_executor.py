"""Live executor -- submits orders through the exchange session.

All amounts coming back from ccxt are converted with Decimal(str(value)).
"""

import time
from decimal import Decimal

from monitor.exchange.session import ExchangeSession
from monitor.execution.executor import Executor
from monitor.logging import get_logger
from monitor.models import OrderRequest, OrderResult

logger = get_logger(__name__)


class LiveExecutor(Executor):
    """Real order executor that delegates to an exchange session.

    Args:
        session: The exchange session to place real orders through.
    """

    def __init__(self, session: ExchangeSession) -> None:
        self._session = session

    async def place_order(self, request: OrderRequest) -> OrderResult:
        """Place a real order and parse the ccxt acknowledgment.

        Raises:
            Exception: Any exchange errors propagated from ccxt.
        """
        result = await self._session.create_order(
            symbol=request.symbol,
            order_type=request.order_type.value,
            side=request.side.value,
            amount=float(request.quantity),
            price=float(request.price) if request.price is not None else None,
        )

        order_id = str(result.get("id", ""))
        filled = result.get("filled")
        filled_qty = Decimal(str(filled)) if filled is not None else request.quantity
        average_price = result.get("average") or result.get("price")
        filled_price = Decimal(str(average_price)) if average_price else Decimal("0")

        fee_info = result.get("fee") or {}
        fee_cost = fee_info.get("cost", 0)
        fee = Decimal(str(fee_cost)) if fee_cost else Decimal("0")

        timestamp = result.get("timestamp")
        ts = float(timestamp) / 1000.0 if timestamp else time.time()

        logger.info(
            "live_order_acknowledged",
            order_id=order_id,
            symbol=request.symbol,
            side=request.side.value,
            quantity=str(filled_qty),
            fill_price=str(filled_price),
            fee=str(fee),
        )

        return OrderResult(
            order_id=order_id,
            symbol=request.symbol,
            side=request.side,
            filled_qty=filled_qty,
            filled_price=filled_price,
            fee=fee,
            timestamp=ts,
            is_simulated=False,
        )
