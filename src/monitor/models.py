"""Shared data models for the market monitor.

All prices, amounts and balances use Decimal. Timestamps are Unix milliseconds.
"""

import time
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum


class OrderSide(str, Enum):
    """Order direction."""

    BUY = "buy"
    SELL = "sell"

    @classmethod
    def from_amount(cls, amount: Decimal) -> "OrderSide":
        """Signed amount convention: negative is a sell, everything else a buy."""
        return cls.SELL if amount < 0 else cls.BUY


class OrderType(str, Enum):
    """Order type."""

    MARKET = "market"
    LIMIT = "limit"


@dataclass
class Candle:
    """One minute OHLCV bucket, keyed by its opening timestamp."""

    timestamp_ms: int
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal = Decimal("0")


@dataclass(frozen=True)
class Trade:
    """A public trade print. The sign of amount is the taker side."""

    timestamp_ms: int
    amount: Decimal
    price: Decimal

    @property
    def side(self) -> OrderSide:
        return OrderSide.from_amount(self.amount)


@dataclass
class MarginSnapshot:
    """Account margin figures. Any field may be missing from the exchange payload."""

    scope: str = "base"
    user_pl: Decimal | None = None
    margin_balance: Decimal | None = None
    margin_net: Decimal | None = None


@dataclass
class PositionSnapshot:
    """Open position on the monitored instrument."""

    symbol: str
    base_price: Decimal | None = None
    amount: Decimal | None = None
    pl: Decimal | None = None
    pl_perc: Decimal | None = None  # fraction, 0.05 == 5%
    liquidation_price: Decimal | None = None


@dataclass
class MarketConfig:
    """One row of the exchange market configuration table."""

    symbol: str
    min_trade_size: Decimal
    margin_factor: Decimal  # initial margin, 0.1 == 10x leverage


@dataclass
class OrderRequest:
    """Request to place an order."""

    symbol: str
    side: OrderSide
    order_type: OrderType
    quantity: Decimal
    price: Decimal | None = None

    @property
    def signed_amount(self) -> Decimal:
        return self.quantity if self.side == OrderSide.BUY else -self.quantity


@dataclass
class OrderResult:
    """Acknowledged order returned by an executor."""

    order_id: str
    symbol: str
    side: OrderSide
    filled_qty: Decimal
    filled_price: Decimal
    fee: Decimal
    timestamp: float
    is_simulated: bool = False


@dataclass
class OrderRecord:
    """Order history entry shown in the order log."""

    order_id: str
    symbol: str
    amount: Decimal  # signed
    order_type: OrderType
    price: Decimal | None = None
    created_at_ms: int = field(default_factory=lambda: int(time.time() * 1000))
