"""Exchange session layer -- streaming and order placement via ccxt.pro."""

from monitor.exchange.ccxt_session import CcxtSession
from monitor.exchange.session import ExchangeSession

__all__ = ["CcxtSession", "ExchangeSession"]
