"""Exceptions raised by the market monitor.

Kept in one module so the prime engine, executors and orchestrator can
share them without importing each other.
"""


class MonitorError(Exception):
    """Base exception for all monitor errors."""


class DuplicateRuleError(MonitorError):
    """Raised when a prime rule with the same type and threshold is already active."""


class UnknownSymbolConfigError(MonitorError):
    """Raised when the instrument is missing from the exchange market configuration."""


class AlreadyConnectedError(MonitorError):
    """Raised when connect() is called on a monitor that already has a symbol."""


class OrderSubmissionError(MonitorError):
    """Raised when the exchange session rejects or fails to deliver an order."""


class PriceUnavailableError(MonitorError):
    """Raised when no trade price is known for a simulated fill."""
