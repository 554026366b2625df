"""In-memory candle storage keyed by candle open time.

The store is unbounded for the lifetime of a session: every minute adds a
key and nothing is evicted.
"""

from dataclasses import replace
from decimal import Decimal

from monitor.logging import get_logger
from monitor.models import Candle

logger = get_logger(__name__)


class CandleStore:
    """Minute candles keyed by timestamp_ms.

    Candles are replaced wholesale by upsert(). The only partial mutation is
    patch_last_close(), which lets live trades move the close of the newest
    candle between candle updates.
    """

    def __init__(self) -> None:
        self._candles: dict[int, Candle] = {}

    def __len__(self) -> int:
        return len(self._candles)

    def upsert(self, candle: Candle) -> None:
        """Insert a candle, replacing any existing candle with the same timestamp."""
        self._candles[candle.timestamp_ms] = candle

    def get(self, timestamp_ms: int) -> Candle | None:
        return self._candles.get(timestamp_ms)

    def latest(self) -> Candle | None:
        """Return the candle with the greatest timestamp, or None when empty."""
        if not self._candles:
            return None
        return self._candles[max(self._candles)]

    def patch_last_close(self, price: Decimal) -> bool:
        """Set the close of the newest candle to price.

        Trades can arrive before the first candle update; in that case
        there is nothing to patch and False is returned.
        """
        if not self._candles:
            logger.debug("patch_last_close_skipped", reason="no_candles")
            return False

        last_ts = max(self._candles)
        self._candles[last_ts] = replace(self._candles[last_ts], close=price)
        return True

    def ordered_timestamps(self) -> list[int]:
        """Return all candle timestamps in ascending order."""
        return sorted(self._candles)

    def closes(self) -> list[Decimal]:
        """Return candle closes in ascending timestamp order."""
        return [self._candles[ts].close for ts in self.ordered_timestamps()]
