"""Latest account snapshots delivered by the exchange session.

Snapshots are replaced wholesale on every update and never validated;
derived figures come out as None when an input is missing so the display
can show a placeholder.
"""

from dataclasses import dataclass
from decimal import Decimal

from monitor.formatting import to_decimal
from monitor.models import MarginSnapshot, PositionSnapshot


@dataclass
class DerivedFigures:
    """Values computed from the margin and position snapshots."""

    tradable_balance: Decimal | None
    pl_percent: Decimal | None


class SessionState:
    """Holds margin, position and instrument limits for the monitored symbol."""

    def __init__(self) -> None:
        self.margin = MarginSnapshot()
        self.position: PositionSnapshot | None = None
        self.last_trade_price: Decimal | None = None
        self.min_trade_size: Decimal | None = None
        self.max_leverage: Decimal | None = None

    def set_margin(self, snapshot: MarginSnapshot) -> None:
        self.margin = snapshot

    def set_position(self, snapshot: PositionSnapshot | None) -> None:
        self.position = snapshot

    @property
    def has_position(self) -> bool:
        # a close can leave an empty snapshot behind; no base price means no position
        return self.position is not None and to_decimal(self.position.base_price) is not None

    def get_derived(self) -> DerivedFigures:
        """Compute tradable balance (net margin x max leverage) and position P/L %."""
        margin_net = to_decimal(self.margin.margin_net)
        leverage = to_decimal(self.max_leverage)
        tradable = margin_net * leverage if margin_net is not None and leverage is not None else None

        pl_percent = None
        if self.position is not None:
            pl_perc = to_decimal(self.position.pl_perc)
            if pl_perc is not None:
                pl_percent = pl_perc * 100

        return DerivedFigures(tradable_balance=tradable, pl_percent=pl_percent)
