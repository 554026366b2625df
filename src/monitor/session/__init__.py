"""Account session state -- margin and position snapshots."""

from monitor.session.state import DerivedFigures, SessionState

__all__ = ["DerivedFigures", "SessionState"]
