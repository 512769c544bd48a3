"""Terminal UI for the always-on dashboard."""

from .event_buffer import EventBuffer
from .models import ClockState, DashboardEvent
from .terminal_dashboard import TerminalDashboard

__all__ = ["ClockState", "DashboardEvent", "EventBuffer", "TerminalDashboard"]
