"""Always-on dashboard: clock, calendar and weather for an always-on screen."""

__version__ = "0.1.0"
