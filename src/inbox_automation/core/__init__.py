"""Core utilities for inbox-automation."""

from __future__ import annotations

from inbox_automation.core.config import AutomationSettings, get_settings
from inbox_automation.core.logging import configure_logging
from inbox_automation.core.time_windows import (
    WEEKDAYS,
    is_local_time_within,
    is_within_window,
    parse_clock,
    to_local,
)

__all__ = [
    "AutomationSettings",
    "WEEKDAYS",
    "configure_logging",
    "get_settings",
    "is_local_time_within",
    "is_within_window",
    "parse_clock",
    "to_local",
]
