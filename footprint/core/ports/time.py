"""
Time port.

All internal timestamps are UTC. Reporting code receives "now" through
this port so every window is reproducible in tests.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol


class TimePort(Protocol):
    """Time provider interface."""

    def now_utc(self) -> datetime:
        """Get current UTC time (timezone-aware)."""
        ...
