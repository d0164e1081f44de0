"""
Nexus Core Time - Public API
=============================
"""

from core.time.clock import (
    Clock,
    FixedClock,
    SystemClock,
    ensure_aware,
)

__all__ = [
    "Clock",
    "FixedClock",
    "SystemClock",
    "ensure_aware",
]
