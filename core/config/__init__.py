"""
Nexus Core Config - Public API
===============================
Admin-configurable SLA limits and finance thresholds.
Doctrine: settings are passed explicitly, never read from module state.
"""

from core.config.settings import (
    InMemorySettingsStore,
    OperationalSettings,
    SettingsStore,
)

__all__ = [
    "OperationalSettings",
    "SettingsStore",
    "InMemorySettingsStore",
]
