"""
Nexus Core Config - Operational Settings
=========================================
Doctrine: No hardcoded SLA hours or margin thresholds in engine logic.

SLA limits, the minimum margin and the logging-delay threshold are
admin-configured data. They are read once into a frozen
OperationalSettings and passed explicitly into every computation.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, fields
from decimal import Decimal
from typing import Any, Mapping, Optional, Protocol


# ══════════════════════════════════════════════════════════════
# OPERATIONAL SETTINGS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class OperationalSettings:
    """
    Per-state SLA limits (hours), payment terms and finance gates.

    Defaults match the factory configuration shipped with the system.
    """

    order_edit_time_limit_hrs: float = 1
    technical_review_limit_hrs: float = 2
    pending_offer_limit_hrs: float = 2
    rfp_sent_limit_hrs: float = 24
    awarded_limit_hrs: float = 8
    issue_po_limit_hrs: float = 1
    ordered_limit_hrs: float = 72
    waiting_factory_limit_hrs: float = 5
    mfg_finish_limit_hrs: float = 1
    transit_to_hub_limit_hrs: float = 2
    product_hub_limit_hrs: float = 24
    invoiced_limit_hrs: float = 1
    hub_released_limit_hrs: float = 1
    delivery_limit_hrs: float = 3
    delivered_limit_hrs: float = 1080
    default_payment_sla_days: int = 30
    minimum_margin_pct: Decimal = Decimal("15")
    logging_delay_threshold_hrs: float = 1

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None or value < 0:
                raise ValueError(f"{f.name} must be >= 0, got {value!r}.")
        if not isinstance(self.minimum_margin_pct, Decimal):
            object.__setattr__(
                self, "minimum_margin_pct", Decimal(str(self.minimum_margin_pct))
            )
        if not isinstance(self.default_payment_sla_days, int):
            raise ValueError("default_payment_sla_days must be an integer.")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> OperationalSettings:
        """
        Build settings from a mapping with snake_case or legacy camelCase keys
        (e.g. `orderEditTimeLimitHrs`). Unknown keys are ignored.

        The legacy `loggingDelayThresholdDays` key is converted to hours.
        """
        known = {f.name for f in fields(cls)}
        kwargs: dict = {}
        for key, value in data.items():
            name = _snake_case(key)
            if name == "logging_delay_threshold_days":
                kwargs.setdefault("logging_delay_threshold_hrs", float(value) * 24)
                continue
            if name not in known:
                continue
            if name == "minimum_margin_pct":
                kwargs[name] = Decimal(str(value))
            elif name == "default_payment_sla_days":
                kwargs[name] = int(value)
            else:
                kwargs[name] = float(value)
        return cls(**kwargs)

    def to_dict(self) -> dict:
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["minimum_margin_pct"] = str(self.minimum_margin_pct)
        return data


_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def _snake_case(key: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", key).lower()


# ══════════════════════════════════════════════════════════════
# SETTINGS STORE PROTOCOL
# ══════════════════════════════════════════════════════════════

class SettingsStore(Protocol):
    """
    Protocol for admin-configured settings storage.

    Implementations may back this with a database, file, or in-memory store.
    """

    def get_settings(self) -> OperationalSettings:
        ...  # pragma: no cover


# ══════════════════════════════════════════════════════════════
# IN-MEMORY SETTINGS STORE (for testing / bootstrap)
# ══════════════════════════════════════════════════════════════

class InMemorySettingsStore:
    """Simple in-memory settings store for testing and bootstrap."""

    def __init__(self, settings: Optional[OperationalSettings] = None) -> None:
        self._settings = settings or OperationalSettings()

    def get_settings(self) -> OperationalSettings:
        return self._settings

    def update(self, **changes: Any) -> OperationalSettings:
        data = self._settings.to_dict()
        data.update(changes)
        self._settings = OperationalSettings.from_mapping(data)
        return self._settings
