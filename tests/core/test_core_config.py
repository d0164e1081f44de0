"""
Tests for core.config - Operational settings and the settings store.
"""

import pytest
from decimal import Decimal

from core.config.settings import InMemorySettingsStore, OperationalSettings


class TestOperationalSettings:
    def test_factory_defaults(self):
        settings = OperationalSettings()
        assert settings.order_edit_time_limit_hrs == 1
        assert settings.waiting_factory_limit_hrs == 5
        assert settings.delivered_limit_hrs == 1080
        assert settings.default_payment_sla_days == 30
        assert settings.minimum_margin_pct == Decimal("15")
        assert settings.logging_delay_threshold_hrs == 1

    def test_negative_limit_rejected(self):
        with pytest.raises(ValueError, match="technical_review_limit_hrs"):
            OperationalSettings(technical_review_limit_hrs=-1)

    def test_margin_coerced_to_decimal(self):
        settings = OperationalSettings(minimum_margin_pct=12.5)
        assert settings.minimum_margin_pct == Decimal("12.5")

    def test_payment_days_must_be_integer(self):
        with pytest.raises(ValueError, match="integer"):
            OperationalSettings(default_payment_sla_days=1.5)

    def test_frozen_immutability(self):
        settings = OperationalSettings()
        with pytest.raises(AttributeError):
            settings.minimum_margin_pct = Decimal("0")


class TestFromMapping:
    def test_legacy_camel_case_keys(self):
        settings = OperationalSettings.from_mapping({
            "orderEditTimeLimitHrs": 2,
            "waitingFactoryLimitHrs": 6,
            "minimumMarginPct": 20,
            "defaultPaymentSlaDays": 45,
            "companyName": "Nexus Industries",
        })
        assert settings.order_edit_time_limit_hrs == 2
        assert settings.waiting_factory_limit_hrs == 6
        assert settings.minimum_margin_pct == Decimal("20")
        assert settings.default_payment_sla_days == 45

    def test_snake_case_keys(self):
        settings = OperationalSettings.from_mapping({"delivery_limit_hrs": 4})
        assert settings.delivery_limit_hrs == 4

    def test_logging_delay_days_converted_to_hours(self):
        settings = OperationalSettings.from_mapping({"loggingDelayThresholdDays": 2})
        assert settings.logging_delay_threshold_hrs == 48

    def test_explicit_hours_win_over_days(self):
        settings = OperationalSettings.from_mapping({
            "loggingDelayThresholdHrs": 3,
            "loggingDelayThresholdDays": 2,
        })
        assert settings.logging_delay_threshold_hrs == 3

    def test_round_trip_through_dict(self):
        original = OperationalSettings(minimum_margin_pct=Decimal("17.5"), rfp_sent_limit_hrs=12)
        assert OperationalSettings.from_mapping(original.to_dict()) == original


class TestInMemorySettingsStore:
    def test_defaults(self):
        store = InMemorySettingsStore()
        assert store.get_settings() == OperationalSettings()

    def test_update_replaces_snapshot(self):
        store = InMemorySettingsStore()
        before = store.get_settings()
        after = store.update(waiting_factory_limit_hrs=8)
        assert after.waiting_factory_limit_hrs == 8
        assert store.get_settings() is after
        assert before.waiting_factory_limit_hrs == 5
