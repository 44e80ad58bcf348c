from __future__ import annotations

from decimal import Decimal

import pytest

from core import settings as settings_module

MANAGED_ENV_VARS = (
    "ENV",
    "LOG_LEVEL",
    "DB_TYPE",
    "MONGO_URL",
    "DB_NAME",
    "PAYMENT_MAX_AMOUNT",
    "PAYMENT_MIN_FEE",
    "PAYMENT_DEFAULT_CURRENCY",
    "PROCESSOR_TIMEOUT_SECONDS",
    "PROCESSOR_LATENCY_SCALE",
    "REFUND_STATUS_POLICY",
    "FRAUD_HISTORY_SOURCE",
    "FRAUD_VELOCITY_WINDOW_SECONDS",
    "FRAUD_VELOCITY_THRESHOLD",
)


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch):
    for name in MANAGED_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    settings_module.get_settings.cache_clear()
    yield
    settings_module.get_settings.cache_clear()


def _set_minimal_valid_env(monkeypatch: pytest.MonkeyPatch) -> None:
    values = {
        "DB_TYPE": "mongodb",
        "MONGO_URL": "mongodb://localhost:27017",
        "DB_NAME": "ride_payments",
        "REFUND_STATUS_POLICY": "keep_completed",
        "FRAUD_HISTORY_SOURCE": "payments",
    }
    for key, value in values.items():
        monkeypatch.setenv(key, value)


def test_memory_store_needs_no_connection_settings():
    assert settings_module.collect_missing_required_env_vars() == []
    assert settings_module.collect_invalid_env_values() == []


def test_collect_missing_required_env_vars_for_mongodb(monkeypatch: pytest.MonkeyPatch):
    _set_minimal_valid_env(monkeypatch)
    monkeypatch.delenv("MONGO_URL", raising=False)
    monkeypatch.setenv("DB_NAME", "   ")

    missing = settings_module.collect_missing_required_env_vars()

    assert missing == ["DB_NAME", "MONGO_URL"]


def test_collect_invalid_env_values_reports_each_bad_value(monkeypatch: pytest.MonkeyPatch):
    _set_minimal_valid_env(monkeypatch)
    monkeypatch.setenv("REFUND_STATUS_POLICY", "delete_payment")
    monkeypatch.setenv("PAYMENT_MAX_AMOUNT", "-10")
    monkeypatch.setenv("PAYMENT_DEFAULT_CURRENCY", "dollars")
    monkeypatch.setenv("FRAUD_VELOCITY_THRESHOLD", "0")
    monkeypatch.setenv("PROCESSOR_TIMEOUT_SECONDS", "soon")

    invalid = settings_module.collect_invalid_env_values()

    assert "REFUND_STATUS_POLICY must be one of: keep_completed, mark_refunded" in invalid
    assert "PAYMENT_MAX_AMOUNT must be a positive number" in invalid
    assert "PAYMENT_DEFAULT_CURRENCY must be a 3-letter currency code" in invalid
    assert "FRAUD_VELOCITY_THRESHOLD must be a positive integer" in invalid
    assert "PROCESSOR_TIMEOUT_SECONDS must be a positive number" in invalid


def test_validate_required_environment_raises_with_missing_and_invalid_values(
    monkeypatch: pytest.MonkeyPatch,
):
    _set_minimal_valid_env(monkeypatch)
    monkeypatch.setenv("FRAUD_HISTORY_SOURCE", "crystal_ball")
    monkeypatch.setenv("PROCESSOR_LATENCY_SCALE", "-1")
    monkeypatch.delenv("MONGO_URL", raising=False)

    with pytest.raises(RuntimeError) as exc_info:
        settings_module.validate_required_environment()

    message = str(exc_info.value)
    assert message.startswith("Payment service startup blocked by invalid environment configuration.")
    assert "Missing required environment variables" in message
    assert "- MONGO_URL" in message
    assert "Invalid environment values" in message
    assert "FRAUD_HISTORY_SOURCE must be one of" in message
    assert "PROCESSOR_LATENCY_SCALE must be a non-negative number" in message


def test_get_settings_parses_typed_values(monkeypatch: pytest.MonkeyPatch):
    _set_minimal_valid_env(monkeypatch)
    monkeypatch.setenv("PAYMENT_MAX_AMOUNT", "2500.50")
    monkeypatch.setenv("PAYMENT_MIN_FEE", "0")
    monkeypatch.setenv("PAYMENT_DEFAULT_CURRENCY", "ngn")
    monkeypatch.setenv("PROCESSOR_TIMEOUT_SECONDS", "2.5")
    monkeypatch.setenv("REFUND_STATUS_POLICY", "MARK_REFUNDED")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = settings_module.get_settings()

    assert settings.db_type == "mongodb"
    assert settings.payment_max_amount == Decimal("2500.50")
    assert settings.payment_min_fee == Decimal("0")
    assert settings.payment_default_currency == "NGN"
    assert settings.processor_timeout_seconds == 2.5
    assert settings.refund_status_policy == "mark_refunded"
    assert settings.fraud_history_source == "payments"
    assert settings.log_level == "DEBUG"


def test_get_settings_defaults():
    settings = settings_module.get_settings()

    assert settings.db_type == "memory"
    assert settings.payment_max_amount == Decimal("5000")
    assert settings.payment_min_fee == Decimal("0.30")
    assert settings.refund_status_policy == "keep_completed"
    assert settings.fraud_velocity_threshold == 5
    assert settings.is_production is False


def test_production_rejects_in_memory_store(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("ENV", "production")

    with pytest.raises(RuntimeError) as exc_info:
        settings_module.get_settings()

    assert "DB_TYPE=memory is not allowed" in str(exc_info.value)
