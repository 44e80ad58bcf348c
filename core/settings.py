from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()

SUPPORTED_DB_TYPES = {"memory", "mongodb"}
SUPPORTED_REFUND_STATUS_POLICIES = {"keep_completed", "mark_refunded"}
SUPPORTED_FRAUD_HISTORY_SOURCES = {"random", "payments"}
SUPPORTED_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _env(name: str) -> str | None:
    raw_value = os.getenv(name)
    if raw_value is None:
        return None
    normalized = raw_value.strip()
    return normalized or None


def _is_positive_decimal(value: str, *, allow_zero: bool = False) -> bool:
    try:
        parsed = Decimal(value)
    except InvalidOperation:
        return False
    if not parsed.is_finite():
        return False
    return parsed >= 0 if allow_zero else parsed > 0


def _is_positive_int(value: str) -> bool:
    try:
        return int(value) > 0
    except ValueError:
        return False


def collect_missing_required_env_vars() -> list[str]:
    missing: list[str] = []

    db_type = (_env("DB_TYPE") or "memory").lower()
    if db_type == "mongodb":
        if _env("MONGO_URL") is None:
            missing.append("MONGO_URL")
        if _env("DB_NAME") is None:
            missing.append("DB_NAME")

    return sorted(set(missing))


def collect_invalid_env_values() -> list[str]:
    invalid_values: list[str] = []

    db_type = (_env("DB_TYPE") or "memory").lower()
    if db_type not in SUPPORTED_DB_TYPES:
        invalid_values.append("DB_TYPE must be one of: memory, mongodb")

    log_level = (_env("LOG_LEVEL") or "INFO").upper()
    if log_level not in SUPPORTED_LOG_LEVELS:
        invalid_values.append("LOG_LEVEL must be one of: DEBUG, INFO, WARNING, ERROR, CRITICAL")

    refund_policy = (_env("REFUND_STATUS_POLICY") or "keep_completed").lower()
    if refund_policy not in SUPPORTED_REFUND_STATUS_POLICIES:
        invalid_values.append("REFUND_STATUS_POLICY must be one of: keep_completed, mark_refunded")

    history_source = (_env("FRAUD_HISTORY_SOURCE") or "random").lower()
    if history_source not in SUPPORTED_FRAUD_HISTORY_SOURCES:
        invalid_values.append("FRAUD_HISTORY_SOURCE must be one of: random, payments")

    max_amount = _env("PAYMENT_MAX_AMOUNT")
    if max_amount is not None and not _is_positive_decimal(max_amount):
        invalid_values.append("PAYMENT_MAX_AMOUNT must be a positive number")

    min_fee = _env("PAYMENT_MIN_FEE")
    if min_fee is not None and not _is_positive_decimal(min_fee, allow_zero=True):
        invalid_values.append("PAYMENT_MIN_FEE must be a non-negative number")

    currency = _env("PAYMENT_DEFAULT_CURRENCY")
    if currency is not None and (len(currency) != 3 or not currency.isalpha()):
        invalid_values.append("PAYMENT_DEFAULT_CURRENCY must be a 3-letter currency code")

    timeout = _env("PROCESSOR_TIMEOUT_SECONDS")
    if timeout is not None and not _is_positive_decimal(timeout):
        invalid_values.append("PROCESSOR_TIMEOUT_SECONDS must be a positive number")

    latency_scale = _env("PROCESSOR_LATENCY_SCALE")
    if latency_scale is not None and not _is_positive_decimal(latency_scale, allow_zero=True):
        invalid_values.append("PROCESSOR_LATENCY_SCALE must be a non-negative number")

    for var_name in ("FRAUD_VELOCITY_WINDOW_SECONDS", "FRAUD_VELOCITY_THRESHOLD"):
        value = _env(var_name)
        if value is not None and not _is_positive_int(value):
            invalid_values.append(f"{var_name} must be a positive integer")

    return invalid_values


def validate_required_environment() -> None:
    missing_vars = collect_missing_required_env_vars()
    invalid_values = collect_invalid_env_values()
    if not missing_vars and not invalid_values:
        return

    message_lines = ["Payment service startup blocked by invalid environment configuration."]
    if missing_vars:
        message_lines.append("")
        message_lines.append("Missing required environment variables:")
        message_lines.extend(f"- {name}" for name in missing_vars)
    if invalid_values:
        message_lines.append("")
        message_lines.append("Invalid environment values:")
        message_lines.extend(f"- {message}" for message in invalid_values)
    raise RuntimeError("\n".join(message_lines))


@dataclass(frozen=True)
class Settings:
    env: str = "development"
    log_level: str = "INFO"
    db_type: str = "memory"
    mongo_url: str | None = None
    db_name: str | None = None
    payment_max_amount: Decimal = Decimal("5000")
    payment_min_fee: Decimal = Decimal("0.30")
    payment_default_currency: str = "USD"
    processor_timeout_seconds: float = 5.0
    processor_latency_scale: float = 1.0
    refund_status_policy: str = "keep_completed"
    fraud_history_source: str = "random"
    fraud_velocity_window_seconds: int = 3600
    fraud_velocity_threshold: int = 5

    @property
    def is_production(self) -> bool:
        return self.env.lower() == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    validate_required_environment()

    settings = Settings(
        env=os.getenv("ENV", "development"),
        log_level=(_env("LOG_LEVEL") or "INFO").upper(),
        db_type=(_env("DB_TYPE") or "memory").lower(),
        mongo_url=_env("MONGO_URL"),
        db_name=_env("DB_NAME"),
        payment_max_amount=Decimal(_env("PAYMENT_MAX_AMOUNT") or "5000"),
        payment_min_fee=Decimal(_env("PAYMENT_MIN_FEE") or "0.30"),
        payment_default_currency=(_env("PAYMENT_DEFAULT_CURRENCY") or "USD").upper(),
        processor_timeout_seconds=float(_env("PROCESSOR_TIMEOUT_SECONDS") or "5"),
        processor_latency_scale=float(_env("PROCESSOR_LATENCY_SCALE") or "1"),
        refund_status_policy=(_env("REFUND_STATUS_POLICY") or "keep_completed").lower(),
        fraud_history_source=(_env("FRAUD_HISTORY_SOURCE") or "random").lower(),
        fraud_velocity_window_seconds=int(_env("FRAUD_VELOCITY_WINDOW_SECONDS") or "3600"),
        fraud_velocity_threshold=int(_env("FRAUD_VELOCITY_THRESHOLD") or "5"),
    )

    if settings.is_production and settings.db_type == "memory":
        raise RuntimeError("DB_TYPE=memory is not allowed when ENV=production")

    return settings
