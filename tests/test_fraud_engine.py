from __future__ import annotations

import random
from datetime import datetime
from decimal import Decimal

import pytest

from core.fraud import FraudDetectionEngine, PaymentHistoryProvider, RandomHistoryProvider
from core.fraud import rules
from core.fraud.engine import classify, score_amount, score_time
from core.payments.types import FraudRiskLevel, PaymentMethodType, PaymentStatus
from repositories.memory_repo import InMemoryPaymentRepository
from schemas.payment_schema import PaymentCreate, PaymentOut

NOW = 1_760_000_000


class _FixedHistory:
    def __init__(self, velocity: float, location: float) -> None:
        self.velocity = velocity
        self.location = location

    async def velocity_signal(self, payment: PaymentOut) -> float:
        return self.velocity

    async def location_signal(self, payment: PaymentOut) -> float:
        return self.location


def _clock(hour: int):
    return lambda: datetime(2026, 10, 18, hour, 15)


def _payment_create(*, amount: str = "25.00", user_id: str = "rider-1", created_at: int = NOW, **overrides) -> PaymentCreate:
    payload = {
        "trip_id": "trip-1",
        "user_id": user_id,
        "driver_id": "driver-1",
        "amount": Decimal(amount),
        "currency": "USD",
        "payment_method": PaymentMethodType.CREDIT_CARD,
        "payment_method_id": "method-1",
        "status": PaymentStatus.PENDING,
        "created_at": created_at,
        "updated_at": created_at,
    }
    payload.update(overrides)
    return PaymentCreate(**payload)


def _payment(**overrides) -> PaymentOut:
    return PaymentOut(id="payment-1", **_payment_create(**overrides).model_dump())


@pytest.mark.parametrize(
    ("amount", "expected"),
    [
        ("1500", 0.9),
        ("1000.01", 0.9),
        ("1000", 0.7),
        ("500.01", 0.7),
        ("500", 0.4),
        ("100.01", 0.4),
        ("100", 0.1),
        ("3.50", 0.1),
    ],
)
def test_score_amount_bands(amount: str, expected: float):
    assert score_amount(Decimal(amount)) == expected


@pytest.mark.parametrize(
    ("hour", "expected"),
    [(2, 0.8), (5, 0.8), (6, 0.1), (12, 0.1), (21, 0.1), (22, 0.5), (0, 0.5), (1, 0.5)],
)
def test_score_time_windows(hour: int, expected: float):
    assert score_time(hour) == expected


def test_classify_thresholds():
    assert classify(0.8) == FraudRiskLevel.HIGH
    assert classify(0.5) == FraudRiskLevel.MEDIUM
    assert classify(0.4999) == FraudRiskLevel.LOW


@pytest.mark.asyncio
async def test_low_risk_daytime_ride():
    engine = FraudDetectionEngine(_FixedHistory(0.0, 0.0), clock=_clock(12))

    result = await engine.analyze_transaction(_payment(amount="18.40"))

    assert result.transaction_id == "payment-1"
    assert result.risk_score == pytest.approx(0.05)
    assert result.risk_level == FraudRiskLevel.LOW
    assert result.reasons == []
    assert result.requires_review is False
    assert result.scores == {"amount": 0.1, "time": 0.1, "velocity": 0.0, "location": 0.0}


@pytest.mark.asyncio
async def test_large_late_night_payment_is_flagged_for_review():
    engine = FraudDetectionEngine(_FixedHistory(1.0, 1.0), clock=_clock(3))

    result = await engine.analyze_transaction(_payment(amount="1500"))

    assert result.risk_score == pytest.approx(0.71)
    assert result.risk_level == FraudRiskLevel.MEDIUM
    assert result.requires_review is True
    assert result.reasons == [rules.FACTOR_REASONS["amount"], rules.FACTOR_REASONS["time"]]


@pytest.mark.asyncio
async def test_out_of_range_signals_are_clamped():
    engine = FraudDetectionEngine(_FixedHistory(3.0, -2.0), clock=_clock(12))

    result = await engine.analyze_transaction(_payment())

    assert result.scores["velocity"] == pytest.approx(rules.VELOCITY_CEILING)
    assert result.scores["location"] == 0.0


@pytest.mark.asyncio
async def test_built_in_factors_stay_below_high_threshold():
    engine = FraudDetectionEngine(_FixedHistory(1.0, 1.0), clock=_clock(4))

    result = await engine.analyze_transaction(_payment(amount="4999"))

    assert result.risk_score < rules.HIGH_RISK_THRESHOLD
    assert 0.0 <= result.risk_score <= 1.0


@pytest.mark.asyncio
async def test_random_history_is_reproducible_with_seed():
    payment = _payment()
    first = FraudDetectionEngine(RandomHistoryProvider(random.Random(7)), clock=_clock(12))
    second = FraudDetectionEngine(RandomHistoryProvider(random.Random(7)), clock=_clock(12))

    assert (await first.analyze_transaction(payment)) == (await second.analyze_transaction(payment))


@pytest.mark.asyncio
async def test_payment_history_velocity_counts_other_recent_payments():
    repo = InMemoryPaymentRepository()
    for offset in range(3):
        await repo.create_payment(_payment_create(created_at=NOW - 60 * offset))
    await repo.create_payment(_payment_create(created_at=NOW - 7200))
    await repo.create_payment(_payment_create(user_id="rider-2"))
    current = await repo.create_payment(_payment_create())

    history = PaymentHistoryProvider(repo, window_seconds=3600, velocity_threshold=5, clock=lambda: NOW)

    assert await history.velocity_signal(current) == pytest.approx(3 / 5)


@pytest.mark.asyncio
async def test_payment_history_velocity_saturates_at_one():
    repo = InMemoryPaymentRepository()
    for _ in range(4):
        await repo.create_payment(_payment_create())
    current = await repo.create_payment(_payment_create())

    history = PaymentHistoryProvider(repo, velocity_threshold=2, clock=lambda: NOW)

    assert await history.velocity_signal(current) == 1.0


@pytest.mark.asyncio
async def test_payment_history_location_flags_new_origin_country():
    repo = InMemoryPaymentRepository()
    await repo.create_payment(_payment_create(metadata={"origin_country": "US"}))
    unseen = await repo.create_payment(_payment_create(metadata={"origin_country": "NG"}))
    seen = await repo.create_payment(_payment_create(metadata={"origin_country": "US"}))
    no_origin = await repo.create_payment(_payment_create())

    history = PaymentHistoryProvider(repo, clock=lambda: NOW)

    assert await history.location_signal(unseen) == 1.0
    assert await history.location_signal(seen) == 0.0
    assert await history.location_signal(no_origin) == 0.0


@pytest.mark.asyncio
async def test_payment_history_location_ignores_first_payment():
    repo = InMemoryPaymentRepository()
    first = await repo.create_payment(_payment_create(metadata={"origin_country": "KE"}))

    history = PaymentHistoryProvider(repo, clock=lambda: NOW)

    assert await history.location_signal(first) == 0.0
