from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Callable

import structlog

from core.fraud import rules
from core.fraud.history import HistoryProvider
from core.fraud.types import FraudDetectionResult
from core.payments.types import FraudRiskLevel

if TYPE_CHECKING:
    from schemas.payment_schema import PaymentOut

logger = structlog.get_logger(__name__)


def _clamp(value: float) -> float:
    return min(max(float(value), 0.0), 1.0)


def score_amount(amount: Decimal) -> float:
    for lower_bound, score in rules.AMOUNT_SCORE_BANDS:
        if amount > lower_bound:
            return score
    return rules.AMOUNT_BASE_SCORE


def score_time(hour: int) -> float:
    if hour in rules.LATE_NIGHT_HOURS:
        return rules.LATE_NIGHT_SCORE
    if hour in rules.EVENING_HOURS:
        return rules.EVENING_SCORE
    return rules.DAYTIME_SCORE


def classify(risk_score: float) -> FraudRiskLevel:
    if risk_score >= rules.HIGH_RISK_THRESHOLD:
        return FraudRiskLevel.HIGH
    if risk_score >= rules.MEDIUM_RISK_THRESHOLD:
        return FraudRiskLevel.MEDIUM
    return FraudRiskLevel.LOW


class FraudDetectionEngine:
    """Weighted multi-factor risk scoring for a pending payment.

    The result depends only on the payment, the injected clock and the
    injected history provider.
    """

    def __init__(
        self,
        history: HistoryProvider,
        *,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._history = history
        self._clock = clock

    async def analyze_transaction(self, payment: PaymentOut) -> FraudDetectionResult:
        scores = {
            "amount": score_amount(payment.amount),
            "time": score_time(self._clock().hour),
            "velocity": _clamp(await self._history.velocity_signal(payment)) * rules.VELOCITY_CEILING,
            "location": _clamp(await self._history.location_signal(payment)) * rules.LOCATION_CEILING,
        }

        risk_score = round(sum(scores[factor] * weight for factor, weight in rules.FACTOR_WEIGHTS.items()), 6)
        risk_level = classify(risk_score)
        reasons = [
            rules.FACTOR_REASONS[factor]
            for factor, score in scores.items()
            if score > rules.REASON_THRESHOLD
        ]

        logger.debug(
            "fraud_analysis_completed",
            payment_id=payment.id,
            risk_score=risk_score,
            risk_level=risk_level.value,
        )
        return FraudDetectionResult(
            transaction_id=payment.id,
            risk_score=risk_score,
            risk_level=risk_level,
            scores=scores,
            reasons=reasons,
            requires_review=risk_level in (FraudRiskLevel.MEDIUM, FraudRiskLevel.HIGH),
        )
