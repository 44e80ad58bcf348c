from __future__ import annotations

from dataclasses import dataclass, field

from core.payments.types import FraudRiskLevel


@dataclass(frozen=True)
class FraudDetectionResult:
    transaction_id: str | None
    risk_score: float
    risk_level: FraudRiskLevel
    scores: dict[str, float] = field(default_factory=dict)
    reasons: list[str] = field(default_factory=list)
    requires_review: bool = False
