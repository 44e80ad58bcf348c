from __future__ import annotations

from decimal import Decimal

# (exclusive lower bound, score), checked top to bottom
AMOUNT_SCORE_BANDS: tuple[tuple[Decimal, float], ...] = (
    (Decimal("1000"), 0.9),
    (Decimal("500"), 0.7),
    (Decimal("100"), 0.4),
)
AMOUNT_BASE_SCORE = 0.1

LATE_NIGHT_HOURS = frozenset({2, 3, 4, 5})
LATE_NIGHT_SCORE = 0.8
EVENING_HOURS = frozenset({22, 23, 0, 1})
EVENING_SCORE = 0.5
DAYTIME_SCORE = 0.1

VELOCITY_CEILING = 0.6
LOCATION_CEILING = 0.5

FACTOR_WEIGHTS: dict[str, float] = {
    "amount": 0.3,
    "time": 0.2,
    "velocity": 0.3,
    "location": 0.2,
}

HIGH_RISK_THRESHOLD = 0.8
MEDIUM_RISK_THRESHOLD = 0.5
REASON_THRESHOLD = 0.7

FACTOR_REASONS: dict[str, str] = {
    "amount": "Unusually high transaction amount",
    "time": "Transaction during suspicious hours",
    "velocity": "High transaction frequency",
    "location": "Suspicious location",
}
