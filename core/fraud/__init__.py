from core.fraud.engine import FraudDetectionEngine
from core.fraud.history import HistoryProvider, PaymentHistoryProvider, RandomHistoryProvider
from core.fraud.types import FraudDetectionResult

__all__ = [
    "FraudDetectionEngine",
    "FraudDetectionResult",
    "HistoryProvider",
    "PaymentHistoryProvider",
    "RandomHistoryProvider",
]
