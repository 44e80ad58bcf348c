from core.payments.manager import ProcessorRegistry
from core.payments.types import (
    FraudRiskLevel,
    PaymentMethodType,
    PaymentStatus,
    ProcessorProfile,
    ProcessorResponse,
    RefundStatus,
    RefundStatusPolicy,
    TransactionType,
)

__all__ = [
    "FraudRiskLevel",
    "PaymentMethodType",
    "PaymentStatus",
    "ProcessorProfile",
    "ProcessorRegistry",
    "ProcessorResponse",
    "RefundStatus",
    "RefundStatusPolicy",
    "TransactionType",
]
