from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum


class PaymentMethodType(str, Enum):
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    DIGITAL_WALLET = "digital_wallet"
    BANK_TRANSFER = "bank_transfer"
    CASH = "cash"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class RefundStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class TransactionType(str, Enum):
    PAYMENT = "payment"
    REFUND = "refund"


class FraudRiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RefundStatusPolicy(str, Enum):
    KEEP_COMPLETED = "keep_completed"
    MARK_REFUNDED = "mark_refunded"


CARD_METHOD_TYPES = frozenset({PaymentMethodType.CREDIT_CARD, PaymentMethodType.DEBIT_CARD})

# Allowed status moves; anything missing here is rejected by the stores.
PAYMENT_STATUS_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.PROCESSING, PaymentStatus.FAILED}),
    PaymentStatus.PROCESSING: frozenset({PaymentStatus.COMPLETED, PaymentStatus.FAILED}),
    PaymentStatus.COMPLETED: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.FAILED: frozenset(),
    PaymentStatus.REFUNDED: frozenset(),
}

REFUND_STATUS_TRANSITIONS: dict[RefundStatus, frozenset[RefundStatus]] = {
    RefundStatus.PENDING: frozenset({RefundStatus.COMPLETED, RefundStatus.FAILED}),
    RefundStatus.COMPLETED: frozenset(),
    RefundStatus.FAILED: frozenset(),
}


def payment_statuses_allowing(target: PaymentStatus) -> list[str]:
    return [source.value for source, targets in PAYMENT_STATUS_TRANSITIONS.items() if target in targets]


def refund_statuses_allowing(target: RefundStatus) -> list[str]:
    return [source.value for source, targets in REFUND_STATUS_TRANSITIONS.items() if target in targets]


@dataclass(frozen=True)
class ProcessorResponse:
    success: bool
    transaction_id: str
    processor_id: str
    response_code: str
    response_message: str
    processing_fee: Decimal = Decimal("0")
    authorization_code: str | None = None

    def summary(self) -> str:
        return f"Code: {self.response_code}, Message: {self.response_message}, TxnID: {self.transaction_id}"


@dataclass(frozen=True)
class ProcessorProfile:
    """Calibration knobs for a simulated processor backend.

    Latencies are in seconds; rates are probabilities in [0, 1].
    """

    processor_id: str
    payment_latency: float
    refund_latency: float
    verify_latency: float
    payment_failure_rate: float
    refund_failure_rate: float
    fee_rate: Decimal
    verification_failure_rate: float = 0.0
