from __future__ import annotations

from decimal import Decimal
from typing import Annotated, Any

from bson import Decimal128, ObjectId
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator

from core.payments.types import (
    FraudRiskLevel,
    PaymentMethodType,
    PaymentStatus,
    RefundStatus,
    TransactionType,
)


def _coerce_decimal(value: Any) -> Any:
    if isinstance(value, Decimal128):
        return value.to_decimal()
    if isinstance(value, float):
        return Decimal(str(value))
    return value


Money = Annotated[Decimal, BeforeValidator(_coerce_decimal)]


class _StoredModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str | None = Field(default=None, alias="_id")

    @model_validator(mode="before")
    @classmethod
    def convert_objectid(cls, values):
        if isinstance(values, dict) and "_id" in values and isinstance(values["_id"], ObjectId):
            values["_id"] = str(values["_id"])
        return values


class ProcessPaymentIn(BaseModel):
    trip_id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    driver_id: str = Field(min_length=1)
    amount: Money = Field(gt=0)
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    payment_method_id: str = Field(min_length=1)
    description: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    idempotency_key: str | None = Field(default=None, min_length=1, max_length=255)


class RefundPaymentIn(BaseModel):
    payment_id: str = Field(min_length=1)
    amount: Money = Field(gt=0)
    reason: str = Field(min_length=1)
    requested_by: str = Field(min_length=1)


class AddPaymentMethodIn(BaseModel):
    user_id: str = Field(min_length=1)
    type: PaymentMethodType
    details: dict[str, Any] = Field(default_factory=dict)
    is_default: bool = False


class PaymentMethodCreate(BaseModel):
    user_id: str
    type: PaymentMethodType
    details: dict[str, Any]
    fingerprint: str
    last_four_digits: str | None = None
    bank_name: str | None = None
    wallet_provider: str | None = None
    is_default: bool = False
    created_at: int
    updated_at: int


class PaymentMethodOut(_StoredModel, PaymentMethodCreate):
    pass


class PaymentCreate(BaseModel):
    trip_id: str
    user_id: str
    driver_id: str
    amount: Money
    currency: str
    payment_method: PaymentMethodType
    payment_method_id: str
    status: PaymentStatus = PaymentStatus.PENDING
    transaction_type: TransactionType = TransactionType.PAYMENT
    fraud_risk: FraudRiskLevel | None = None
    fraud_scores: dict[str, float] = Field(default_factory=dict)
    processor_response: str | None = None
    processing_fee: Money = Decimal("0")
    failure_reason: str | None = None
    refunded_amount: Money = Decimal("0")
    idempotency_key: str | None = None
    description: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: int
    updated_at: int
    processed_at: int | None = None


class PaymentOut(_StoredModel, PaymentCreate):
    @property
    def refundable_amount(self) -> Decimal:
        return self.amount - self.refunded_amount


class PaymentStatusDetail(BaseModel):
    """Fields written together with a status transition."""

    failure_reason: str | None = None
    processor_response: str | None = None
    processing_fee: Money | None = None
    processed_at: int | None = None


class RefundCreate(BaseModel):
    payment_id: str
    amount: Money
    reason: str
    requested_by: str
    status: RefundStatus = RefundStatus.PENDING
    transaction_type: TransactionType = TransactionType.REFUND
    processor_response: str | None = None
    created_at: int
    processed_at: int | None = None


class RefundOut(_StoredModel, RefundCreate):
    pass


class PaymentResponse(BaseModel):
    payment: PaymentOut | None = None
    success: bool
    message: str
    errors: list[str] = Field(default_factory=list)


class RefundResponse(BaseModel):
    payment: PaymentOut | None = None
    refund: RefundOut | None = None
    success: bool
    message: str
    errors: list[str] = Field(default_factory=list)


class PaymentMethodResponse(BaseModel):
    payment_method: PaymentMethodOut | None = None
    success: bool
    message: str
    errors: list[str] = Field(default_factory=list)


class PaymentStats(BaseModel):
    total_payments: int = 0
    by_status: dict[str, int] = Field(default_factory=dict)
    by_method: dict[str, int] = Field(default_factory=dict)
    fraud_blocked: int = 0
    completed_volume: Money = Decimal("0")
    refunded_volume: Money = Decimal("0")
