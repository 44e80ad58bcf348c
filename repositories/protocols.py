from __future__ import annotations

from decimal import Decimal
from typing import Protocol

from core.payments.types import FraudRiskLevel, PaymentStatus, RefundStatus
from schemas.payment_schema import (
    PaymentCreate,
    PaymentMethodCreate,
    PaymentMethodOut,
    PaymentOut,
    PaymentStats,
    PaymentStatusDetail,
    RefundCreate,
    RefundOut,
)


class PaymentMethodRepository(Protocol):
    async def create_payment_method(self, payload: PaymentMethodCreate) -> PaymentMethodOut:
        ...

    async def get_payment_method(self, method_id: str) -> PaymentMethodOut | None:
        ...

    async def get_user_payment_methods(self, user_id: str) -> list[PaymentMethodOut]:
        ...

    async def get_payment_method_by_fingerprint(self, user_id: str, fingerprint: str) -> PaymentMethodOut | None:
        ...

    async def set_default_payment_method(self, user_id: str, method_id: str) -> PaymentMethodOut:
        ...


class PaymentRepository(Protocol):
    async def create_payment(self, payload: PaymentCreate) -> PaymentOut:
        ...

    async def get_payment(self, payment_id: str) -> PaymentOut | None:
        ...

    async def get_payment_by_idempotency_key(self, user_id: str, idempotency_key: str) -> PaymentOut | None:
        ...

    async def update_payment_status(
        self,
        payment_id: str,
        status: PaymentStatus,
        detail: PaymentStatusDetail | None = None,
    ) -> PaymentOut:
        ...

    async def record_fraud_assessment(
        self,
        payment_id: str,
        risk_level: FraudRiskLevel,
        scores: dict[str, float],
    ) -> PaymentOut:
        ...

    async def reserve_refund_amount(self, payment_id: str, amount: Decimal) -> PaymentOut | None:
        ...

    async def release_refund_amount(self, payment_id: str, amount: Decimal) -> PaymentOut:
        ...

    async def get_payments_by_user(self, user_id: str, limit: int, offset: int) -> list[PaymentOut]:
        ...

    async def get_payments_by_trip(self, trip_id: str) -> list[PaymentOut]:
        ...

    async def get_recent_payments_by_user(self, user_id: str, *, since: int, limit: int = 50) -> list[PaymentOut]:
        ...

    async def summarize_payments(self) -> PaymentStats:
        ...


class RefundRepository(Protocol):
    async def create_refund(self, payload: RefundCreate) -> RefundOut:
        ...

    async def get_refund(self, refund_id: str) -> RefundOut | None:
        ...

    async def get_refunds_by_payment(self, payment_id: str) -> list[RefundOut]:
        ...

    async def update_refund_status(
        self,
        refund_id: str,
        status: RefundStatus,
        *,
        processor_response: str | None = None,
        processed_at: int | None = None,
    ) -> RefundOut:
        ...
