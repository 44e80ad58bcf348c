"""
In-memory payment stores.

Used for local development (``DB_TYPE=memory``) and tests. Every mutation runs
under one ``asyncio.Lock`` per store and callers always receive copies, so the
same status guards as the MongoDB stores hold within a single event loop.
"""
from __future__ import annotations

import asyncio
from decimal import Decimal
from typing import Iterable

from bson import ObjectId

from core.errors import duplicate_request, resource_not_found, state_conflict
from core.payments.types import (
    PAYMENT_STATUS_TRANSITIONS,
    REFUND_STATUS_TRANSITIONS,
    FraudRiskLevel,
    PaymentStatus,
    RefundStatus,
)
from repositories.document_codec import epoch
from repositories.payment_repo import accumulate_stats
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


def _new_id() -> str:
    return str(ObjectId())


def _newest_first(rows: Iterable[PaymentOut]) -> list[PaymentOut]:
    return sorted(reversed(list(rows)), key=lambda row: row.created_at, reverse=True)


class InMemoryPaymentMethodRepository:
    def __init__(self) -> None:
        self._methods: dict[str, PaymentMethodOut] = {}
        self._lock = asyncio.Lock()

    async def create_payment_method(self, payload: PaymentMethodCreate) -> PaymentMethodOut:
        async with self._lock:
            for method in self._methods.values():
                if method.user_id == payload.user_id and method.fingerprint == payload.fingerprint:
                    raise duplicate_request("PaymentMethod", payload.fingerprint)
            method = PaymentMethodOut(id=_new_id(), **payload.model_dump())
            self._methods[method.id] = method  # type: ignore[index]
            return method.model_copy(deep=True)

    async def get_payment_method(self, method_id: str) -> PaymentMethodOut | None:
        method = self._methods.get(method_id)
        return method.model_copy(deep=True) if method else None

    async def get_user_payment_methods(self, user_id: str) -> list[PaymentMethodOut]:
        return [method.model_copy(deep=True) for method in self._methods.values() if method.user_id == user_id]

    async def get_payment_method_by_fingerprint(self, user_id: str, fingerprint: str) -> PaymentMethodOut | None:
        for method in self._methods.values():
            if method.user_id == user_id and method.fingerprint == fingerprint:
                return method.model_copy(deep=True)
        return None

    async def set_default_payment_method(self, user_id: str, method_id: str) -> PaymentMethodOut:
        async with self._lock:
            target = self._methods.get(method_id)
            if target is None or target.user_id != user_id:
                raise resource_not_found("PaymentMethod", method_id)
            now = epoch()
            for method in self._methods.values():
                if method.user_id == user_id and method.is_default and method.id != method_id:
                    method.is_default = False
                    method.updated_at = now
            target.is_default = True
            target.updated_at = now
            return target.model_copy(deep=True)


class InMemoryPaymentRepository:
    def __init__(self) -> None:
        self._payments: dict[str, PaymentOut] = {}
        self._lock = asyncio.Lock()

    def _require(self, payment_id: str) -> PaymentOut:
        payment = self._payments.get(payment_id)
        if payment is None:
            raise resource_not_found("Payment", payment_id)
        return payment

    async def create_payment(self, payload: PaymentCreate) -> PaymentOut:
        async with self._lock:
            if payload.idempotency_key is not None:
                for payment in self._payments.values():
                    if payment.user_id == payload.user_id and payment.idempotency_key == payload.idempotency_key:
                        raise duplicate_request("Payment", payload.idempotency_key)
            payment = PaymentOut(id=_new_id(), **payload.model_dump())
            self._payments[payment.id] = payment  # type: ignore[index]
            return payment.model_copy(deep=True)

    async def get_payment(self, payment_id: str) -> PaymentOut | None:
        payment = self._payments.get(payment_id)
        return payment.model_copy(deep=True) if payment else None

    async def get_payment_by_idempotency_key(self, user_id: str, idempotency_key: str) -> PaymentOut | None:
        for payment in self._payments.values():
            if payment.user_id == user_id and payment.idempotency_key == idempotency_key:
                return payment.model_copy(deep=True)
        return None

    async def update_payment_status(
        self,
        payment_id: str,
        status: PaymentStatus,
        detail: PaymentStatusDetail | None = None,
    ) -> PaymentOut:
        async with self._lock:
            payment = self._require(payment_id)
            if status not in PAYMENT_STATUS_TRANSITIONS[payment.status]:
                raise state_conflict("Payment", payment_id, payment.status.value, status.value)
            payment.status = status
            payment.updated_at = epoch()
            if detail is not None:
                for field_name, value in detail.model_dump(exclude_none=True).items():
                    setattr(payment, field_name, value)
            return payment.model_copy(deep=True)

    async def record_fraud_assessment(
        self,
        payment_id: str,
        risk_level: FraudRiskLevel,
        scores: dict[str, float],
    ) -> PaymentOut:
        async with self._lock:
            payment = self._require(payment_id)
            payment.fraud_risk = risk_level
            payment.fraud_scores = dict(scores)
            payment.updated_at = epoch()
            return payment.model_copy(deep=True)

    async def reserve_refund_amount(self, payment_id: str, amount: Decimal) -> PaymentOut | None:
        async with self._lock:
            payment = self._payments.get(payment_id)
            if payment is None or payment.status != PaymentStatus.COMPLETED:
                return None
            if payment.refunded_amount + amount > payment.amount:
                return None
            payment.refunded_amount += amount
            payment.updated_at = epoch()
            return payment.model_copy(deep=True)

    async def release_refund_amount(self, payment_id: str, amount: Decimal) -> PaymentOut:
        async with self._lock:
            payment = self._require(payment_id)
            payment.refunded_amount -= amount
            payment.updated_at = epoch()
            return payment.model_copy(deep=True)

    async def get_payments_by_user(self, user_id: str, limit: int, offset: int) -> list[PaymentOut]:
        rows = _newest_first(payment for payment in self._payments.values() if payment.user_id == user_id)
        return [row.model_copy(deep=True) for row in rows[offset : offset + limit]]

    async def get_payments_by_trip(self, trip_id: str) -> list[PaymentOut]:
        rows = _newest_first(payment for payment in self._payments.values() if payment.trip_id == trip_id)
        return [row.model_copy(deep=True) for row in rows]

    async def get_recent_payments_by_user(self, user_id: str, *, since: int, limit: int = 50) -> list[PaymentOut]:
        rows = _newest_first(
            payment
            for payment in self._payments.values()
            if payment.user_id == user_id and payment.created_at >= since
        )
        return [row.model_copy(deep=True) for row in rows[:limit]]

    async def summarize_payments(self) -> PaymentStats:
        stats = PaymentStats()
        for payment in self._payments.values():
            accumulate_stats(
                stats,
                status=payment.status.value,
                method=payment.payment_method.value,
                fraud_risk=payment.fraud_risk.value if payment.fraud_risk else None,
                count=1,
                volume=payment.amount,
                refunded=payment.refunded_amount,
            )
        return stats


class InMemoryRefundRepository:
    def __init__(self) -> None:
        self._refunds: dict[str, RefundOut] = {}
        self._lock = asyncio.Lock()

    async def create_refund(self, payload: RefundCreate) -> RefundOut:
        async with self._lock:
            refund = RefundOut(id=_new_id(), **payload.model_dump())
            self._refunds[refund.id] = refund  # type: ignore[index]
            return refund.model_copy(deep=True)

    async def get_refund(self, refund_id: str) -> RefundOut | None:
        refund = self._refunds.get(refund_id)
        return refund.model_copy(deep=True) if refund else None

    async def get_refunds_by_payment(self, payment_id: str) -> list[RefundOut]:
        return [refund.model_copy(deep=True) for refund in self._refunds.values() if refund.payment_id == payment_id]

    async def update_refund_status(
        self,
        refund_id: str,
        status: RefundStatus,
        *,
        processor_response: str | None = None,
        processed_at: int | None = None,
    ) -> RefundOut:
        async with self._lock:
            refund = self._refunds.get(refund_id)
            if refund is None:
                raise resource_not_found("Refund", refund_id)
            if status not in REFUND_STATUS_TRANSITIONS[refund.status]:
                raise state_conflict("Refund", refund_id, refund.status.value, status.value)
            refund.status = status
            if processor_response is not None:
                refund.processor_response = processor_response
            if processed_at is not None:
                refund.processed_at = processed_at
            return refund.model_copy(deep=True)
