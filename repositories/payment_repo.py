from __future__ import annotations

from decimal import Decimal
from typing import Any

from bson import Decimal128
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from core.errors import duplicate_request, resource_not_found, state_conflict
from core.payments.types import (
    FraudRiskLevel,
    PaymentStatus,
    payment_statuses_allowing,
)
from repositories.document_codec import encode_document, epoch, to_object_id
from schemas.payment_schema import PaymentCreate, PaymentOut, PaymentStats, PaymentStatusDetail

SETTLED_STATUSES = frozenset({PaymentStatus.COMPLETED.value, PaymentStatus.REFUNDED.value})


def accumulate_stats(
    stats: PaymentStats,
    *,
    status: str,
    method: str,
    fraud_risk: str | None,
    count: int,
    volume: Decimal,
    refunded: Decimal,
) -> None:
    stats.total_payments += count
    stats.by_status[status] = stats.by_status.get(status, 0) + count
    stats.by_method[method] = stats.by_method.get(method, 0) + count
    if status == PaymentStatus.FAILED.value and fraud_risk == FraudRiskLevel.HIGH.value:
        stats.fraud_blocked += count
    if status in SETTLED_STATUSES:
        stats.completed_volume += volume
    stats.refunded_volume += refunded


def _as_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal128):
        return value.to_decimal()
    if value is None:
        return Decimal("0")
    return Decimal(str(value))


class MongoPaymentRepository:
    def __init__(self, database) -> None:
        self._collection = database.payments
        self._indexes_ready = False

    async def _ensure_payment_indexes(self) -> None:
        if self._indexes_ready:
            return
        await self._collection.create_index(
            [("user_id", 1), ("created_at", -1)],
            name="idx_payment_user_created",
        )
        await self._collection.create_index("trip_id", name="idx_payment_trip_id")
        await self._collection.create_index(
            [("user_id", 1), ("idempotency_key", 1)],
            name="idx_payment_idempotency_unique",
            unique=True,
            partialFilterExpression={"idempotency_key": {"$type": "string"}},
        )
        self._indexes_ready = True

    async def create_payment(self, payload: PaymentCreate) -> PaymentOut:
        await self._ensure_payment_indexes()
        try:
            result = await self._collection.insert_one(encode_document(payload.model_dump()))
        except DuplicateKeyError as err:
            raise duplicate_request("Payment", payload.idempotency_key or "") from err
        stored = await self._collection.find_one({"_id": result.inserted_id})
        return PaymentOut(**stored)  # type: ignore[arg-type]

    async def get_payment(self, payment_id: str) -> PaymentOut | None:
        await self._ensure_payment_indexes()
        object_id = to_object_id(payment_id)
        if object_id is None:
            return None
        row = await self._collection.find_one({"_id": object_id})
        if row is None:
            return None
        return PaymentOut(**row)

    async def get_payment_by_idempotency_key(self, user_id: str, idempotency_key: str) -> PaymentOut | None:
        await self._ensure_payment_indexes()
        row = await self._collection.find_one({"user_id": user_id, "idempotency_key": idempotency_key})
        if row is None:
            return None
        return PaymentOut(**row)

    async def _raise_missing_or_conflict(self, payment_id: str, requested: str) -> None:
        object_id = to_object_id(payment_id)
        current = await self._collection.find_one({"_id": object_id}, {"status": 1}) if object_id else None
        if current is None:
            raise resource_not_found("Payment", payment_id)
        raise state_conflict("Payment", payment_id, current.get("status"), requested)

    async def update_payment_status(
        self,
        payment_id: str,
        status: PaymentStatus,
        detail: PaymentStatusDetail | None = None,
    ) -> PaymentOut:
        await self._ensure_payment_indexes()
        object_id = to_object_id(payment_id)
        if object_id is None:
            raise resource_not_found("Payment", payment_id)

        changes: dict[str, Any] = {"status": status.value, "updated_at": epoch()}
        if detail is not None:
            changes.update(detail.model_dump(exclude_none=True))

        # The status guard in the filter makes concurrent transitions on one payment mutually exclusive.
        row = await self._collection.find_one_and_update(
            {"_id": object_id, "status": {"$in": payment_statuses_allowing(status)}},
            {"$set": encode_document(changes)},
            return_document=ReturnDocument.AFTER,
        )
        if row is None:
            await self._raise_missing_or_conflict(payment_id, status.value)
        return PaymentOut(**row)  # type: ignore[arg-type]

    async def record_fraud_assessment(
        self,
        payment_id: str,
        risk_level: FraudRiskLevel,
        scores: dict[str, float],
    ) -> PaymentOut:
        await self._ensure_payment_indexes()
        object_id = to_object_id(payment_id)
        row = None
        if object_id is not None:
            row = await self._collection.find_one_and_update(
                {"_id": object_id},
                {"$set": {"fraud_risk": risk_level.value, "fraud_scores": scores, "updated_at": epoch()}},
                return_document=ReturnDocument.AFTER,
            )
        if row is None:
            raise resource_not_found("Payment", payment_id)
        return PaymentOut(**row)

    async def reserve_refund_amount(self, payment_id: str, amount: Decimal) -> PaymentOut | None:
        await self._ensure_payment_indexes()
        object_id = to_object_id(payment_id)
        if object_id is None:
            return None
        increment = Decimal128(amount)
        row = await self._collection.find_one_and_update(
            {
                "_id": object_id,
                "status": PaymentStatus.COMPLETED.value,
                "$expr": {"$lte": [{"$add": ["$refunded_amount", increment]}, "$amount"]},
            },
            {"$inc": {"refunded_amount": increment}, "$set": {"updated_at": epoch()}},
            return_document=ReturnDocument.AFTER,
        )
        if row is None:
            return None
        return PaymentOut(**row)

    async def release_refund_amount(self, payment_id: str, amount: Decimal) -> PaymentOut:
        await self._ensure_payment_indexes()
        object_id = to_object_id(payment_id)
        row = None
        if object_id is not None:
            row = await self._collection.find_one_and_update(
                {"_id": object_id},
                {"$inc": {"refunded_amount": Decimal128(-amount)}, "$set": {"updated_at": epoch()}},
                return_document=ReturnDocument.AFTER,
            )
        if row is None:
            raise resource_not_found("Payment", payment_id)
        return PaymentOut(**row)

    async def get_payments_by_user(self, user_id: str, limit: int, offset: int) -> list[PaymentOut]:
        await self._ensure_payment_indexes()
        cursor = self._collection.find({"user_id": user_id}).sort("created_at", -1).skip(offset).limit(limit)
        return [PaymentOut(**row) async for row in cursor]

    async def get_payments_by_trip(self, trip_id: str) -> list[PaymentOut]:
        await self._ensure_payment_indexes()
        cursor = self._collection.find({"trip_id": trip_id}).sort("created_at", -1)
        return [PaymentOut(**row) async for row in cursor]

    async def get_recent_payments_by_user(self, user_id: str, *, since: int, limit: int = 50) -> list[PaymentOut]:
        await self._ensure_payment_indexes()
        cursor = (
            self._collection.find({"user_id": user_id, "created_at": {"$gte": since}})
            .sort("created_at", -1)
            .limit(limit)
        )
        return [PaymentOut(**row) async for row in cursor]

    async def summarize_payments(self) -> PaymentStats:
        await self._ensure_payment_indexes()
        cursor = await self._collection.aggregate(
            [
                {
                    "$group": {
                        "_id": {"status": "$status", "method": "$payment_method", "fraud_risk": "$fraud_risk"},
                        "count": {"$sum": 1},
                        "volume": {"$sum": "$amount"},
                        "refunded": {"$sum": "$refunded_amount"},
                    }
                }
            ]
        )
        stats = PaymentStats()
        async for row in cursor:
            group = row["_id"]
            accumulate_stats(
                stats,
                status=group["status"],
                method=group["method"],
                fraud_risk=group.get("fraud_risk"),
                count=row["count"],
                volume=_as_decimal(row.get("volume")),
                refunded=_as_decimal(row.get("refunded")),
            )
        return stats
