from __future__ import annotations

from typing import Any

from pymongo import ReturnDocument

from core.errors import resource_not_found, state_conflict
from core.payments.types import RefundStatus, refund_statuses_allowing
from repositories.document_codec import encode_document, to_object_id
from schemas.payment_schema import RefundCreate, RefundOut


class MongoRefundRepository:
    def __init__(self, database) -> None:
        self._collection = database.refunds
        self._indexes_ready = False

    async def _ensure_refund_indexes(self) -> None:
        if self._indexes_ready:
            return
        await self._collection.create_index(
            [("payment_id", 1), ("created_at", 1)],
            name="idx_refund_payment_created",
        )
        self._indexes_ready = True

    async def create_refund(self, payload: RefundCreate) -> RefundOut:
        await self._ensure_refund_indexes()
        result = await self._collection.insert_one(encode_document(payload.model_dump()))
        stored = await self._collection.find_one({"_id": result.inserted_id})
        return RefundOut(**stored)  # type: ignore[arg-type]

    async def get_refund(self, refund_id: str) -> RefundOut | None:
        await self._ensure_refund_indexes()
        object_id = to_object_id(refund_id)
        if object_id is None:
            return None
        row = await self._collection.find_one({"_id": object_id})
        if row is None:
            return None
        return RefundOut(**row)

    async def get_refunds_by_payment(self, payment_id: str) -> list[RefundOut]:
        await self._ensure_refund_indexes()
        cursor = self._collection.find({"payment_id": payment_id}).sort("created_at", 1)
        return [RefundOut(**row) async for row in cursor]

    async def update_refund_status(
        self,
        refund_id: str,
        status: RefundStatus,
        *,
        processor_response: str | None = None,
        processed_at: int | None = None,
    ) -> RefundOut:
        await self._ensure_refund_indexes()
        object_id = to_object_id(refund_id)
        if object_id is None:
            raise resource_not_found("Refund", refund_id)

        changes: dict[str, Any] = {"status": status.value}
        if processor_response is not None:
            changes["processor_response"] = processor_response
        if processed_at is not None:
            changes["processed_at"] = processed_at

        row = await self._collection.find_one_and_update(
            {"_id": object_id, "status": {"$in": refund_statuses_allowing(status)}},
            {"$set": encode_document(changes)},
            return_document=ReturnDocument.AFTER,
        )
        if row is None:
            current = await self._collection.find_one({"_id": object_id}, {"status": 1})
            if current is None:
                raise resource_not_found("Refund", refund_id)
            raise state_conflict("Refund", refund_id, current.get("status"), status.value)
        return RefundOut(**row)
