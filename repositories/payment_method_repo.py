from __future__ import annotations

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from core.errors import duplicate_request, resource_not_found
from repositories.document_codec import encode_document, epoch, to_object_id
from schemas.payment_schema import PaymentMethodCreate, PaymentMethodOut


class MongoPaymentMethodRepository:
    def __init__(self, database) -> None:
        self._collection = database.payment_methods
        self._indexes_ready = False

    async def _ensure_payment_method_indexes(self) -> None:
        if self._indexes_ready:
            return
        await self._collection.create_index("user_id", name="idx_payment_method_user_id")
        await self._collection.create_index(
            [("user_id", 1), ("fingerprint", 1)],
            name="idx_payment_method_fingerprint_unique",
            unique=True,
        )
        self._indexes_ready = True

    async def create_payment_method(self, payload: PaymentMethodCreate) -> PaymentMethodOut:
        await self._ensure_payment_method_indexes()
        try:
            result = await self._collection.insert_one(encode_document(payload.model_dump()))
        except DuplicateKeyError as err:
            raise duplicate_request("PaymentMethod", payload.fingerprint) from err
        stored = await self._collection.find_one({"_id": result.inserted_id})
        return PaymentMethodOut(**stored)  # type: ignore[arg-type]

    async def get_payment_method(self, method_id: str) -> PaymentMethodOut | None:
        await self._ensure_payment_method_indexes()
        object_id = to_object_id(method_id)
        if object_id is None:
            return None
        row = await self._collection.find_one({"_id": object_id})
        if row is None:
            return None
        return PaymentMethodOut(**row)

    async def get_user_payment_methods(self, user_id: str) -> list[PaymentMethodOut]:
        await self._ensure_payment_method_indexes()
        cursor = self._collection.find({"user_id": user_id}).sort("created_at", 1)
        return [PaymentMethodOut(**row) async for row in cursor]

    async def get_payment_method_by_fingerprint(self, user_id: str, fingerprint: str) -> PaymentMethodOut | None:
        await self._ensure_payment_method_indexes()
        row = await self._collection.find_one({"user_id": user_id, "fingerprint": fingerprint})
        if row is None:
            return None
        return PaymentMethodOut(**row)

    async def set_default_payment_method(self, user_id: str, method_id: str) -> PaymentMethodOut:
        await self._ensure_payment_method_indexes()
        object_id = to_object_id(method_id)
        if object_id is None or await self._collection.find_one({"_id": object_id, "user_id": user_id}) is None:
            raise resource_not_found("PaymentMethod", method_id)

        now = epoch()
        await self._collection.update_many(
            {"user_id": user_id, "_id": {"$ne": object_id}, "is_default": True},
            {"$set": {"is_default": False, "updated_at": now}},
        )
        row = await self._collection.find_one_and_update(
            {"_id": object_id, "user_id": user_id},
            {"$set": {"is_default": True, "updated_at": now}},
            return_document=ReturnDocument.AFTER,
        )
        if row is None:
            raise resource_not_found("PaymentMethod", method_id)
        return PaymentMethodOut(**row)
