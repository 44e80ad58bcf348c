from __future__ import annotations

import time
from decimal import Decimal
from enum import Enum
from typing import Any

from bson import Decimal128, ObjectId


def epoch() -> int:
    return int(time.time())


def encode_document(value: Any) -> Any:
    """Make a ``model_dump()`` result storable: Decimals become Decimal128, enums their value."""
    if isinstance(value, dict):
        return {key: encode_document(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [encode_document(item) for item in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return Decimal128(value)
    return value


def to_object_id(raw_id: str) -> ObjectId | None:
    if not ObjectId.is_valid(raw_id):
        return None
    return ObjectId(raw_id)
