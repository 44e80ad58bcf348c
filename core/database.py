from __future__ import annotations

from functools import lru_cache

from pymongo import AsyncMongoClient
from pymongo.asynchronous.database import AsyncDatabase

from core.settings import get_settings


@lru_cache(maxsize=1)
def get_client() -> AsyncMongoClient:
    settings = get_settings()
    if not settings.mongo_url:
        raise RuntimeError("MONGO_URL must be set to use the MongoDB payment store")
    return AsyncMongoClient(settings.mongo_url, serverSelectionTimeoutMS=2000, tz_aware=True)


def get_database() -> AsyncDatabase:
    settings = get_settings()
    if not settings.db_name:
        raise RuntimeError("DB_NAME must be set to use the MongoDB payment store")
    return get_client()[settings.db_name]
