from __future__ import annotations

"""Shared MongoDB connection used by every Mongo-backed store.

One ``MongoClient`` (and therefore one connection pool) per process. Stores
ask for a database handle through :func:`get_database`; ``None`` means
MongoDB is not reachable and the caller should fall back to memory.
"""

import logging
import os
from threading import Lock
from typing import Optional

from bson import ObjectId
from pymongo import MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError


logger = logging.getLogger("ganadash.store")

_client: Optional[MongoClient] = None
_lock = Lock()


def new_id() -> str:
    return str(ObjectId())


def is_valid_id(value: str) -> bool:
    return bool(value) and ObjectId.is_valid(value)


def mongo_enabled() -> bool:
    db_mode = os.getenv("DB_MODE", "").lower()
    impl = os.getenv("GANADASH_STORE_IMPL", "memory").lower()
    return db_mode == "mongo" or impl == "mongo"


def get_database() -> Optional[Database]:
    global _client
    mongo_url = os.getenv("MONGO_URL", "mongodb://localhost:27017")
    mongo_db = os.getenv("MONGO_DB", "ganadash")
    with _lock:
        if _client is None:
            try:
                client = MongoClient(
                    mongo_url,
                    serverSelectionTimeoutMS=int(os.getenv("MONGO_TIMEOUT_MS", "500")),
                    tz_aware=True,
                )
                client.admin.command("ping")
            except PyMongoError as exc:
                logger.warning("MongoDB unavailable at %s (%s); using in-memory stores", mongo_url, exc)
                return None
            _client = client
            logger.info("Connected to MongoDB at %s db=%s", mongo_url, mongo_db)
        return _client[mongo_db]


def reset_client() -> None:
    """Close the shared client (used by tests and on shutdown)."""

    global _client
    with _lock:
        if _client is not None:
            _client.close()
        _client = None
