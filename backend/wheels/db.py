from __future__ import annotations

import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from wheels import config

logger = logging.getLogger(__name__)

_mongo_client: Optional[AsyncIOMotorClient] = None
_db: Optional[AsyncIOMotorDatabase] = None


def _new_client(url: str) -> AsyncIOMotorClient:
    # tz_aware: datetimes come back as UTC-aware, matching what the entities store
    return AsyncIOMotorClient(
        url,
        tz_aware=True,
        appname=config.APP_NAME,
        serverSelectionTimeoutMS=config.mongo_server_selection_timeout_ms(),
    )


async def connect_mongo(url: Optional[str] = None, db_name: Optional[str] = None) -> AsyncIOMotorDatabase:
    """Open the process-wide client once; later calls return the same database."""

    global _mongo_client, _db

    if _mongo_client is not None and _db is not None:
        return _db

    _mongo_client = _new_client(url or config.mongo_url())
    _db = _mongo_client[db_name or config.db_name()]
    logger.info("Mongo client ready (db=%s)", _db.name)
    return _db


async def close_mongo() -> None:
    global _mongo_client, _db

    if _mongo_client is not None:
        _mongo_client.close()
        logger.info("Mongo client closed")

    _mongo_client = None
    _db = None


async def get_db() -> AsyncIOMotorDatabase:
    if _db is None:
        return await connect_mongo()
    return _db
