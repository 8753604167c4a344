from __future__ import annotations

from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from wheels.repositories.base_repository import get_collection
from wheels.utils import now_utc


class AuditLogRepository:
    """Append-only access to the audit_logs collection."""

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db
        self._col = get_collection(db, "audit_logs")

    async def append(self, entry: Dict[str, Any]) -> str:
        doc = dict(entry)
        res = await self._col.insert_one(doc)
        return str(res.inserted_id)

    async def latest_hash(self) -> Optional[str]:
        doc = await self._col.find_one({}, {"hash": 1}, sort=[("when", DESCENDING), ("_id", DESCENDING)])
        return doc.get("hash") if doc else None

    async def list_chain(self) -> List[Dict[str, Any]]:
        """All entries in chain order (oldest first)."""
        cursor = self._col.find({}).sort([("when", ASCENDING), ("_id", ASCENDING)])
        return await cursor.to_list(length=None)

    async def list_recent(
        self,
        *,
        limit: int = 50,
        entity: Optional[str] = None,
        action: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        flt: Dict[str, Any] = {}
        if entity:
            flt["entity"] = entity
        if action:
            flt["action"] = action
        cursor = self._col.find(flt).sort([("when", DESCENDING), ("_id", DESCENDING)]).limit(limit)
        return await cursor.to_list(length=limit)


class AuditAnchorRepository:
    """Daily HMAC anchors, one document per UTC date."""

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db
        self._col = get_collection(db, "audit_anchors")

    async def get(self, date: str) -> Optional[Dict[str, Any]]:
        return await self._col.find_one({"date": date}, {"_id": 0})

    async def upsert(self, date: str, hmac_hex: str) -> None:
        now = now_utc()
        await self._col.update_one(
            {"date": date},
            {"$set": {"hmac": hmac_hex, "updated_at": now}, "$setOnInsert": {"created_at": now}},
            upsert=True,
        )

    async def list_all(self) -> List[Dict[str, Any]]:
        cursor = self._col.find({}, {"_id": 0}).sort("date", ASCENDING)
        return await cursor.to_list(length=None)
