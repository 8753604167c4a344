from __future__ import annotations

from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import DESCENDING

from wheels.domain.transaction import BLOCKING_TRANSACTION_STATUSES, Transaction
from wheels.repositories.base_repository import StatusFilter, get_collection, page_window, with_status_filter
from wheels.utils import now_utc, parse_object_id, total_pages


class TransactionRepository:
    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db
        self._col = get_collection(db, "transactions")

    async def create(self, tx: Transaction) -> Transaction:
        res = await self._col.insert_one(tx.to_document())
        tx.id = str(res.inserted_id)
        return tx

    async def find_by_id(self, transaction_id: str) -> Optional[Transaction]:
        oid = parse_object_id(transaction_id)
        if oid is None:
            return None
        doc = await self._col.find_one({"_id": oid})
        return Transaction.from_document(doc) if doc else None

    async def find_by_booking_id(self, booking_id: str) -> List[Transaction]:
        cursor = self._col.find({"booking_id": booking_id}).sort([("created_at", DESCENDING), ("_id", DESCENDING)])
        return [Transaction.from_document(d) async for d in cursor]

    async def find_active_or_succeeded_by_booking_id(self, booking_id: str) -> Optional[Transaction]:
        """Return the blocking attempt for a booking, preferring a succeeded one."""
        docs = await self._col.find(
            with_status_filter({"booking_id": booking_id}, BLOCKING_TRANSACTION_STATUSES)
        ).to_list(length=None)
        if not docs:
            return None
        txs = [Transaction.from_document(d) for d in docs]
        for tx in txs:
            if tx.is_succeeded():
                return tx
        return txs[0]

    async def find_by_provider_intent_id(self, provider_payment_intent_id: str) -> Optional[Transaction]:
        doc = await self._col.find_one({"provider_payment_intent_id": provider_payment_intent_id})
        return Transaction.from_document(doc) if doc else None

    async def _paginate(self, flt: Dict[str, Any], page: int, page_size: int) -> Dict[str, Any]:
        page, page_size, skip = page_window(page, page_size)
        total = await self._col.count_documents(flt)
        cursor = self._col.find(flt).sort([("created_at", DESCENDING), ("_id", DESCENDING)]).skip(skip).limit(page_size)
        docs = await cursor.to_list(length=page_size)
        return {
            "items": [Transaction.from_document(d) for d in docs],
            "total": total,
            "page": page,
            "page_size": page_size,
            "total_pages": total_pages(total, page_size),
        }

    async def find_by_passenger_id(
        self,
        passenger_id: str,
        *,
        status: StatusFilter = None,
        page: int = 1,
        page_size: int = 10,
    ) -> Dict[str, Any]:
        return await self._paginate(with_status_filter({"passenger_id": passenger_id}, status), page, page_size)

    async def find_by_driver_id(
        self,
        driver_id: str,
        *,
        status: StatusFilter = None,
        page: int = 1,
        page_size: int = 10,
    ) -> Dict[str, Any]:
        return await self._paginate(with_status_filter({"driver_id": driver_id}, status), page, page_size)

    async def save(self, tx: Transaction) -> Transaction:
        oid = parse_object_id(tx.id)
        if oid is None:
            raise ValueError(f"Cannot save transaction without a valid id: {tx.id!r}")
        tx.updated_at = now_utc()
        await self._col.update_one({"_id": oid}, {"$set": tx.to_document()})
        return tx
