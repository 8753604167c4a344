from __future__ import annotations

from typing import Any, Dict, Iterable, Optional, Union

from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase


StatusFilter = Optional[Union[str, Iterable[str]]]


def get_collection(db: AsyncIOMotorDatabase, name: str) -> AsyncIOMotorCollection:
    """Return a Motor collection from the given database.

    This is the only place where services should obtain collections.
    """

    return db[name]


def with_status_filter(filter_dict: Dict[str, Any], status: StatusFilter) -> Dict[str, Any]:
    """Add a `status` clause for a single status or any of several."""

    f = dict(filter_dict or {})
    if not status:
        return f
    if isinstance(status, str):
        f["status"] = status
    else:
        f["status"] = {"$in": list(status)}
    return f


def page_window(page: int, page_size: int, max_page_size: int = 50) -> tuple[int, int, int]:
    """Clamp pagination input and return (page, page_size, skip)."""

    page = max(1, int(page or 1))
    page_size = min(max_page_size, max(1, int(page_size or 10)))
    return page, page_size, (page - 1) * page_size
