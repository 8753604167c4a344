from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from bson import ObjectId


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """Mongo returns naive datetimes unless tz_aware is set; treat them as UTC."""
    if not isinstance(dt, datetime):
        raise ValueError(f"Expected a datetime, got {type(dt).__name__}")
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    return to_utc(dt)


def truncate_to_millis(dt: datetime) -> datetime:
    """BSON dates carry millisecond precision."""
    return dt.replace(microsecond=(dt.microsecond // 1000) * 1000)


def iso_millis(dt: datetime) -> str:
    """Format as `YYYY-MM-DDTHH:MM:SS.mmmZ` in UTC."""
    utc = to_utc(dt)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def serialize_doc(doc: Any) -> Any:
    """Recursively convert MongoDB docs into JSON-serializable structures."""
    if doc is None:
        return None

    if isinstance(doc, ObjectId):
        return str(doc)

    if isinstance(doc, datetime):
        return doc.isoformat()

    if isinstance(doc, list):
        return [serialize_doc(x) for x in doc]

    if isinstance(doc, dict):
        out: dict[str, Any] = {}
        for k, v in doc.items():
            if k == "_id":
                out["id"] = serialize_doc(v)
            else:
                out[k] = serialize_doc(v)
        return out

    return doc


def parse_object_id(value: Any) -> Optional[ObjectId]:
    """Return an ObjectId for a 24-hex string (or ObjectId), else None."""
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def total_pages(total: int, page_size: int) -> int:
    if page_size <= 0:
        return 1
    return max(1, -(-total // page_size))
