"""Hash-chained audit log for administrative actions.

Every entry stores the hash of its predecessor (ordered by `when`) and its own
hash = sha256(deterministic JSON of the entry fields). Each hash is also folded
into a per-day anchor: anchor = HMAC-SHA256(secret, previous_anchor + hash).

Recording is best-effort: the admin action has already happened, so audit
failures are logged and never surface to the caller.
"""
from __future__ import annotations

import hashlib
import hmac
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

import anyio
from bson import ObjectId
from starlette.requests import Request

from wheels import config
from wheels.repositories.audit_log_repository import AuditAnchorRepository, AuditLogRepository
from wheels.utils import iso_millis, now_utc, to_utc, truncate_to_millis

logger = logging.getLogger(__name__)


_chain_lock: Optional[anyio.Lock] = None


def _get_chain_lock() -> anyio.Lock:
    global _chain_lock
    if _chain_lock is None:
        _chain_lock = anyio.Lock()
    return _chain_lock


@dataclass
class AuditContext:
    correlation_id: Optional[str] = None
    ip: Optional[str] = None
    user_agent: Optional[str] = None

    @classmethod
    def from_request(cls, request: Request) -> "AuditContext":
        return cls(
            correlation_id=getattr(request.state, "correlation_id", None) or request.headers.get("x-correlation-id"),
            ip=request.client.host if request.client else None,
            user_agent=request.headers.get("user-agent"),
        )


def _jsonable(value: Any) -> Any:
    """Normalize a snapshot so it hashes identically before and after storage."""
    if isinstance(value, datetime):
        return iso_millis(value)
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in sorted(value.items(), key=lambda kv: str(kv[0]))}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_jsonable(v) for v in value]
    return value


def compute_entry_hash(entry: Dict[str, Any]) -> str:
    payload = {
        "action": entry.get("action"),
        "entity": entry.get("entity"),
        "entity_id": entry.get("entity_id"),
        "who": entry.get("who"),
        "when": iso_millis(entry["when"]) if isinstance(entry.get("when"), datetime) else entry.get("when"),
        "what": entry.get("what"),
        "why": entry.get("why"),
        "correlation_id": entry.get("correlation_id"),
        "ip": entry.get("ip"),
        "user_agent": entry.get("user_agent"),
        "prev_hash": entry.get("prev_hash"),
    }
    raw = json.dumps(payload, separators=(",", ":"), ensure_ascii=False, default=str)
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def fold_anchor(secret: str, previous: Optional[str], entry_hash: str) -> str:
    return hmac.new(secret.encode("utf-8"), ((previous or "") + entry_hash).encode("utf-8"), hashlib.sha256).hexdigest()


def anchor_date(when: datetime) -> str:
    return to_utc(when).strftime("%Y-%m-%d")


class AuditService:
    def __init__(
        self,
        logs: AuditLogRepository,
        anchors: AuditAnchorRepository,
        *,
        secret: Optional[str] = None,
    ) -> None:
        self._logs = logs
        self._anchors = anchors
        self._secret = secret or config.audit_hmac_secret()

    async def record_admin_action(
        self,
        *,
        action: str,
        entity: str,
        entity_id: str,
        who: str,
        before: Any = None,
        after: Any = None,
        why: Optional[str] = None,
        context: Optional[AuditContext] = None,
    ) -> Optional[Dict[str, Any]]:
        """Append an entry and extend today's anchor. Returns the entry, or None on failure."""

        ctx = context or AuditContext()
        try:
            async with _get_chain_lock():
                when = truncate_to_millis(now_utc())
                entry: Dict[str, Any] = {
                    "action": action,
                    "entity": entity,
                    "entity_id": str(entity_id),
                    "who": str(who),
                    "when": when,
                    "what": {"before": _jsonable(before), "after": _jsonable(after)},
                    "why": why,
                    "correlation_id": ctx.correlation_id,
                    "ip": ctx.ip,
                    "user_agent": ctx.user_agent,
                    "prev_hash": await self._logs.latest_hash(),
                }
                entry["hash"] = compute_entry_hash(entry)
                await self._logs.append(entry)

                date = anchor_date(when)
                current = await self._anchors.get(date)
                await self._anchors.upsert(
                    date, fold_anchor(self._secret, current.get("hmac") if current else None, entry["hash"])
                )
            return entry
        except Exception:
            logger.warning("Failed to record audit entry %s for %s %s", action, entity, entity_id, exc_info=True)
            return None

    async def list_entries(
        self,
        *,
        limit: int = 50,
        entity: Optional[str] = None,
        action: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        limit = min(200, max(1, int(limit)))
        return await self._logs.list_recent(limit=limit, entity=entity, action=action)

    async def verify(self, date: Optional[str] = None) -> Dict[str, Any]:
        """Replay the chain and re-fold the daily anchors.

        The chain itself is always checked end to end; `date` restricts which
        anchors are compared.
        """

        entries = await self._logs.list_chain()
        errors: List[Dict[str, Any]] = []
        folded: Dict[str, str] = {}
        prev: Optional[str] = None

        for i, entry in enumerate(entries):
            entry_id = str(entry.get("_id"))
            if entry.get("prev_hash") != prev:
                errors.append({
                    "index": i,
                    "entry_id": entry_id,
                    "error": "broken_link",
                    "expected_prev_hash": prev,
                    "actual_prev_hash": entry.get("prev_hash"),
                })
            recomputed = compute_entry_hash(entry)
            if recomputed != entry.get("hash"):
                errors.append({
                    "index": i,
                    "entry_id": entry_id,
                    "error": "hash_mismatch",
                    "expected": recomputed,
                    "actual": entry.get("hash"),
                })
            day = anchor_date(entry["when"])
            folded[day] = fold_anchor(self._secret, folded.get(day), entry.get("hash") or "")
            prev = entry.get("hash")

        stored = {a["date"]: a.get("hmac") for a in await self._anchors.list_all()}
        days = [date] if date else sorted(set(folded) | set(stored))
        anchors: List[Dict[str, Any]] = []
        for day in days:
            ok = folded.get(day) == stored.get(day)
            anchors.append({"date": day, "valid": ok, "entries": sum(1 for e in entries if anchor_date(e["when"]) == day)})
            if not ok:
                errors.append({"date": day, "error": "anchor_mismatch"})

        return {
            "valid": not errors,
            "checked": len(entries),
            "errors": errors,
            "anchors": anchors,
        }
