from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import ConfigDict, Field

from wheels.schemas_common import CamelModel


class AdminReasonBody(CamelModel):
    model_config = ConfigDict(extra="forbid")

    why: Optional[str] = Field(default=None, max_length=500)


class RefundBody(AdminReasonBody):
    amount: Optional[int] = Field(default=None, ge=1, strict=True)


class AuditLogOut(CamelModel):
    id: str
    action: str
    entity: str
    entity_id: str
    who: str
    when: datetime
    what: Dict[str, Any]
    why: Optional[str] = None
    correlation_id: Optional[str] = None
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    prev_hash: Optional[str] = None
    hash: str

    @classmethod
    def from_doc(cls, doc: Dict[str, Any]) -> "AuditLogOut":
        data = {k: v for k, v in doc.items() if k != "_id"}
        return cls(id=str(doc.get("_id")), **data)


class AuditLogListResponse(CamelModel):
    items: List[AuditLogOut]


class AnchorCheck(CamelModel):
    date: str
    valid: bool
    entries: int


class AuditVerifyResponse(CamelModel):
    valid: bool
    checked: int
    errors: List[Dict[str, Any]]
    anchors: List[AnchorCheck]
