from __future__ import annotations

import logging
import re
import uuid

from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from wheels.errors import error_response

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-Id"

# Incoming ids end up in logs and audit entries
_VALID_CID = re.compile(r"^[A-Za-z0-9._:\-]{1,128}$")


def resolve_correlation_id(incoming: str | None) -> str:
    """Reuse a well-formed caller id, otherwise mint a new UUID4."""
    if incoming:
        candidate = incoming.strip()
        if _VALID_CID.match(candidate):
            return candidate
    return str(uuid.uuid4())


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        cid = resolve_correlation_id(request.headers.get(CORRELATION_HEADER))
        request.state.correlation_id = cid

        try:
            response: Response = await call_next(request)
        except Exception:
            logger.exception("Unhandled error on %s %s (correlation_id=%s)", request.method, request.url.path, cid)
            response = JSONResponse(
                status_code=500,
                content=error_response("internal_error", "Unexpected server error", {"correlation_id": cid}),
            )

        response.headers[CORRELATION_HEADER] = cid
        return response
