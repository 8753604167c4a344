"""Structured JSON access logging.

Every request logs one line:
{request_id, correlation_id, user_id, path, method, status_code, latency_ms}

The request id is echoed back in the X-Request-Id response header.
"""
from __future__ import annotations

import base64
import json
import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

logger = logging.getLogger("structured_access")


def _extract_user_id(request: Request) -> str:
    """Read `sub` from the bearer/cookie JWT without verifying it (logging only)."""
    token = ""
    auth = request.headers.get("authorization", "")
    if auth.lower().startswith("bearer "):
        token = auth.split(" ", 1)[1]
    else:
        token = request.cookies.get("access_token", "")
    if not token:
        return ""

    parts = token.split(".")
    if len(parts) < 2:
        return ""
    payload = parts[1] + "=" * (-len(parts[1]) % 4)
    try:
        data = json.loads(base64.urlsafe_b64decode(payload))
    except (ValueError, TypeError):
        return ""
    return str(data.get("sub", "")) if isinstance(data, dict) else ""


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """Log structured JSON for every request."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())[:12]
        start = time.monotonic()
        request.state.request_id = request_id

        response = await call_next(request)

        log_entry = {
            "request_id": request_id,
            "correlation_id": getattr(request.state, "correlation_id", None),
            "user_id": _extract_user_id(request),
            "path": request.url.path,
            "method": request.method,
            "status_code": response.status_code,
            "latency_ms": round((time.monotonic() - start) * 1000, 2),
        }

        if response.status_code >= 500:
            logger.error(json.dumps(log_entry))
        elif response.status_code >= 400:
            logger.warning(json.dumps(log_entry))
        else:
            logger.info(json.dumps(log_entry))

        response.headers["X-Request-Id"] = request_id
        return response
