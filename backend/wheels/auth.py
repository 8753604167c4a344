from __future__ import annotations

import hmac
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from wheels import config
from wheels.errors import AppError

bearer_scheme = HTTPBearer(auto_error=False)

ACCESS_TOKEN_COOKIE = "access_token"
CSRF_COOKIE = "csrf_token"
CSRF_HEADER = "x-csrf-token"

_SAFE_METHODS = {"GET", "HEAD", "OPTIONS"}


def create_access_token(*, subject: str, role: str, minutes: int = 60 * 12) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": subject,
        "role": role,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=minutes)).timestamp()),
    }
    return jwt.encode(payload, config.jwt_secret(), algorithm="HS256")


def decode_token(token: str) -> dict[str, Any]:
    try:
        return jwt.decode(token, config.jwt_secret(), algorithms=["HS256"])
    except jwt.ExpiredSignatureError:
        raise AppError(401, "token_expired", "Token has expired")
    except jwt.InvalidTokenError:
        raise AppError(401, "invalid_token", "Invalid token")


def _check_csrf(request: Request) -> None:
    if request.method in _SAFE_METHODS or not config.csrf_protection_enabled():
        return
    cookie = request.cookies.get(CSRF_COOKIE)
    header = request.headers.get(CSRF_HEADER)
    if not cookie or not header or not hmac.compare_digest(cookie, header):
        raise AppError(403, "csrf_mismatch", "CSRF token missing or invalid")


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> dict[str, Any]:
    """Authenticated principal as {id, role}.

    A bearer token is taken as-is; a cookie session additionally needs the
    double-submit CSRF header on unsafe methods.
    """

    if credentials is not None:
        payload = decode_token(credentials.credentials)
    else:
        token = request.cookies.get(ACCESS_TOKEN_COOKIE)
        if not token:
            raise AppError(401, "unauthenticated", "Authentication required")
        payload = decode_token(token)
        _check_csrf(request)

    sub = payload.get("sub")
    if not sub:
        raise AppError(401, "invalid_token", "Token has no subject")
    return {"id": str(sub), "role": payload.get("role")}


def require_roles(required: list[str]):
    async def _dep(user: dict[str, Any] = Depends(get_current_user)) -> dict[str, Any]:
        if user.get("role") not in set(required):
            raise AppError(403, "forbidden_role", "Insufficient role", {"required": required})
        return user

    return _dep
