from __future__ import annotations

"""Application-level configuration and feature flags.

Values are read from the environment. Secrets are resolved lazily (at call
time) so tests and workers can override them after import.
"""

import os


def _env_flag(name: str, default: bool = True) -> bool:
    """Read a boolean-like flag from environment.

    Accepted falsy values: "0", "false", "off", "no" (case-insensitive).
    Anything else (or unset) falls back to `default`.
    """

    raw = os.environ.get(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in {"0", "false", "off", "no"}:
        return False
    if value in {"1", "true", "on", "yes"}:
        return True
    return default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


# Application constants
APP_NAME = "Wheels Carpooling API"
APP_VERSION = "1.0.0"

ENSURE_INDEXES: bool = _env_flag("ENSURE_INDEXES", default=True)


def mongo_url() -> str:
    return os.environ["MONGO_URL"]


def db_name() -> str:
    return os.environ.get("DB_NAME", "wheels")


def mongo_server_selection_timeout_ms() -> int:
    return max(1, _env_int("MONGO_SERVER_SELECTION_TIMEOUT_MS", 5000))


def cors_origins() -> list[str]:
    return [o.strip() for o in os.environ.get("CORS_ORIGINS", "http://localhost:5173").split(",") if o.strip()]


def csrf_protection_enabled() -> bool:
    return _env_flag("CSRF_PROTECTION", default=True)


def payment_currency() -> str:
    """Currency used for every payment intent of this deployment."""

    return os.environ.get("PAYMENT_CURRENCY", "COP").strip().upper() or "COP"


def stripe_api_key() -> str | None:
    return os.environ.get("STRIPE_API_KEY") or None


def stripe_webhook_secret() -> str | None:
    return os.environ.get("STRIPE_WEBHOOK_SECRET") or None


def stripe_webhook_tolerance_seconds() -> int:
    # 0 disables the timestamp age check
    return max(0, _env_int("STRIPE_WEBHOOK_TOLERANCE_SECONDS", 300))


def audit_hmac_secret() -> str:
    return os.environ.get("AUDIT_HMAC_SECRET", "dev_audit_secret")


def jwt_secret() -> str:
    # Default only for dev/testing.
    return os.environ.get("JWT_SECRET", "dev_jwt_secret_change_me")
