"""Stripe implementation of the payment provider boundary.

The Stripe SDK is synchronous; every API call runs in a worker thread via
anyio.to_thread.run_sync so request handlers never block the event loop.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

import anyio
import stripe

from wheels import config
from wheels.errors import PaymentProviderError, WebhookVerificationError
from wheels.services.payment_providers.base import (
    PaymentIntentResult,
    PaymentProvider,
    RefundResult,
    WebhookEvent,
)

logger = logging.getLogger(__name__)


SIGNATURE_HEADER = "stripe-signature"

_STATUS_MAP: Dict[str, str] = {
    "requires_payment_method": "requires_payment_method",
    "requires_confirmation": "processing",
    "requires_action": "processing",
    "requires_capture": "processing",
    "processing": "processing",
    "succeeded": "succeeded",
    "canceled": "canceled",
    "payment_failed": "failed",
}


def _as_dict(obj: Any) -> Dict[str, Any]:
    if obj is None:
        return {}
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    return dict(obj)


def _plain(value: Any) -> Any:
    """StripeObject trees (dict subclasses) as plain dicts and lists."""
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_plain(v) for v in value]
    return value


def _intent_result(pi: Dict[str, Any]) -> PaymentIntentResult:
    return PaymentIntentResult(
        payment_intent_id=pi["id"],
        client_secret=pi.get("client_secret"),
        status=pi.get("status") or "",
        amount=int(pi.get("amount") or 0),
        currency=str(pi.get("currency") or "").upper(),
        metadata=dict(pi.get("metadata") or {}),
        last_payment_error=pi.get("last_payment_error"),
    )


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    getter = getattr(headers, "get", None)
    value = getter(name) if getter else None
    if value is not None:
        return value
    for key, val in headers.items():
        if key.lower() == name:
            return val
    return None


class StripePaymentProvider(PaymentProvider):
    provider_name = "stripe"

    def __init__(
        self,
        client: Optional[stripe.StripeClient] = None,
        *,
        webhook_secret: Optional[str] = None,
        tolerance_seconds: Optional[int] = None,
    ) -> None:
        self._client = client
        self._webhook_secret = webhook_secret if webhook_secret is not None else config.stripe_webhook_secret()
        self._tolerance = (
            tolerance_seconds if tolerance_seconds is not None else config.stripe_webhook_tolerance_seconds()
        )

    def _stripe(self) -> stripe.StripeClient:
        if self._client is None:
            api_key = config.stripe_api_key()
            if not api_key:
                raise PaymentProviderError("STRIPE_API_KEY is not configured")
            self._client = stripe.StripeClient(api_key)
        return self._client

    async def _call(self, op: str, fn: Callable[[], Any]) -> Dict[str, Any]:
        try:
            obj = await anyio.to_thread.run_sync(fn)
        except stripe.StripeError as exc:
            logger.error("Stripe %s failed: %s", op, exc)
            raise PaymentProviderError(
                f"Stripe {op} failed",
                {"provider": self.provider_name, "stripe_code": getattr(exc, "code", None), "reason": str(exc)},
            ) from exc
        return _as_dict(obj)

    async def create_payment_intent(
        self,
        *,
        amount: int,
        currency: str,
        metadata: Dict[str, str],
        idempotency_key: Optional[str] = None,
    ) -> PaymentIntentResult:
        client = self._stripe()
        params: Dict[str, Any] = {
            "amount": int(amount),
            "currency": currency.lower(),
            "metadata": metadata,
            "automatic_payment_methods": {"enabled": True},
        }
        options: Dict[str, Any] = {}
        if idempotency_key:
            options["idempotency_key"] = idempotency_key

        pi = await self._call(
            "create_payment_intent",
            lambda: client.payment_intents.create(params=params, options=options),  # type: ignore[arg-type]
        )
        logger.info("Stripe payment intent created id=%s status=%s", pi.get("id"), pi.get("status"))
        return _intent_result(pi)

    async def get_payment_intent(self, payment_intent_id: str) -> PaymentIntentResult:
        client = self._stripe()
        pi = await self._call("get_payment_intent", lambda: client.payment_intents.retrieve(payment_intent_id))
        return _intent_result(pi)

    async def cancel_payment_intent(self, payment_intent_id: str) -> PaymentIntentResult:
        client = self._stripe()
        pi = await self._call("cancel_payment_intent", lambda: client.payment_intents.cancel(payment_intent_id))
        return _intent_result(pi)

    async def create_refund(
        self,
        payment_intent_id: str,
        amount: Optional[int] = None,
        metadata: Optional[Dict[str, str]] = None,
    ) -> RefundResult:
        client = self._stripe()
        params: Dict[str, Any] = {"payment_intent": payment_intent_id}
        if amount is not None:
            params["amount"] = int(amount)
        if metadata:
            params["metadata"] = metadata
        refund = await self._call("create_refund", lambda: client.refunds.create(params=params))  # type: ignore[arg-type]
        return RefundResult(
            refund_id=refund["id"],
            status=refund.get("status") or "",
            amount=int(refund.get("amount") or 0),
            currency=str(refund.get("currency") or "").upper(),
        )

    def map_status(self, provider_status: Optional[str]) -> str:
        # Unknown statuses are treated as failures so they never unlock a booking
        return _STATUS_MAP.get(provider_status or "", "failed")

    def validate_signature(self, signature: str, payload: bytes, secret: str) -> bool:
        timestamp: Optional[str] = None
        candidates: List[str] = []
        for part in (signature or "").split(","):
            key, sep, value = part.strip().partition("=")
            if not sep:
                continue
            if key == "t" and timestamp is None:
                timestamp = value
            elif key == "v1":
                # several v1 entries are sent while a signing secret is rotated
                candidates.append(value)
        if not timestamp or not candidates:
            return False

        signed = timestamp.encode("utf-8") + b"." + payload
        expected = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest().encode("ascii")
        # headers arrive latin-1 decoded; compare bytes so non-ASCII input is a mismatch
        return any(
            hmac.compare_digest(expected, candidate.encode("utf-8", "surrogateescape")) for candidate in candidates
        )

    def parse_and_verify_webhook(self, headers: Mapping[str, str], raw_body: bytes) -> WebhookEvent:
        if not self._webhook_secret:
            raise WebhookVerificationError("Stripe webhook secret is not configured", not_configured=True)

        signature = _header(headers, SIGNATURE_HEADER)
        if not signature:
            raise WebhookVerificationError("Missing Stripe-Signature header")

        try:
            payload = raw_body.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise WebhookVerificationError("Webhook payload is not valid UTF-8") from exc

        try:
            event = stripe.Webhook.construct_event(
                payload=payload,
                sig_header=signature,
                secret=self._webhook_secret,
                tolerance=self._tolerance or None,
            )
        except stripe.SignatureVerificationError as exc:
            logger.warning("Stripe webhook signature rejected: %s", exc)
            raise WebhookVerificationError("Invalid webhook signature") from exc
        except ValueError as exc:
            raise WebhookVerificationError("Webhook payload is not valid JSON") from exc

        data = _plain(event.to_dict())
        return WebhookEvent(
            id=str(data.get("id") or ""),
            type=str(data.get("type") or ""),
            data=dict(data.get("data") or {}),
            created=data.get("created"),
            livemode=bool(data.get("livemode", False)),
        )
