from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional


@dataclass
class PaymentIntentResult:
    payment_intent_id: str
    client_secret: Optional[str]
    status: str
    amount: int
    currency: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    last_payment_error: Optional[Dict[str, Any]] = None


@dataclass
class WebhookEvent:
    id: str
    type: str
    data: Dict[str, Any]
    created: Optional[int] = None
    livemode: bool = False

    @property
    def object(self) -> Dict[str, Any]:
        return self.data.get("object") or {}


@dataclass
class RefundResult:
    refund_id: str
    status: str
    amount: int
    currency: str


class PaymentProvider(ABC):
    """Boundary to an external payment processor.

    Implementations own the provider SDK and translate its objects into the
    result dataclasses above; services never see provider types. Errors are
    raised as `PaymentProviderError` / `WebhookVerificationError`.
    """

    provider_name: str = "base"

    @abstractmethod
    async def create_payment_intent(
        self,
        *,
        amount: int,
        currency: str,
        metadata: Dict[str, str],
        idempotency_key: Optional[str] = None,
    ) -> PaymentIntentResult:
        raise NotImplementedError

    @abstractmethod
    async def get_payment_intent(self, payment_intent_id: str) -> PaymentIntentResult:
        raise NotImplementedError

    @abstractmethod
    async def cancel_payment_intent(self, payment_intent_id: str) -> PaymentIntentResult:
        raise NotImplementedError

    @abstractmethod
    async def create_refund(
        self,
        payment_intent_id: str,
        amount: Optional[int] = None,
        metadata: Optional[Dict[str, str]] = None,
    ) -> RefundResult:
        """Refund a captured intent; the whole remaining amount when `amount` is None."""

        raise NotImplementedError

    @abstractmethod
    def parse_and_verify_webhook(self, headers: Mapping[str, str], raw_body: bytes) -> WebhookEvent:
        raise NotImplementedError

    @abstractmethod
    def map_status(self, provider_status: Optional[str]) -> str:
        """Collapse a provider status into the internal transaction statuses."""

        raise NotImplementedError

    @abstractmethod
    def validate_signature(self, signature: str, payload: bytes, secret: str) -> bool:
        raise NotImplementedError
