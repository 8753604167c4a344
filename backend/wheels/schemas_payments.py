from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import ConfigDict, Field

from wheels.domain.transaction import Transaction
from wheels.schemas_common import CamelModel, PageMeta

TransactionStatusParam = Literal["requires_payment_method", "processing", "succeeded", "canceled", "failed"]


class CreatePaymentIntentRequest(CamelModel):
    model_config = ConfigDict(extra="forbid")

    booking_id: str = Field(min_length=1)


class PaymentIntentResponse(CamelModel):
    transaction_id: str
    booking_id: str
    amount: int
    currency: str
    provider: str
    status: str
    client_secret: Optional[str] = None

    @classmethod
    def from_transaction(cls, tx: Transaction) -> "PaymentIntentResponse":
        return cls(
            transaction_id=str(tx.id),
            booking_id=tx.booking_id,
            amount=tx.amount,
            currency=tx.currency,
            provider=tx.provider,
            status=tx.status,
            client_secret=tx.provider_client_secret,
        )


class TransactionOut(CamelModel):
    id: str
    booking_id: str
    trip_id: str
    passenger_id: str
    driver_id: str
    amount: int
    currency: str
    provider: str
    provider_payment_intent_id: str
    status: str
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    refunded_amount: int = 0
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime
    succeeded_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    canceled_at: Optional[datetime] = None

    @classmethod
    def from_transaction(cls, tx: Transaction) -> "TransactionOut":
        return cls(
            id=str(tx.id),
            booking_id=tx.booking_id,
            trip_id=tx.trip_id,
            passenger_id=tx.passenger_id,
            driver_id=tx.driver_id,
            amount=tx.amount,
            currency=tx.currency,
            provider=tx.provider,
            provider_payment_intent_id=tx.provider_payment_intent_id,
            status=tx.status,
            error_code=tx.error_code,
            error_message=tx.error_message,
            refunded_amount=tx.refunded_amount,
            metadata=tx.metadata,
            created_at=tx.created_at,
            updated_at=tx.updated_at,
            succeeded_at=tx.succeeded_at,
            failed_at=tx.failed_at,
            canceled_at=tx.canceled_at,
        )


class TransactionListResponse(PageMeta):
    items: List[TransactionOut]

    @classmethod
    def from_page(cls, page: Dict[str, Any]) -> "TransactionListResponse":
        return cls(
            items=[TransactionOut.from_transaction(t) for t in page["items"]],
            total=page["total"],
            page=page["page"],
            page_size=page["page_size"],
            total_pages=page["total_pages"],
        )


class WebhookAck(CamelModel):
    received: bool = True
