from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, Dict, List, Literal, Mapping, Optional

from wheels.domain.booking_request import BookingRequest
from wheels.domain.trip_offer import TripOffer
from wheels.errors import ValidationError
from wheels.utils import now_utc


TransactionStatus = Literal[
    "requires_payment_method",
    "processing",
    "succeeded",
    "canceled",
    "failed",
]

TRANSACTION_STATUSES = frozenset({"requires_payment_method", "processing", "succeeded", "canceled", "failed"})

# Attempts still waiting on the provider; at most one of these (or one
# succeeded) may exist per booking.
ACTIVE_TRANSACTION_STATUSES = frozenset({"requires_payment_method", "processing"})

BLOCKING_TRANSACTION_STATUSES = ACTIVE_TRANSACTION_STATUSES | {"succeeded"}

# Stripe never moves an intent out of these; a failed intent may still be retried
TERMINAL_TRANSACTION_STATUSES = frozenset({"succeeded", "canceled"})


@dataclass
class Transaction:
    """One payment attempt against a booking.

    `amount` is a snapshot of seats x price_per_seat taken when the attempt is
    created and is never recomputed afterwards.
    """

    booking_id: str
    trip_id: str
    passenger_id: str
    driver_id: str
    amount: int
    currency: str
    provider: str
    provider_payment_intent_id: str
    provider_client_secret: Optional[str] = None
    status: str = "requires_payment_method"
    id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    refunded_amount: int = 0
    refunds: List[Dict[str, Any]] = field(default_factory=list)
    created_at: datetime = field(default_factory=now_utc)
    updated_at: datetime = field(default_factory=now_utc)
    succeeded_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    canceled_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        missing = [
            name
            for name in ("booking_id", "trip_id", "passenger_id", "driver_id", "provider", "provider_payment_intent_id")
            if not getattr(self, name)
        ]
        if missing:
            raise ValidationError("Missing transaction fields: " + ", ".join(missing), {"fields": missing})
        if isinstance(self.amount, bool) or not isinstance(self.amount, int) or self.amount < 1:
            raise ValidationError("amount must be a positive integer", {"field": "amount", "value": self.amount})
        if not isinstance(self.currency, str) or len(self.currency) != 3:
            raise ValidationError("currency must be an ISO 4217 code", {"field": "currency", "value": self.currency})
        if self.status not in TRANSACTION_STATUSES:
            raise ValidationError(f"Invalid transaction status: {self.status}", {"field": "status", "value": self.status})

    @classmethod
    def create_from_booking(
        cls,
        *,
        booking: BookingRequest,
        trip: TripOffer,
        provider_payment_intent_id: str,
        provider_client_secret: Optional[str],
        provider: str,
        currency: str,
        status: str = "requires_payment_method",
        metadata: Optional[Dict[str, Any]] = None,
    ) -> "Transaction":
        return cls(
            booking_id=str(booking.id),
            trip_id=str(trip.id),
            passenger_id=str(booking.passenger_id),
            driver_id=str(trip.driver_id),
            amount=booking.seats * trip.price_per_seat,
            currency=currency.upper(),
            provider=provider,
            provider_payment_intent_id=provider_payment_intent_id,
            provider_client_secret=provider_client_secret,
            status=status,
            metadata=dict(metadata or {}),
        )

    def is_active(self) -> bool:
        return self.status in ACTIVE_TRANSACTION_STATUSES

    def is_succeeded(self) -> bool:
        return self.status == "succeeded"

    def is_terminal(self) -> bool:
        return self.status in TERMINAL_TRANSACTION_STATUSES

    def refundable_amount(self) -> int:
        if not self.is_succeeded():
            return 0
        return self.amount - self.refunded_amount

    def to_document(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self) if f.name != "id"}

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> "Transaction":
        known = {f.name for f in fields(cls)}
        data = {k: v for k, v in doc.items() if k in known and k != "id"}
        data["id"] = str(doc["_id"]) if doc.get("_id") is not None else doc.get("id")
        for ref in ("booking_id", "trip_id", "passenger_id", "driver_id"):
            data[ref] = str(doc.get(ref) or "")
        return cls(**data)
