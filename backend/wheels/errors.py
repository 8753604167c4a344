from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(eq=False)
class AppError(Exception):
    status_code: int
    code: str
    message: str
    details: Optional[Dict[str, Any]] = None

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        return error_response(self.code, self.message, self.details)


def error_response(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {
        "error": {
            "code": code,
            "message": message,
            "details": details or {},
        }
    }


class NotFoundError(AppError):
    def __init__(self, code: str = "not_found", message: str = "Resource not found", details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(404, code, message, details)


class ForbiddenOwnerError(AppError):
    """Caller does not own the booking or transaction it is acting on."""

    def __init__(self, message: str = "You cannot act on a resource you do not own", details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(403, "forbidden_owner", message, details)


class ValidationError(AppError):
    """Entity invariant violation."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(400, "invalid_schema", message, details)


class InvalidStateError(AppError):
    def __init__(self, message: str, code: str = "invalid_state", details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(409, code, message, details)


class InvalidBookingStateError(AppError):
    def __init__(self, message: str = "Booking must be 'accepted' to create payment intent", details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(409, "invalid_booking_state", message, details)


class DuplicatePaymentError(AppError):
    def __init__(self, message: str = "A payment is already in progress for this booking", details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(409, "duplicate_payment", message, details)


class BookingAlreadyPaidError(AppError):
    def __init__(self, message: str = "Booking has already been paid", details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(409, "booking_already_paid", message, details)


class DuplicateBookingRequestError(AppError):
    def __init__(self, message: str = "You already have an active booking request for this trip", details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(409, "duplicate_request", message, details)


class PaymentProviderError(AppError):
    def __init__(self, message: str = "Payment provider error occurred", details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(500, "payment_provider_error", message, details)


class WebhookVerificationError(AppError):
    """Inbound webhook could not be authenticated.

    400 for a missing/invalid signature, 500 when the secret is not configured
    so the provider keeps retrying until the deployment is fixed.
    """

    def __init__(self, message: str, *, not_configured: bool = False) -> None:
        if not_configured:
            super().__init__(500, "webhook_not_configured", message, None)
        else:
            super().__init__(400, "invalid_webhook_signature", message, None)
