from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from wheels import config
from wheels.domain.booking_request import BookingRequest
from wheels.domain.trip_offer import TripOffer, place_label
from wheels.domain.transaction import Transaction
from wheels.errors import (
    BookingAlreadyPaidError,
    DuplicatePaymentError,
    ForbiddenOwnerError,
    InvalidBookingStateError,
    InvalidStateError,
    NotFoundError,
    PaymentProviderError,
)
from wheels.repositories.base_repository import StatusFilter
from wheels.repositories.booking_request_repository import BookingRequestRepository
from wheels.repositories.transaction_repository import TransactionRepository
from wheels.repositories.trip_offer_repository import TripOfferRepository
from wheels.services.payment_providers.base import PaymentIntentResult, PaymentProvider
from wheels.utils import now_utc

logger = logging.getLogger(__name__)


def build_payment_metadata(booking: BookingRequest, trip: TripOffer) -> Dict[str, str]:
    """Metadata attached to the provider intent; provider metadata values are strings."""

    return {
        "bookingId": str(booking.id),
        "tripId": str(trip.id),
        "passengerId": str(booking.passenger_id),
        "driverId": str(trip.driver_id),
        "seats": str(booking.seats),
        "pricePerSeat": str(trip.price_per_seat),
        "origin": place_label(trip.origin),
        "destination": place_label(trip.destination),
    }


class PaymentService:
    """Orchestrates payment intents for accepted booking requests."""

    def __init__(
        self,
        bookings: BookingRequestRepository,
        trips: TripOfferRepository,
        transactions: TransactionRepository,
        provider: PaymentProvider,
        *,
        currency: Optional[str] = None,
    ) -> None:
        self._bookings = bookings
        self._trips = trips
        self._transactions = transactions
        self._provider = provider
        self._currency = (currency or config.payment_currency()).upper()

    async def create_payment_intent(self, booking_id: str, passenger_id: str) -> Transaction:
        booking = await self._bookings.find_by_id(booking_id)
        if booking is None:
            raise NotFoundError("booking_not_found", "Booking not found", {"booking_id": booking_id})

        if not booking.belongs_to_passenger(passenger_id):
            raise ForbiddenOwnerError(
                "You cannot pay for a booking that is not yours",
                {"booking_id": booking_id},
            )

        if not booking.is_accepted():
            raise InvalidBookingStateError(
                details={"booking_id": booking_id, "current_status": booking.status},
            )

        existing = await self._transactions.find_active_or_succeeded_by_booking_id(str(booking.id))
        if existing is not None:
            if existing.is_succeeded():
                raise BookingAlreadyPaidError(
                    details={"booking_id": booking_id, "transaction_id": existing.id},
                )
            raise DuplicatePaymentError(
                details={"booking_id": booking_id, "transaction_id": existing.id, "status": existing.status},
            )

        trip = await self._trips.find_by_id(booking.trip_id)
        if trip is None:
            raise NotFoundError("trip_not_found", "Trip not found", {"trip_id": booking.trip_id})

        amount = booking.seats * trip.price_per_seat
        metadata = build_payment_metadata(booking, trip)

        try:
            intent = await self._provider.create_payment_intent(
                amount=amount,
                currency=self._currency,
                metadata=metadata,
            )
        except PaymentProviderError:
            raise
        except Exception as exc:
            logger.exception("Payment provider failed creating intent for booking %s", booking_id)
            raise PaymentProviderError(
                "Failed to create payment intent",
                {"booking_id": booking_id, "reason": str(exc)},
            ) from exc

        tx = Transaction.create_from_booking(
            booking=booking,
            trip=trip,
            provider_payment_intent_id=intent.payment_intent_id,
            provider_client_secret=intent.client_secret,
            provider=self._provider.provider_name,
            currency=self._currency,
            status=self._provider.map_status(intent.status),
            metadata=metadata,
        )
        tx = await self._transactions.create(tx)
        logger.info(
            "Payment intent created booking=%s transaction=%s amount=%s %s",
            booking_id,
            tx.id,
            tx.amount,
            tx.currency,
        )
        return tx

    async def get_transaction_by_id(self, transaction_id: str) -> Optional[Transaction]:
        return await self._transactions.find_by_id(transaction_id)

    async def get_transactions_by_booking_id(self, booking_id: str) -> List[Transaction]:
        return await self._transactions.find_by_booking_id(booking_id)

    async def get_transactions_by_passenger_id(
        self,
        passenger_id: str,
        *,
        page: int = 1,
        page_size: int = 10,
        status: StatusFilter = None,
    ) -> Dict[str, Any]:
        return await self._transactions.find_by_passenger_id(
            passenger_id, status=status, page=page, page_size=page_size
        )

    async def get_transactions_by_driver_id(
        self,
        driver_id: str,
        *,
        page: int = 1,
        page_size: int = 10,
        status: StatusFilter = None,
    ) -> Dict[str, Any]:
        return await self._transactions.find_by_driver_id(driver_id, status=status, page=page, page_size=page_size)

    async def handle_webhook(self, headers: Mapping[str, str], raw_body: bytes) -> Optional[Transaction]:
        """Verify a provider event and apply the intent status to its transaction.

        Replays are harmless: the transaction is only written when the mapped
        status differs from the stored one.
        """

        event = self._provider.parse_and_verify_webhook(headers, raw_body)
        if not event.type.startswith("payment_intent."):
            logger.info("Ignoring webhook event %s of type %s", event.id, event.type)
            return None

        pi = event.object
        intent_id = pi.get("id")
        if not intent_id:
            logger.warning("Webhook event %s carries no payment intent id", event.id)
            return None

        tx = await self._transactions.find_by_provider_intent_id(intent_id)
        if tx is None:
            logger.warning("No transaction for payment intent %s (event %s)", intent_id, event.id)
            return None

        status = self._provider.map_status(pi.get("status"))
        if event.type == "payment_intent.payment_failed":
            status = "failed"

        if status == tx.status:
            logger.info("Transaction %s already %s; event %s ignored", tx.id, status, event.id)
            return tx

        if tx.is_terminal():
            # settled attempts are never reopened by a late event
            logger.warning(
                "Transaction %s is %s; out-of-order event %s (%s) ignored", tx.id, tx.status, event.id, status
            )
            return tx

        self._apply_status(tx, status, pi.get("last_payment_error"))
        await self._transactions.save(tx)
        logger.info("Transaction %s moved to %s by event %s", tx.id, status, event.id)
        return tx

    @staticmethod
    def _apply_status(tx: Transaction, status: str, last_error: Optional[Dict[str, Any]] = None) -> None:
        now = now_utc()
        tx.status = status
        if status == "succeeded":
            tx.succeeded_at = now
        elif status == "failed":
            tx.failed_at = now
            if last_error:
                tx.error_code = last_error.get("code")
                tx.error_message = last_error.get("message")
        elif status == "canceled":
            tx.canceled_at = now

    async def cancel_transaction(self, transaction_id: str, passenger_id: str) -> Transaction:
        tx = await self._transactions.find_by_id(transaction_id)
        if tx is None:
            raise NotFoundError("transaction_not_found", "Transaction not found", {"transaction_id": transaction_id})

        if str(tx.passenger_id) != str(passenger_id):
            raise ForbiddenOwnerError(
                "You cannot cancel a transaction that is not yours",
                {"transaction_id": transaction_id},
            )

        if not tx.is_active():
            raise InvalidStateError(
                f"Cannot cancel transaction with status: {tx.status}",
                code="transaction_not_cancelable",
                details={"transaction_id": transaction_id, "current_status": tx.status},
            )

        try:
            intent: PaymentIntentResult = await self._provider.cancel_payment_intent(tx.provider_payment_intent_id)
        except PaymentProviderError:
            raise
        except Exception as exc:
            logger.exception("Payment provider failed canceling intent %s", tx.provider_payment_intent_id)
            raise PaymentProviderError(
                "Failed to cancel payment intent",
                {"transaction_id": transaction_id, "reason": str(exc)},
            ) from exc

        logger.info("Payment intent %s canceled (provider status %s)", intent.payment_intent_id, intent.status)
        self._apply_status(tx, "canceled")
        await self._transactions.save(tx)
        return tx
