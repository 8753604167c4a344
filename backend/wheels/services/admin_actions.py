from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any, Dict, Optional

from wheels.domain.booking_request import BookingRequest
from wheels.domain.transaction import Transaction
from wheels.errors import InvalidStateError, NotFoundError, PaymentProviderError, ValidationError
from wheels.repositories.booking_request_repository import BookingRequestRepository
from wheels.repositories.transaction_repository import TransactionRepository
from wheels.services.audit_service import AuditContext, AuditService
from wheels.services.payment_providers.base import PaymentProvider
from wheels.utils import now_utc

logger = logging.getLogger(__name__)


def _booking_snapshot(booking: BookingRequest) -> Dict[str, Any]:
    return {"status": booking.status, "seats": booking.seats, "expired_at": booking.expired_at}


def _transaction_snapshot(tx: Transaction) -> Dict[str, Any]:
    return {"status": tx.status, "amount": tx.amount, "refunded_amount": tx.refunded_amount}


class AdminActionsService:
    """Administrative mutations; each one leaves an audit entry."""

    def __init__(
        self,
        bookings: BookingRequestRepository,
        transactions: TransactionRepository,
        provider: PaymentProvider,
        audit: AuditService,
    ) -> None:
        self._bookings = bookings
        self._transactions = transactions
        self._provider = provider
        self._audit = audit

    async def expire_booking_request(
        self,
        booking_id: str,
        admin_id: str,
        *,
        why: Optional[str] = None,
        context: Optional[AuditContext] = None,
    ) -> BookingRequest:
        booking = await self._bookings.find_by_id(booking_id)
        if booking is None:
            raise NotFoundError("booking_not_found", "Booking request not found", {"booking_id": booking_id})

        before = _booking_snapshot(booking)
        booking.expire()
        booking = await self._bookings.save(booking)

        await self._audit.record_admin_action(
            action="booking_request.expire",
            entity="booking_request",
            entity_id=booking_id,
            who=admin_id,
            before=before,
            after=_booking_snapshot(booking),
            why=why,
            context=context,
        )
        logger.info("Booking request %s expired by admin %s", booking_id, admin_id)
        return booking

    async def refund_transaction(
        self,
        transaction_id: str,
        admin_id: str,
        *,
        amount: Optional[int] = None,
        why: Optional[str] = None,
        context: Optional[AuditContext] = None,
    ) -> Transaction:
        tx = await self._transactions.find_by_id(transaction_id)
        if tx is None:
            raise NotFoundError("transaction_not_found", "Transaction not found", {"transaction_id": transaction_id})

        if not tx.is_succeeded():
            raise InvalidStateError(
                f"Cannot refund transaction with status: {tx.status}",
                code="transaction_not_refundable",
                details={"transaction_id": transaction_id, "current_status": tx.status},
            )

        remaining = tx.refundable_amount()
        refund_amount = remaining if amount is None else amount
        if isinstance(refund_amount, bool) or not isinstance(refund_amount, int) or refund_amount < 1:
            raise ValidationError("Refund amount must be a positive integer", {"field": "amount", "value": amount})
        if refund_amount > remaining:
            raise InvalidStateError(
                "Refund amount exceeds the refundable amount",
                code="refund_exceeds_amount",
                details={"transaction_id": transaction_id, "requested": refund_amount, "refundable": remaining},
            )

        before = _transaction_snapshot(tx)
        try:
            refund = await self._provider.create_refund(
                tx.provider_payment_intent_id,
                amount=refund_amount,
                metadata={"transactionId": str(tx.id), "adminId": str(admin_id)},
            )
        except PaymentProviderError:
            raise
        except Exception as exc:
            logger.exception("Payment provider failed refunding transaction %s", transaction_id)
            raise PaymentProviderError(
                "Failed to refund payment",
                {"transaction_id": transaction_id, "reason": str(exc)},
            ) from exc

        tx.refunded_amount += refund_amount
        tx.refunds.append({**asdict(refund), "amount": refund_amount, "created_at": now_utc(), "by": admin_id})
        tx = await self._transactions.save(tx)

        await self._audit.record_admin_action(
            action="transaction.refund",
            entity="transaction",
            entity_id=transaction_id,
            who=admin_id,
            before=before,
            after={**_transaction_snapshot(tx), "refund_id": refund.refund_id},
            why=why,
            context=context,
        )
        logger.info("Transaction %s refunded %s by admin %s", transaction_id, refund_amount, admin_id)
        return tx
