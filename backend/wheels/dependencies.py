from __future__ import annotations

from fastapi import Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from wheels.db import get_db
from wheels.repositories.audit_log_repository import AuditAnchorRepository, AuditLogRepository
from wheels.repositories.booking_request_repository import BookingRequestRepository
from wheels.repositories.transaction_repository import TransactionRepository
from wheels.repositories.trip_offer_repository import TripOfferRepository
from wheels.services.admin_actions import AdminActionsService
from wheels.services.audit_service import AuditService
from wheels.services.booking_request_service import BookingRequestService
from wheels.services.payment_providers.base import PaymentProvider
from wheels.services.payment_providers.stripe_provider import StripePaymentProvider
from wheels.services.payment_service import PaymentService
from wheels.services.trip_offer_service import TripOfferService


def get_payment_provider() -> PaymentProvider:
    return StripePaymentProvider()


async def get_payment_service(
    db: AsyncIOMotorDatabase = Depends(get_db),
    provider: PaymentProvider = Depends(get_payment_provider),
) -> PaymentService:
    return PaymentService(
        BookingRequestRepository(db),
        TripOfferRepository(db),
        TransactionRepository(db),
        provider,
    )


async def get_booking_request_service(db: AsyncIOMotorDatabase = Depends(get_db)) -> BookingRequestService:
    return BookingRequestService(BookingRequestRepository(db), TripOfferRepository(db))


async def get_trip_offer_service(db: AsyncIOMotorDatabase = Depends(get_db)) -> TripOfferService:
    return TripOfferService(TripOfferRepository(db))


async def get_audit_service(db: AsyncIOMotorDatabase = Depends(get_db)) -> AuditService:
    return AuditService(AuditLogRepository(db), AuditAnchorRepository(db))


async def get_admin_actions_service(
    db: AsyncIOMotorDatabase = Depends(get_db),
    provider: PaymentProvider = Depends(get_payment_provider),
    audit: AuditService = Depends(get_audit_service),
) -> AdminActionsService:
    return AdminActionsService(BookingRequestRepository(db), TransactionRepository(db), provider, audit)
