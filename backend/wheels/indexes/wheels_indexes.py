from __future__ import annotations

import logging

from pymongo import ASCENDING, DESCENDING

logger = logging.getLogger(__name__)


async def ensure_wheels_indexes(db):
    async def _safe_create(collection, *args, **kwargs):
        try:
            await collection.create_index(*args, **kwargs)
        except Exception:
            logger.warning("Index %s on %s not created", kwargs.get("name"), collection.name, exc_info=True)
            return

    await _safe_create(
        db.trip_offers,
        [("driver_id", ASCENDING), ("departure_at", ASCENDING)],
        name="trip_offers_by_driver_departure",
    )

    await _safe_create(
        db.booking_requests,
        [("passenger_id", ASCENDING), ("trip_id", ASCENDING), ("status", ASCENDING)],
        name="booking_requests_by_passenger_trip_status",
    )
    await _safe_create(
        db.booking_requests,
        [("trip_id", ASCENDING), ("status", ASCENDING), ("created_at", DESCENDING)],
        name="booking_requests_by_trip_status",
    )

    await _safe_create(
        db.transactions,
        [("provider_payment_intent_id", ASCENDING)],
        name="transactions_by_provider_intent",
        unique=True,
    )
    await _safe_create(
        db.transactions,
        [("booking_id", ASCENDING), ("status", ASCENDING)],
        name="transactions_by_booking_status",
    )
    await _safe_create(
        db.transactions,
        [("passenger_id", ASCENDING), ("created_at", DESCENDING)],
        name="transactions_by_passenger_created",
    )
    await _safe_create(
        db.transactions,
        [("driver_id", ASCENDING), ("created_at", DESCENDING)],
        name="transactions_by_driver_created",
    )

    await _safe_create(
        db.audit_logs,
        [("when", ASCENDING)],
        name="audit_logs_by_when",
    )
    await _safe_create(
        db.audit_logs,
        [("entity", ASCENDING), ("action", ASCENDING), ("when", DESCENDING)],
        name="audit_logs_by_entity_action",
    )
    await _safe_create(
        db.audit_anchors,
        [("date", ASCENDING)],
        name="audit_anchors_by_date",
        unique=True,
    )
