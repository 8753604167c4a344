from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, Dict, Literal, Mapping, Optional

from wheels.errors import InvalidStateError, ValidationError
from wheels.utils import now_utc


BookingStatus = Literal[
    "pending",
    "accepted",
    "declined",
    "canceled_by_passenger",
    "expired",
]

BOOKING_STATUSES = frozenset({"pending", "accepted", "declined", "canceled_by_passenger", "expired"})

# pending/accepted requests still hold (or may hold) seats on the trip
ACTIVE_BOOKING_STATUSES = frozenset({"pending", "accepted"})

# Fields a passenger may edit on a pending request
PASSENGER_MUTABLE_FIELDS = frozenset({"seats", "note"})

MAX_NOTE_LENGTH = 300


@dataclass
class BookingRequest:
    """A passenger's request for seats on a trip offer."""

    trip_id: str
    passenger_id: str
    id: Optional[str] = None
    status: str = "pending"
    seats: int = 1
    note: str = ""
    accepted_at: Optional[datetime] = None
    accepted_by: Optional[str] = None
    declined_at: Optional[datetime] = None
    declined_by: Optional[str] = None
    canceled_at: Optional[datetime] = None
    expired_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=now_utc)
    updated_at: datetime = field(default_factory=now_utc)

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        if not self.trip_id:
            raise ValidationError("Trip ID is required", {"field": "trip_id"})

        if not self.passenger_id:
            raise ValidationError("Passenger ID is required", {"field": "passenger_id"})

        if self.status not in BOOKING_STATUSES:
            raise ValidationError(f"Invalid status: {self.status}", {"field": "status", "value": self.status})

        # bool is an int subclass; True must not count as one seat
        if isinstance(self.seats, bool) or not isinstance(self.seats, int) or self.seats < 1:
            raise ValidationError("Seats must be a positive integer", {"field": "seats", "value": self.seats})

        if self.note and len(self.note) > MAX_NOTE_LENGTH:
            raise ValidationError(
                f"Note cannot exceed {MAX_NOTE_LENGTH} characters",
                {"field": "note", "length": len(self.note)},
            )

    # -- predicates -------------------------------------------------------

    def is_active(self) -> bool:
        return self.status in ACTIVE_BOOKING_STATUSES

    def is_pending(self) -> bool:
        return self.status == "pending"

    def is_accepted(self) -> bool:
        return self.status == "accepted"

    def is_canceled_by_passenger(self) -> bool:
        return self.status == "canceled_by_passenger"

    def can_be_accepted(self) -> bool:
        return self.status == "pending"

    def can_be_declined(self) -> bool:
        return self.status == "pending"

    def can_be_canceled_by_passenger(self) -> bool:
        return self.status == "pending"

    def belongs_to_passenger(self, passenger_id: str) -> bool:
        return str(self.passenger_id) == str(passenger_id)

    # -- mutations --------------------------------------------------------

    def _leave_pending(self, target: str) -> datetime:
        if not self.is_pending():
            raise InvalidStateError(
                f"Cannot move booking from {self.status} to {target}. Only pending bookings can change status.",
                details={"booking_id": self.id, "current_status": self.status, "target_status": target},
            )
        now = now_utc()
        self.status = target
        self.updated_at = now
        return now

    def cancel_by_passenger(self) -> "BookingRequest":
        """Passenger-initiated cancel. Idempotent on an already canceled request."""
        if self.is_canceled_by_passenger():
            return self

        if not self.can_be_canceled_by_passenger():
            raise InvalidStateError(
                f"Cannot cancel booking with status: {self.status}. Only pending bookings can be canceled.",
                code="invalid_status_for_cancel",
                details={"booking_id": self.id, "current_status": self.status},
            )

        self.canceled_at = self._leave_pending("canceled_by_passenger")
        self.validate()
        return self

    def accept(self, driver_id: str) -> "BookingRequest":
        self.accepted_at = self._leave_pending("accepted")
        self.accepted_by = driver_id
        self.validate()
        return self

    def decline(self, driver_id: str) -> "BookingRequest":
        self.declined_at = self._leave_pending("declined")
        self.declined_by = driver_id
        self.validate()
        return self

    def expire(self) -> "BookingRequest":
        self.expired_at = self._leave_pending("expired")
        self.validate()
        return self

    def apply_changes(self, changes: Mapping[str, Any]) -> "BookingRequest":
        """Apply passenger edits; every key must be in PASSENGER_MUTABLE_FIELDS."""
        rejected = sorted(set(changes) - PASSENGER_MUTABLE_FIELDS)
        if rejected:
            raise ValidationError(
                "Fields cannot be modified: " + ", ".join(rejected),
                {"fields": rejected, "allowed": sorted(PASSENGER_MUTABLE_FIELDS)},
            )
        if not self.is_pending():
            raise InvalidStateError(
                f"Cannot modify booking with status: {self.status}",
                details={"booking_id": self.id, "current_status": self.status},
            )

        previous = {name: getattr(self, name) for name in changes}
        for name, value in changes.items():
            setattr(self, name, value)
        try:
            self.validate()
        except ValidationError:
            for name, value in previous.items():
                setattr(self, name, value)
            raise
        self.updated_at = now_utc()
        return self

    # -- persistence ------------------------------------------------------

    def to_document(self) -> Dict[str, Any]:
        """Mongo document without `_id`."""
        return {f.name: getattr(self, f.name) for f in fields(self) if f.name != "id"}

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> "BookingRequest":
        known = {f.name for f in fields(cls)}
        data = {k: v for k, v in doc.items() if k in known and k != "id"}
        data["id"] = str(doc["_id"]) if doc.get("_id") is not None else doc.get("id")
        data["trip_id"] = str(doc.get("trip_id") or "")
        data["passenger_id"] = str(doc.get("passenger_id") or "")
        return cls(**data)
