"""Domain models for experiences, capacity and bookings."""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class BookingStatus(str, Enum):
    """Booking lifecycle states. PENDING is never persisted."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ExperienceRecord:
    """Catalog data the booking flow needs about an experience."""

    id: str
    max_participants: int
    price: Decimal
    currency: str
    event_dates: tuple[date, ...] = ()

    def offers(self, day: date) -> bool:
        """Return True when the experience can be booked on the given day."""
        return not self.event_dates or day in self.event_dates


@dataclass(frozen=True)
class CapacityEntry:
    """Reserved count for one (experience, date) key.

    ``version`` is the compare-and-swap token; a missing row reads as version 0.
    """

    experience_id: str
    date: date
    booked: int
    version: int


@dataclass(frozen=True)
class PriceQuote:
    """Display breakdown of a booking price."""

    subtotal: Decimal
    service_fee: Decimal
    total: Decimal
    currency: str


@dataclass(frozen=True)
class BookingRecord:
    """Represents a persisted booking.

    ``release_pending`` is set while a cancelled booking still holds its
    spots in the capacity ledger.
    """

    id: UUID
    experience_id: str
    user_id: str
    date: date
    number_of_guests: int
    total_amount: Decimal
    currency: str
    status: BookingStatus
    created_at: datetime
    updated_at: datetime
    release_pending: bool = False
