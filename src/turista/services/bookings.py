"""Booking lifecycle: create against the capacity ledger, cancel and release."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol
from uuid import UUID

from turista.config import business_today
from turista.domain.bookings import (
    BookingRecord,
    BookingStatus,
    ExperienceRecord,
    PriceQuote,
)
from turista.domain.errors import (
    BookingDatePassedError,
    DateNotOfferedError,
    InvalidBookingStateError,
    InvalidGuestCountError,
    NotFoundError,
    PastDateError,
    UnavailableError,
)
from turista.services.capacity import CapacityLedger

logger = logging.getLogger(__name__)

DEFAULT_SERVICE_FEE_RATE = Decimal("0.12")


class ExperienceCatalog(Protocol):
    """Read access to the external experience catalog."""

    def get_experience(self, experience_id: str) -> ExperienceRecord | None:
        """Return the experience, if it exists."""


class BookingRepository(Protocol):
    """Persistence interface for bookings."""

    def create_booking(  # noqa: PLR0913
        self,
        experience_id: str,
        user_id: str,
        day: date,
        number_of_guests: int,
        total_amount: Decimal,
        currency: str,
        status: BookingStatus,
        created_at: datetime,
    ) -> BookingRecord:
        """Create a booking row and return it."""

    def get_booking(self, booking_id: UUID) -> BookingRecord | None:
        """Return a booking by id, if present."""

    def list_bookings_for_user(self, user_id: str) -> list[BookingRecord]:
        """Return a user's bookings, newest first."""

    def mark_cancelled(self, booking_id: UUID, updated_at: datetime) -> bool:
        """Move a confirmed booking to cancelled with its release pending.

        Returns False when the booking was not confirmed.
        """

    def claim_release(self, booking_id: UUID) -> bool:
        """Clear the release-pending flag; True only for the caller that cleared it."""

    def restore_release(self, booking_id: UUID) -> None:
        """Set the release-pending flag again after a failed release."""


def quote_price(
    price: Decimal, guests: int, fee_rate: Decimal, currency: str
) -> PriceQuote:
    """Compute subtotal, service fee and total.

    The fee is rounded to a whole currency unit with ties rounded up.
    """
    subtotal = price * guests
    service_fee = (subtotal * fee_rate).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return PriceQuote(
        subtotal=subtotal,
        service_fee=service_fee,
        total=subtotal + service_fee,
        currency=currency,
    )


def _utc_today() -> date:
    return business_today("UTC")


@dataclass
class BookingService:
    """Application service for the booking lifecycle."""

    catalog: ExperienceCatalog
    repository: BookingRepository
    ledger: CapacityLedger
    fee_rate: Decimal = DEFAULT_SERVICE_FEE_RATE
    allow_cancel_after_date: bool = True
    today: Callable[[], date] = field(default=_utc_today)

    def get_experience(self, experience_id: str) -> ExperienceRecord:
        """Return an experience or raise NotFoundError."""
        experience = self.catalog.get_experience(experience_id)
        if experience is None:
            raise NotFoundError("experience", experience_id)
        return experience

    def available_spots(self, experience_id: str, day: date) -> int:
        """Return the free spots for an experience on a date."""
        return self.ledger.available_spots(self.get_experience(experience_id), day)

    def booked_participants(self, experience_id: str) -> dict[date, int]:
        """Return the booked-participants map for an experience."""
        self.get_experience(experience_id)
        return self.ledger.booked_participants(experience_id)

    def quote(self, experience_id: str, guests: int) -> PriceQuote:
        """Return the price breakdown for a number of guests."""
        if guests <= 0:
            raise InvalidGuestCountError(guests)
        experience = self.get_experience(experience_id)
        return quote_price(experience.price, guests, self.fee_rate, experience.currency)

    def create_booking(
        self, experience_id: str, user_id: str, day: date, guests: int
    ) -> BookingRecord:
        """Reserve capacity and persist a confirmed booking."""
        if guests <= 0:
            raise InvalidGuestCountError(guests)
        if day < self.today():
            raise PastDateError(day)
        experience = self.get_experience(experience_id)
        if not experience.offers(day):
            raise DateNotOfferedError(day)

        self.ledger.reserve(experience, day, guests)
        price = quote_price(experience.price, guests, self.fee_rate, experience.currency)
        try:
            booking = self.repository.create_booking(
                experience_id=experience.id,
                user_id=user_id,
                day=day,
                number_of_guests=guests,
                total_amount=price.total,
                currency=experience.currency,
                status=BookingStatus.CONFIRMED,
                created_at=datetime.now(tz=UTC),
            )
        except Exception:
            logger.warning(
                "Booking insert failed, releasing %s spots for %s on %s",
                guests,
                experience.id,
                day.isoformat(),
            )
            self._return_reservation(experience.id, day, guests)
            raise

        logger.info(
            "Booking %s confirmed for user %s (%s guests on %s)",
            booking.id,
            user_id,
            guests,
            day.isoformat(),
        )
        return booking

    def cancel_booking(self, booking_id: UUID) -> BookingRecord:
        """Cancel a confirmed booking and release its spots.

        A cancelled booking never returns to confirmed. Cancelling it again is
        a no-op, except that spots left behind by an earlier failed release
        are released now.
        """
        booking = self.get_booking(booking_id)
        if booking.status == BookingStatus.CONFIRMED:
            if not self.allow_cancel_after_date and booking.date < self.today():
                raise BookingDatePassedError()
            cancelled = self.repository.mark_cancelled(
                booking_id, updated_at=datetime.now(tz=UTC)
            )
            if cancelled:
                logger.info("Booking %s cancelled", booking_id)
            booking = self.get_booking(booking_id)
        if booking.status != BookingStatus.CANCELLED:
            raise InvalidBookingStateError(booking.status.value)

        if booking.release_pending:
            self._release_spots(booking)
        return self.get_booking(booking_id)

    def get_booking(self, booking_id: UUID) -> BookingRecord:
        """Return a booking or raise NotFoundError."""
        booking = self.repository.get_booking(booking_id)
        if booking is None:
            raise NotFoundError("booking", booking_id)
        return booking

    def list_bookings(self, user_id: str) -> list[BookingRecord]:
        """Return the user's bookings, newest first."""
        bookings = self.repository.list_bookings_for_user(user_id)
        return sorted(bookings, key=lambda booking: booking.created_at, reverse=True)

    def _release_spots(self, booking: BookingRecord) -> None:
        # Only the caller that clears the flag gives the spots back.
        if not self.repository.claim_release(booking.id):
            return
        try:
            self.ledger.release(
                booking.experience_id, booking.date, booking.number_of_guests
            )
        except Exception as exc:
            try:
                self.repository.restore_release(booking.id)
            except Exception:
                logger.exception(
                    "Failed to keep release pending after release error",
                    extra={"booking_id": str(booking.id)},
                )
            raise UnavailableError("Could not release booked spots") from exc
        logger.info(
            "Released %s spots of cancelled booking %s",
            booking.number_of_guests,
            booking.id,
        )

    def _return_reservation(self, experience_id: str, day: date, guests: int) -> None:
        try:
            self.ledger.release(experience_id, day, guests)
        except Exception:
            logger.exception(
                "Failed to release reservation after booking insert error",
                extra={
                    "experience_id": experience_id,
                    "date": day.isoformat(),
                    "guests": guests,
                },
            )
