"""Supabase-backed booking repository."""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from supabase import Client

from turista.adapters.supabase_support import execute, to_decimal
from turista.domain.bookings import BookingRecord, BookingStatus
from turista.services.bookings import BookingRepository

_COLUMNS = (
    "id, experience_id, user_id, date, number_of_guests, total_amount, currency, "
    "status, release_pending, created_at, updated_at"
)


@dataclass
class SupabaseBookingRepository(BookingRepository):
    """Supabase implementation for bookings."""

    client: Client

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
        response = execute(
            self.client.table("bookings").insert(
                {
                    "experience_id": experience_id,
                    "user_id": user_id,
                    "date": day.isoformat(),
                    "number_of_guests": number_of_guests,
                    "total_amount": str(total_amount),
                    "currency": currency,
                    "status": status.value,
                    "release_pending": False,
                    "created_at": created_at.isoformat(),
                    "updated_at": created_at.isoformat(),
                }
            ),
            resource="bookings",
        )
        if not response.data:
            raise RuntimeError("Failed to create booking")
        return _to_booking(response.data[0])

    def get_booking(self, booking_id: UUID) -> BookingRecord | None:
        """Return a booking by id, if present."""
        response = execute(
            self.client.table("bookings")
            .select(_COLUMNS)
            .eq("id", str(booking_id))
            .limit(1),
            resource=f"booking {booking_id}",
        )
        if not response.data:
            return None
        return _to_booking(response.data[0])

    def list_bookings_for_user(self, user_id: str) -> list[BookingRecord]:
        """Return a user's bookings, newest first."""
        response = execute(
            self.client.table("bookings")
            .select(_COLUMNS)
            .eq("user_id", user_id)
            .order("created_at", desc=True),
            resource="bookings",
        )
        return [_to_booking(row) for row in response.data or []]

    def mark_cancelled(self, booking_id: UUID, updated_at: datetime) -> bool:
        """Cancel a confirmed booking and flag its spots for release."""
        response = execute(
            self.client.table("bookings")
            .update(
                {
                    "status": BookingStatus.CANCELLED.value,
                    "release_pending": True,
                    "updated_at": updated_at.isoformat(),
                }
            )
            .eq("id", str(booking_id))
            .eq("status", BookingStatus.CONFIRMED.value),
            resource=f"booking {booking_id}",
        )
        return bool(response.data)

    def claim_release(self, booking_id: UUID) -> bool:
        """Clear the release flag; False when another caller already did."""
        response = execute(
            self.client.table("bookings")
            .update({"release_pending": False})
            .eq("id", str(booking_id))
            .eq("release_pending", True),
            resource=f"booking {booking_id}",
        )
        return bool(response.data)

    def restore_release(self, booking_id: UUID) -> None:
        """Flag the booking's spots for release again."""
        execute(
            self.client.table("bookings")
            .update({"release_pending": True})
            .eq("id", str(booking_id)),
            resource=f"booking {booking_id}",
        )


def _to_booking(row: dict[str, object]) -> BookingRecord:
    return BookingRecord(
        id=UUID(str(row["id"])),
        experience_id=str(row["experience_id"]),
        user_id=str(row["user_id"]),
        date=date.fromisoformat(str(row["date"])),
        number_of_guests=int(row["number_of_guests"]),
        total_amount=to_decimal(row["total_amount"]),
        currency=str(row.get("currency") or ""),
        status=BookingStatus(row["status"]),
        created_at=datetime.fromisoformat(str(row["created_at"])),
        updated_at=datetime.fromisoformat(str(row["updated_at"])),
        release_pending=bool(row.get("release_pending", False)),
    )
