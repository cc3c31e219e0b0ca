"""Supabase-backed read access to the experience catalog."""

from dataclasses import dataclass
from datetime import date

from supabase import Client

from turista.adapters.supabase_support import execute, to_decimal
from turista.domain.bookings import ExperienceRecord
from turista.services.bookings import ExperienceCatalog


@dataclass
class SupabaseExperienceCatalog(ExperienceCatalog):
    """Reads the columns of ``experiences`` the booking flow needs."""

    client: Client

    def get_experience(self, experience_id: str) -> ExperienceRecord | None:
        """Return an experience by id, if present."""
        response = execute(
            self.client.table("experiences")
            .select("id, max_participants, price, currency, event_dates")
            .eq("id", experience_id)
            .limit(1),
            resource=f"experience {experience_id}",
        )
        if not response.data:
            return None
        row = response.data[0]
        return ExperienceRecord(
            id=str(row["id"]),
            max_participants=int(row["max_participants"]),
            price=to_decimal(row["price"]),
            currency=row.get("currency") or "",
            event_dates=tuple(
                date.fromisoformat(value) for value in row.get("event_dates") or []
            ),
        )
