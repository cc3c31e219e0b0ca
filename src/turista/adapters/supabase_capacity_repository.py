"""Supabase repository for the capacity ledger."""

from dataclasses import dataclass
from datetime import date

from supabase import Client

from turista.adapters.supabase_support import execute
from turista.domain.bookings import CapacityEntry
from turista.domain.errors import ConflictRetryError
from turista.services.capacity import CapacityRepository

_TABLE = "experience_capacity"


@dataclass
class SupabaseCapacityRepository(CapacityRepository):
    """Capacity counters with a version column used for compare-and-swap.

    The table has a unique constraint on (experience_id, date).
    """

    client: Client

    def get_entry(self, experience_id: str, day: date) -> CapacityEntry | None:
        """Return the counter row for a key, if present."""
        response = execute(
            self.client.table(_TABLE)
            .select("experience_id, date, booked, version")
            .eq("experience_id", experience_id)
            .eq("date", day.isoformat())
            .limit(1),
            resource=f"capacity {experience_id}",
        )
        if not response.data:
            return None
        return _to_entry(response.data[0])

    def list_entries(self, experience_id: str) -> list[CapacityEntry]:
        """Return every counter row for an experience."""
        response = execute(
            self.client.table(_TABLE)
            .select("experience_id, date, booked, version")
            .eq("experience_id", experience_id)
            .order("date"),
            resource=f"capacity {experience_id}",
        )
        return [_to_entry(row) for row in response.data or []]

    def compare_and_set(
        self, experience_id: str, day: date, expected_version: int, booked: int
    ) -> bool:
        """Insert or version-guarded update of a counter row."""
        resource = f"capacity {experience_id}/{day.isoformat()}"
        if expected_version == 0:
            try:
                response = execute(
                    self.client.table(_TABLE).insert(
                        {
                            "experience_id": experience_id,
                            "date": day.isoformat(),
                            "booked": booked,
                            "version": 1,
                        }
                    ),
                    resource=resource,
                )
            except ConflictRetryError:
                return False
            return bool(response.data)

        response = execute(
            self.client.table(_TABLE)
            .update({"booked": booked, "version": expected_version + 1})
            .eq("experience_id", experience_id)
            .eq("date", day.isoformat())
            .eq("version", expected_version),
            resource=resource,
        )
        return bool(response.data)


def _to_entry(row: dict[str, object]) -> CapacityEntry:
    return CapacityEntry(
        experience_id=str(row["experience_id"]),
        date=date.fromisoformat(str(row["date"])),
        booked=int(row["booked"]),
        version=int(row["version"]),
    )
