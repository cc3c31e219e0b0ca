"""Capacity ledger: per-experience, per-date reserved slot counters."""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Protocol

from turista.domain.bookings import CapacityEntry, ExperienceRecord
from turista.domain.errors import CapacityExceededError, ConflictRetryError
from turista.services.retry import RetryPolicy, retry_on_conflict

logger = logging.getLogger(__name__)


class CapacityRepository(Protocol):
    """Persistence interface for capacity counters."""

    def get_entry(self, experience_id: str, day: date) -> CapacityEntry | None:
        """Return the counter for an (experience, date) key, if present."""

    def list_entries(self, experience_id: str) -> list[CapacityEntry]:
        """Return all counters for an experience."""

    def compare_and_set(
        self, experience_id: str, day: date, expected_version: int, booked: int
    ) -> bool:
        """Write ``booked`` only if the stored version is ``expected_version``.

        Version 0 means the row does not exist yet. Returns False when another
        writer got there first.
        """


@dataclass
class CapacityLedger:
    """Single writer of booked-participant counters.

    Every write is a read followed by a version-checked compare-and-swap, so
    two callers racing for the last spot cannot both succeed.
    """

    repository: CapacityRepository
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)

    def available_spots(self, experience: ExperienceRecord, day: date) -> int:
        """Return the number of spots still free on a date."""
        entry = self.repository.get_entry(experience.id, day)
        booked = entry.booked if entry else 0
        return max(0, experience.max_participants - booked)

    def booked_participants(self, experience_id: str) -> dict[date, int]:
        """Return the booked-participants map for an experience."""
        return {
            entry.date: entry.booked
            for entry in self.repository.list_entries(experience_id)
        }

    def reserve(self, experience: ExperienceRecord, day: date, count: int) -> int:
        """Reserve ``count`` spots and return the new booked total."""

        def attempt() -> int:
            booked, version = self._read(experience.id, day)
            if booked + count > experience.max_participants:
                raise CapacityExceededError(
                    requested=count,
                    available=max(0, experience.max_participants - booked),
                )
            updated = booked + count
            self._write(experience.id, day, version, updated)
            return updated

        updated = retry_on_conflict(attempt, self.retry_policy)
        logger.info(
            "Reserved %s spots for %s on %s (%s/%s)",
            count,
            experience.id,
            day.isoformat(),
            updated,
            experience.max_participants,
        )
        return updated

    def release(self, experience_id: str, day: date, count: int) -> int:
        """Give back ``count`` spots, never going below zero."""

        def attempt() -> int:
            booked, version = self._read(experience_id, day)
            updated = max(0, booked - count)
            if updated == booked:
                return booked
            self._write(experience_id, day, version, updated)
            return updated

        updated = retry_on_conflict(attempt, self.retry_policy)
        logger.info(
            "Released %s spots for %s on %s (now %s)",
            count,
            experience_id,
            day.isoformat(),
            updated,
        )
        return updated

    def _read(self, experience_id: str, day: date) -> tuple[int, int]:
        entry = self.repository.get_entry(experience_id, day)
        if entry is None:
            return 0, 0
        return entry.booked, entry.version

    def _write(self, experience_id: str, day: date, version: int, booked: int) -> None:
        written = self.repository.compare_and_set(
            experience_id, day, expected_version=version, booked=booked
        )
        if not written:
            raise ConflictRetryError(f"capacity {experience_id}/{day.isoformat()}")
