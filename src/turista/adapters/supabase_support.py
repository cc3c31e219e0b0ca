"""Shared helpers for Supabase repositories."""

import logging
from decimal import Decimal
from typing import Any, Protocol

import httpx
from postgrest.exceptions import APIError

from turista.domain.errors import ConflictRetryError, UnavailableError

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"


class Executable(Protocol):
    """A built PostgREST request."""

    def execute(self) -> Any:
        """Send the request and return the response."""


def execute(query: Executable, resource: str) -> Any:
    """Run a query, translating store failures into domain errors.

    Unique violations become ConflictRetryError and transport failures become
    UnavailableError. Other PostgREST errors propagate unchanged.
    """
    try:
        return query.execute()
    except httpx.HTTPError as exc:
        logger.warning("Supabase request failed for %s: %s", resource, exc)
        raise UnavailableError("Store unreachable") from exc
    except APIError as exc:
        if exc.code == UNIQUE_VIOLATION:
            raise ConflictRetryError(resource) from exc
        raise


def to_decimal(value: object) -> Decimal:
    """Convert a PostgREST numeric value without float artifacts."""
    return Decimal(str(value))
