"""Domain error codes for bookings and messaging."""

from enum import Enum


class ErrorCode(Enum):
    """Domain error codes."""

    CAPACITY_EXCEEDED = "CAPACITY_EXCEEDED"
    INVALID_GUEST_COUNT = "INVALID_GUEST_COUNT"
    PAST_DATE = "PAST_DATE"
    DATE_NOT_OFFERED = "DATE_NOT_OFFERED"
    EMPTY_CONTENT = "EMPTY_CONTENT"
    INVALID_PARTICIPANTS = "INVALID_PARTICIPANTS"
    READ_NOT_PERMITTED = "READ_NOT_PERMITTED"
    INVALID_BOOKING_STATE = "INVALID_BOOKING_STATE"
    BOOKING_DATE_PASSED = "BOOKING_DATE_PASSED"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT_RETRY = "CONFLICT_RETRY"
    UNAVAILABLE = "UNAVAILABLE"


class DomainError(Exception):
    """Base domain error with code and user-safe message."""

    def __init__(self, code: ErrorCode, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class CapacityExceededError(DomainError):
    """Raised when requested guests exceed the remaining spots for a date."""

    def __init__(self, requested: int, available: int) -> None:
        super().__init__(
            code=ErrorCode.CAPACITY_EXCEEDED,
            message=f"Only {available} spots left, {requested} requested",
        )
        self.requested = requested
        self.available = available


class InvalidGuestCountError(DomainError):
    """Raised when a booking asks for zero or fewer guests."""

    def __init__(self, guests: int) -> None:
        super().__init__(
            code=ErrorCode.INVALID_GUEST_COUNT,
            message="Number of guests must be at least 1",
        )
        self.guests = guests


class PastDateError(DomainError):
    """Raised when a booking targets a date before today."""

    def __init__(self, requested_date: object) -> None:
        super().__init__(
            code=ErrorCode.PAST_DATE,
            message="Cannot book a date in the past",
        )
        self.requested_date = requested_date


class DateNotOfferedError(DomainError):
    """Raised when the experience is not held on the requested date."""

    def __init__(self, requested_date: object) -> None:
        super().__init__(
            code=ErrorCode.DATE_NOT_OFFERED,
            message="The experience is not offered on this date",
        )
        self.requested_date = requested_date


class EmptyContentError(DomainError):
    """Raised when a message has no content after trimming."""

    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.EMPTY_CONTENT,
            message="Message content cannot be empty",
        )


class InvalidParticipantsError(DomainError):
    """Raised when a conversation would not have two distinct participants."""

    def __init__(self, message: str = "A conversation needs two distinct users") -> None:
        super().__init__(code=ErrorCode.INVALID_PARTICIPANTS, message=message)


class ReadNotPermittedError(DomainError):
    """Raised when someone other than the receiver marks a message read."""

    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.READ_NOT_PERMITTED,
            message="Only the receiver can mark a message as read",
        )


class InvalidBookingStateError(DomainError):
    """Raised for a status transition the booking lifecycle forbids."""

    def __init__(self, status: str) -> None:
        super().__init__(
            code=ErrorCode.INVALID_BOOKING_STATE,
            message=f"Booking cannot be cancelled from status {status}",
        )
        self.status = status


class BookingDatePassedError(DomainError):
    """Raised when cancelling after the experience date is disabled."""

    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.BOOKING_DATE_PASSED,
            message="Bookings cannot be cancelled after the experience date",
        )


class NotFoundError(DomainError):
    """Raised when a booking, experience, conversation or message is missing."""

    def __init__(self, entity: str, entity_id: object) -> None:
        super().__init__(
            code=ErrorCode.NOT_FOUND,
            message=f"{entity.capitalize()} not found",
        )
        self.entity = entity
        self.entity_id = entity_id


class ConflictRetryError(DomainError):
    """Raised when a concurrent writer won a compare-and-swap or unique insert."""

    def __init__(self, resource: str) -> None:
        super().__init__(
            code=ErrorCode.CONFLICT_RETRY,
            message=f"Concurrent update on {resource}",
        )
        self.resource = resource


class UnavailableError(DomainError):
    """Raised when the store is unreachable or contention did not settle."""

    def __init__(self, message: str = "Service temporarily unavailable") -> None:
        super().__init__(code=ErrorCode.UNAVAILABLE, message=message)
