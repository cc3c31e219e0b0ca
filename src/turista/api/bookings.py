"""Availability and booking endpoints."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status

from turista.api.identity import current_user_id, get_container
from turista.api.models import BookingRequest
from turista.domain.bookings import BookingRecord, PriceQuote
from turista.domain.errors import NotFoundError

router = APIRouter(tags=["bookings"])


@router.get("/experiences/{experience_id}/availability")
def availability(
    experience_id: str, request: Request, day: date = Query(alias="date")
) -> dict[str, object]:
    """Return the free spots for a date."""
    service = get_container(request).booking_service
    spots = service.available_spots(experience_id, day)
    return {
        "experience_id": experience_id,
        "date": day.isoformat(),
        "available_spots": spots,
    }


@router.get("/experiences/{experience_id}/capacity")
def capacity(experience_id: str, request: Request) -> dict[str, object]:
    """Return the booked participants per date."""
    service = get_container(request).booking_service
    booked = service.booked_participants(experience_id)
    return {
        "experience_id": experience_id,
        "booked_participants": {day.isoformat(): count for day, count in booked.items()},
    }


@router.get("/experiences/{experience_id}/quote")
def quote(experience_id: str, guests: int, request: Request) -> dict[str, object]:
    """Return the price breakdown for a number of guests."""
    service = get_container(request).booking_service
    return _serialize_quote(service.quote(experience_id, guests))


@router.post("/bookings", status_code=status.HTTP_201_CREATED)
def create_booking(
    payload: BookingRequest,
    request: Request,
    user_id: str = Depends(current_user_id),
) -> dict[str, object]:
    """Reserve spots and confirm a booking for the caller."""
    service = get_container(request).booking_service
    booking = service.create_booking(
        experience_id=payload.experience_id,
        user_id=user_id,
        day=payload.date,
        guests=payload.guests,
    )
    return _serialize_booking(booking)


@router.get("/bookings")
def list_bookings(
    request: Request, user_id: str = Depends(current_user_id)
) -> dict[str, object]:
    """Return the caller's bookings."""
    service = get_container(request).booking_service
    return {
        "bookings": [_serialize_booking(item) for item in service.list_bookings(user_id)]
    }


@router.get("/bookings/{booking_id}")
def get_booking(
    booking_id: UUID, request: Request, user_id: str = Depends(current_user_id)
) -> dict[str, object]:
    """Return one of the caller's bookings."""
    service = get_container(request).booking_service
    return _serialize_booking(_owned_booking(service.get_booking(booking_id), user_id))


@router.post("/bookings/{booking_id}/cancel")
def cancel_booking(
    booking_id: UUID, request: Request, user_id: str = Depends(current_user_id)
) -> dict[str, object]:
    """Cancel one of the caller's bookings."""
    service = get_container(request).booking_service
    _owned_booking(service.get_booking(booking_id), user_id)
    return _serialize_booking(service.cancel_booking(booking_id))


def _owned_booking(booking: BookingRecord, user_id: str) -> BookingRecord:
    """Hide other users' bookings behind a not-found error."""
    if booking.user_id != user_id:
        raise NotFoundError("booking", booking.id)
    return booking


def _serialize_booking(booking: BookingRecord) -> dict[str, object]:
    return {
        "id": str(booking.id),
        "experience_id": booking.experience_id,
        "user_id": booking.user_id,
        "date": booking.date.isoformat(),
        "number_of_guests": booking.number_of_guests,
        "total_amount": str(booking.total_amount),
        "currency": booking.currency,
        "status": booking.status.value,
        "created_at": booking.created_at.isoformat(),
    }


def _serialize_quote(price: PriceQuote) -> dict[str, object]:
    return {
        "subtotal": str(price.subtotal),
        "service_fee": str(price.service_fee),
        "total": str(price.total),
        "currency": price.currency,
    }
