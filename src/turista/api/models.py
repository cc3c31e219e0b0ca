"""Pydantic models for API request payloads."""

from datetime import date
from uuid import UUID

from pydantic import BaseModel


class BookingRequest(BaseModel):
    """Reserve spots on an experience date."""

    experience_id: str
    date: date
    guests: int


class ConversationRequest(BaseModel):
    """Open (or find) the conversation with another user."""

    participant_id: str


class MessageRequest(BaseModel):
    """Message posted into an existing conversation."""

    content: str
    experience_id: str | None = None
    booking_id: UUID | None = None


class DirectMessageRequest(MessageRequest):
    """Message addressed to a user; the conversation is resolved for it."""

    receiver_id: str
