"""Domain models for conversations and messages."""

from dataclasses import dataclass, replace
from datetime import datetime
from uuid import UUID

_PAIR_SEPARATOR = "|"


def pair_key(user_a: str, user_b: str) -> str:
    """Return the canonical key of an unordered participant pair."""
    low, high = sorted((user_a, user_b))
    return f"{low}{_PAIR_SEPARATOR}{high}"


@dataclass(frozen=True)
class MessageRecord:
    """Represents a persisted message."""

    id: UUID
    conversation_id: UUID
    sender_id: str
    receiver_id: str
    content: str
    timestamp: datetime
    read: bool = False
    experience_id: str | None = None
    booking_id: UUID | None = None

    def mark_read(self) -> "MessageRecord":
        return replace(self, read=True)


@dataclass(frozen=True)
class ConversationRecord:
    """Represents a conversation between exactly two users."""

    id: UUID
    participants: tuple[str, str]
    pair_key: str
    created_at: datetime
    updated_at: datetime
    last_message: MessageRecord | None = None

    def other_participant(self, user_id: str) -> str:
        """Return the participant that is not ``user_id``."""
        first, second = self.participants
        return second if first == user_id else first

    def has_participant(self, user_id: str) -> bool:
        return user_id in self.participants


def message_to_dict(message: MessageRecord) -> dict[str, object]:
    """Serialize a message for storage snapshots and realtime payloads."""
    return {
        "id": str(message.id),
        "conversation_id": str(message.conversation_id),
        "sender_id": message.sender_id,
        "receiver_id": message.receiver_id,
        "content": message.content,
        "timestamp": message.timestamp.isoformat(),
        "read": message.read,
        "experience_id": message.experience_id,
        "booking_id": str(message.booking_id) if message.booking_id else None,
    }


def message_from_dict(row: dict[str, object]) -> MessageRecord:
    """Build a message from a stored row or snapshot."""
    booking_id = row.get("booking_id")
    experience_id = row.get("experience_id")
    return MessageRecord(
        id=UUID(str(row["id"])),
        conversation_id=UUID(str(row["conversation_id"])),
        sender_id=str(row["sender_id"]),
        receiver_id=str(row["receiver_id"]),
        content=str(row["content"]),
        timestamp=datetime.fromisoformat(str(row["timestamp"])),
        read=bool(row.get("read", False)),
        experience_id=str(experience_id) if experience_id else None,
        booking_id=UUID(str(booking_id)) if booking_id else None,
    )


def conversation_to_dict(conversation: ConversationRecord) -> dict[str, object]:
    """Serialize a conversation for realtime payloads and API responses."""
    return {
        "id": str(conversation.id),
        "participants": list(conversation.participants),
        "updated_at": conversation.updated_at.isoformat(),
        "last_message": message_to_dict(conversation.last_message)
        if conversation.last_message
        else None,
    }
