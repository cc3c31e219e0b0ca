"""Supabase-backed message repository."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from supabase import Client

from turista.adapters.supabase_support import execute
from turista.domain.messaging import MessageRecord, message_from_dict
from turista.services.messages import MessageRepository

_COLUMNS = (
    "id, conversation_id, sender_id, receiver_id, content, timestamp, read, "
    "experience_id, booking_id"
)


@dataclass
class SupabaseMessageRepository(MessageRepository):
    """Supabase implementation for messages."""

    client: Client

    def create_message(  # noqa: PLR0913
        self,
        conversation_id: UUID,
        sender_id: str,
        receiver_id: str,
        content: str,
        timestamp: datetime,
        experience_id: str | None,
        booking_id: UUID | None,
    ) -> MessageRecord:
        """Insert a message row and return it."""
        response = execute(
            self.client.table("messages").insert(
                {
                    "conversation_id": str(conversation_id),
                    "sender_id": sender_id,
                    "receiver_id": receiver_id,
                    "content": content,
                    "timestamp": timestamp.isoformat(),
                    "read": False,
                    "experience_id": experience_id,
                    "booking_id": str(booking_id) if booking_id else None,
                }
            ),
            resource="messages",
        )
        if not response.data:
            raise RuntimeError("Failed to create message")
        return message_from_dict(response.data[0])

    def delete_message(self, message_id: UUID) -> None:
        """Delete a message row."""
        execute(
            self.client.table("messages").delete().eq("id", str(message_id)),
            resource=f"message {message_id}",
        )

    def get_message(self, message_id: UUID) -> MessageRecord | None:
        """Return a message by id, if present."""
        response = execute(
            self.client.table("messages")
            .select(_COLUMNS)
            .eq("id", str(message_id))
            .limit(1),
            resource=f"message {message_id}",
        )
        if not response.data:
            return None
        return message_from_dict(response.data[0])

    def list_messages(self, conversation_id: UUID) -> list[MessageRecord]:
        """Return a conversation's messages ordered by timestamp."""
        response = execute(
            self.client.table("messages")
            .select(_COLUMNS)
            .eq("conversation_id", str(conversation_id))
            .order("timestamp"),
            resource="messages",
        )
        return [message_from_dict(row) for row in response.data or []]

    def mark_read(self, message_id: UUID) -> bool:
        """Set read=true only on an unread row."""
        response = execute(
            self.client.table("messages")
            .update({"read": True})
            .eq("id", str(message_id))
            .eq("read", False),
            resource=f"message {message_id}",
        )
        return bool(response.data)

    def count_unread(self, receiver_id: str) -> int:
        """Count unread messages addressed to a user."""
        response = execute(
            self.client.table("messages")
            .select("id", count="exact")
            .eq("receiver_id", receiver_id)
            .eq("read", False),
            resource="messages",
        )
        if response.count is not None:
            return int(response.count)
        return len(response.data or [])
