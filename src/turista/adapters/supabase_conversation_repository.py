"""Supabase repository for conversations and their last-message projection."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from supabase import Client

from turista.adapters.supabase_support import execute
from turista.domain.messaging import (
    ConversationRecord,
    MessageRecord,
    message_from_dict,
    message_to_dict,
)
from turista.services.conversations import ConversationRepository
from turista.services.messages import ConversationStore

_COLUMNS = "id, participants, pair_key, last_message, created_at, updated_at"


@dataclass
class SupabaseConversationRepository(ConversationRepository, ConversationStore):
    """Conversations keyed by a unique canonical ``pair_key`` column."""

    client: Client

    def get_by_pair_key(self, key: str) -> ConversationRecord | None:
        """Return the conversation for a pair key, if present."""
        response = execute(
            self.client.table("conversations")
            .select(_COLUMNS)
            .eq("pair_key", key)
            .limit(1),
            resource=f"conversation {key}",
        )
        if not response.data:
            return None
        return _to_conversation(response.data[0])

    def create_conversation(
        self, participants: tuple[str, str], key: str, created_at: datetime
    ) -> ConversationRecord:
        """Insert a conversation; a duplicate pair key raises ConflictRetryError."""
        response = execute(
            self.client.table("conversations").insert(
                {
                    "participants": list(participants),
                    "pair_key": key,
                    "last_message": None,
                    "created_at": created_at.isoformat(),
                    "updated_at": created_at.isoformat(),
                }
            ),
            resource=f"conversation {key}",
        )
        if not response.data:
            raise RuntimeError("Failed to create conversation")
        return _to_conversation(response.data[0])

    def get_conversation(self, conversation_id: UUID) -> ConversationRecord | None:
        """Return a conversation by id, if present."""
        response = execute(
            self.client.table("conversations")
            .select(_COLUMNS)
            .eq("id", str(conversation_id))
            .limit(1),
            resource=f"conversation {conversation_id}",
        )
        if not response.data:
            return None
        return _to_conversation(response.data[0])

    def list_for_participant(
        self, user_id: str, limit: int
    ) -> list[ConversationRecord]:
        """Return conversations containing the user, most recent first."""
        response = execute(
            self.client.table("conversations")
            .select(_COLUMNS)
            .contains("participants", [user_id])
            .order("updated_at", desc=True)
            .limit(limit),
            resource="conversations",
        )
        return [_to_conversation(row) for row in response.data or []]

    def advance_last_message(
        self, conversation_id: UUID, message: MessageRecord
    ) -> bool:
        """Write the projection only while stored updated_at is older."""
        response = execute(
            self.client.table("conversations")
            .update(
                {
                    "last_message": message_to_dict(message),
                    "updated_at": message.timestamp.isoformat(),
                }
            )
            .eq("id", str(conversation_id))
            .lt("updated_at", message.timestamp.isoformat()),
            resource=f"conversation {conversation_id}",
        )
        return bool(response.data)

    def mark_last_message_read(
        self, conversation_id: UUID, message_id: UUID
    ) -> ConversationRecord | None:
        """Flag the projection read if it still points at the message."""
        conversation = self.get_conversation(conversation_id)
        if conversation is None or conversation.last_message is None:
            return None
        if conversation.last_message.id != message_id:
            return None
        snapshot = message_to_dict(conversation.last_message.mark_read())
        response = execute(
            self.client.table("conversations")
            .update({"last_message": snapshot})
            .eq("id", str(conversation_id))
            .eq("last_message->>id", str(message_id)),
            resource=f"conversation {conversation_id}",
        )
        if not response.data:
            return None
        return _to_conversation(response.data[0])


def _to_conversation(row: dict[str, object]) -> ConversationRecord:
    first, second = row["participants"]
    last_message = row.get("last_message")
    return ConversationRecord(
        id=UUID(str(row["id"])),
        participants=(str(first), str(second)),
        pair_key=str(row["pair_key"]),
        created_at=datetime.fromisoformat(str(row["created_at"])),
        updated_at=datetime.fromisoformat(str(row["updated_at"])),
        last_message=message_from_dict(last_message) if last_message else None,
    )
