"""Message store with last-message projection and read-state tracking."""

import logging
import threading
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from typing import Protocol
from uuid import UUID

from turista.domain.errors import (
    EmptyContentError,
    InvalidParticipantsError,
    NotFoundError,
    ReadNotPermittedError,
    UnavailableError,
)
from turista.domain.messaging import ConversationRecord, MessageRecord
from turista.services.conversations import ConversationResolver
from turista.services.realtime import RealtimeNotifier

logger = logging.getLogger(__name__)

_TICK = timedelta(microseconds=1)
_LOCK_STRIPES = 64


class MessageRepository(Protocol):
    """Persistence interface for messages."""

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
        """Append a message and return it."""

    def delete_message(self, message_id: UUID) -> None:
        """Remove a message whose projection update failed."""

    def get_message(self, message_id: UUID) -> MessageRecord | None:
        """Return a message by id, if present."""

    def list_messages(self, conversation_id: UUID) -> list[MessageRecord]:
        """Return a conversation's messages, oldest first."""

    def mark_read(self, message_id: UUID) -> bool:
        """Flip read to true if it is false; return whether a row changed."""

    def count_unread(self, receiver_id: str) -> int:
        """Count unread messages addressed to a user."""


class ConversationStore(Protocol):
    """Conversation reads and last-message projection writes."""

    def get_conversation(self, conversation_id: UUID) -> ConversationRecord | None:
        """Return a conversation by id, if present."""

    def list_for_participant(
        self, user_id: str, limit: int
    ) -> list[ConversationRecord]:
        """Return conversations that include the user."""

    def advance_last_message(
        self, conversation_id: UUID, message: MessageRecord
    ) -> bool:
        """Set the projection and updated_at if ``message`` is newer."""

    def mark_last_message_read(
        self, conversation_id: UUID, message_id: UUID
    ) -> ConversationRecord | None:
        """Flag the projection read when it points at ``message_id``."""


@dataclass
class MessageService:
    """Append-only message log scoped to conversations."""

    messages: MessageRepository
    conversations: ConversationStore
    resolver: ConversationResolver
    notifier: RealtimeNotifier
    conversation_list_limit: int = 50
    _locks: tuple[threading.Lock, ...] = field(
        default_factory=lambda: tuple(threading.Lock() for _ in range(_LOCK_STRIPES)),
        init=False,
        repr=False,
    )

    def send_message(  # noqa: PLR0913
        self,
        conversation_id: UUID,
        sender_id: str,
        receiver_id: str,
        content: str,
        experience_id: str | None = None,
        booking_id: UUID | None = None,
    ) -> UUID:
        """Append a message and advance the conversation projection.

        Sends into one conversation are serialized in this process so that
        timestamps, projection writes and published events share one order.
        """
        text = _clean_content(content)
        with self._lock_for(conversation_id):
            return self._append(
                conversation_id, sender_id, receiver_id, text, experience_id, booking_id
            )

    def _append(  # noqa: PLR0913
        self,
        conversation_id: UUID,
        sender_id: str,
        receiver_id: str,
        text: str,
        experience_id: str | None,
        booking_id: UUID | None,
    ) -> UUID:
        conversation = self.get_conversation(conversation_id)
        if (
            sender_id == receiver_id
            or not conversation.has_participant(sender_id)
            or not conversation.has_participant(receiver_id)
        ):
            raise InvalidParticipantsError(
                "Sender and receiver must be the conversation participants"
            )

        timestamp = datetime.now(tz=UTC)
        if timestamp <= conversation.updated_at:
            timestamp = conversation.updated_at + _TICK
        message = self.messages.create_message(
            conversation_id=conversation_id,
            sender_id=sender_id,
            receiver_id=receiver_id,
            content=text,
            timestamp=timestamp,
            experience_id=experience_id,
            booking_id=booking_id,
        )
        try:
            advanced = self.conversations.advance_last_message(conversation_id, message)
        except Exception as exc:
            self._discard(message)
            raise UnavailableError("Message could not be delivered") from exc

        logger.info(
            "Message %s sent in conversation %s", message.id, conversation_id
        )
        self.notifier.publish_message(message)
        if advanced:
            self.notifier.publish_conversation(
                replace(conversation, last_message=message, updated_at=timestamp)
            )
        return message.id

    def send_to_user(  # noqa: PLR0913
        self,
        sender_id: str,
        receiver_id: str,
        content: str,
        experience_id: str | None = None,
        booking_id: UUID | None = None,
    ) -> MessageRecord:
        """Resolve the pair's conversation and send a message into it."""
        _clean_content(content)
        conversation_id = self.resolver.resolve(sender_id, receiver_id)
        message_id = self.send_message(
            conversation_id,
            sender_id=sender_id,
            receiver_id=receiver_id,
            content=content,
            experience_id=experience_id,
            booking_id=booking_id,
        )
        return self.get_message(message_id)

    def get_message(self, message_id: UUID) -> MessageRecord:
        """Return a message or raise NotFoundError."""
        message = self.messages.get_message(message_id)
        if message is None:
            raise NotFoundError("message", message_id)
        return message

    def get_conversation(self, conversation_id: UUID) -> ConversationRecord:
        """Return a conversation or raise NotFoundError."""
        conversation = self.conversations.get_conversation(conversation_id)
        if conversation is None:
            raise NotFoundError("conversation", conversation_id)
        return conversation

    def mark_read(self, message_id: UUID, reader_id: str) -> bool:
        """Mark a message read by its receiver; returns False when it already was."""
        message = self.get_message(message_id)
        if reader_id != message.receiver_id:
            raise ReadNotPermittedError()
        with self._lock_for(message.conversation_id):
            return self._record_read(message)

    def _record_read(self, message: MessageRecord) -> bool:
        message_id = message.id
        if message.read:
            return False
        if not self.messages.mark_read(message_id):
            return False

        self.notifier.publish_read(message.mark_read())
        conversation = self.conversations.mark_last_message_read(
            message.conversation_id, message_id
        )
        if conversation is not None:
            self.notifier.publish_conversation(conversation)
        return True

    def mark_conversation_read(self, conversation_id: UUID, reader_id: str) -> int:
        """Mark every unread message addressed to the reader; return how many."""
        conversation = self.get_conversation(conversation_id)
        if not conversation.has_participant(reader_id):
            raise InvalidParticipantsError("Reader is not part of this conversation")
        marked = 0
        for message in self.messages.list_messages(conversation_id):
            if message.receiver_id == reader_id and not message.read:
                if self.mark_read(message.id, reader_id):
                    marked += 1
        return marked

    def list_conversations(self, user_id: str) -> list[ConversationRecord]:
        """Return the user's conversations, most recently active first."""
        conversations = self.conversations.list_for_participant(
            user_id, limit=self.conversation_list_limit
        )
        return sorted(
            conversations, key=lambda conversation: conversation.updated_at, reverse=True
        )

    def list_messages(
        self, conversation_id: UUID, user_id: str | None = None
    ) -> list[MessageRecord]:
        """Return a thread, oldest first."""
        conversation = self.get_conversation(conversation_id)
        if user_id is not None and not conversation.has_participant(user_id):
            raise InvalidParticipantsError("User is not part of this conversation")
        messages = self.messages.list_messages(conversation_id)
        return sorted(messages, key=lambda message: (message.timestamp, str(message.id)))

    def unread_count(self, user_id: str) -> int:
        """Count unread messages addressed to the user."""
        return self.messages.count_unread(user_id)

    def _lock_for(self, conversation_id: UUID) -> threading.Lock:
        return self._locks[hash(conversation_id) % len(self._locks)]

    def _discard(self, message: MessageRecord) -> None:
        try:
            self.messages.delete_message(message.id)
        except Exception:
            logger.exception(
                "Failed to remove message after projection error",
                extra={"message_id": str(message.id)},
            )


def _clean_content(content: str) -> str:
    text = content.strip()
    if not text:
        raise EmptyContentError()
    return text
