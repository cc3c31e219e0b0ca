"""Find-or-create conversations for an unordered pair of users."""

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol
from uuid import UUID

from turista.domain.errors import InvalidParticipantsError
from turista.domain.messaging import ConversationRecord, pair_key
from turista.services.retry import RetryPolicy, retry_on_conflict

logger = logging.getLogger(__name__)


class ConversationRepository(Protocol):
    """Persistence interface for conversations."""

    def get_by_pair_key(self, key: str) -> ConversationRecord | None:
        """Return the conversation for a canonical pair key, if present."""

    def create_conversation(
        self, participants: tuple[str, str], key: str, created_at: datetime
    ) -> ConversationRecord:
        """Insert a conversation.

        Raises ConflictRetryError when the pair key already exists.
        """


@dataclass
class ConversationResolver:
    """Maps a pair of users to exactly one conversation."""

    repository: ConversationRepository
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)

    def resolve(self, user_a: str, user_b: str) -> UUID:
        """Return the conversation id for two users, creating it on first contact."""
        return self.resolve_conversation(user_a, user_b).id

    def resolve_conversation(self, user_a: str, user_b: str) -> ConversationRecord:
        """Return the conversation record for two users."""
        if not user_a or not user_b or user_a == user_b:
            raise InvalidParticipantsError()
        key = pair_key(user_a, user_b)
        participants = tuple(sorted((user_a, user_b)))

        def attempt() -> ConversationRecord:
            existing = self.repository.get_by_pair_key(key)
            if existing:
                return existing
            created = self.repository.create_conversation(
                participants=participants,
                key=key,
                created_at=datetime.now(tz=UTC),
            )
            logger.info("Conversation %s created for %s", created.id, key)
            return created

        return retry_on_conflict(attempt, self.retry_policy)
