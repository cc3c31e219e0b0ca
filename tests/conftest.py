"""Shared test fixtures."""

import threading
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from turista.config import Settings
from turista.containers import AppContainer
from turista.domain.bookings import (
    BookingRecord,
    BookingStatus,
    CapacityEntry,
    ExperienceRecord,
)
from turista.domain.errors import ConflictRetryError, UnavailableError
from turista.domain.messaging import ConversationRecord, MessageRecord
from turista.services.bookings import (
    BookingRepository,
    BookingService,
    ExperienceCatalog,
)
from turista.services.capacity import CapacityLedger, CapacityRepository
from turista.services.conversations import (
    ConversationRepository,
    ConversationResolver,
)
from turista.services.messages import (
    ConversationStore,
    MessageRepository,
    MessageService,
)
from turista.services.realtime import RealtimeNotifier
from turista.services.retry import RetryPolicy

TODAY = date(2026, 6, 1)
EVENT_DAY = date(2026, 6, 15)


@dataclass
class InMemoryExperienceCatalog(ExperienceCatalog):
    """In-memory experience catalog for tests."""

    experiences: dict[str, ExperienceRecord] = field(default_factory=dict)

    def add(  # noqa: PLR0913
        self,
        experience_id: str = "exp-1",
        max_participants: int = 5,
        price: Decimal = Decimal("50"),
        currency: str = "EUR",
        event_dates: tuple[date, ...] = (),
    ) -> ExperienceRecord:
        experience = ExperienceRecord(
            id=experience_id,
            max_participants=max_participants,
            price=price,
            currency=currency,
            event_dates=event_dates,
        )
        self.experiences[experience_id] = experience
        return experience

    def get_experience(self, experience_id: str) -> ExperienceRecord | None:
        return self.experiences.get(experience_id)


@dataclass
class InMemoryCapacityRepository(CapacityRepository):
    """In-memory capacity counters with an atomic compare-and-swap."""

    entries: dict[tuple[str, date], CapacityEntry] = field(default_factory=dict)
    writes: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def get_entry(self, experience_id: str, day: date) -> CapacityEntry | None:
        with self._lock:
            return self.entries.get((experience_id, day))

    def list_entries(self, experience_id: str) -> list[CapacityEntry]:
        with self._lock:
            return sorted(
                (e for e in self.entries.values() if e.experience_id == experience_id),
                key=lambda entry: entry.date,
            )

    def compare_and_set(
        self, experience_id: str, day: date, expected_version: int, booked: int
    ) -> bool:
        with self._lock:
            current = self.entries.get((experience_id, day))
            current_version = current.version if current else 0
            if current_version != expected_version:
                return False
            self.entries[(experience_id, day)] = CapacityEntry(
                experience_id=experience_id,
                date=day,
                booked=booked,
                version=expected_version + 1,
            )
            self.writes += 1
            return True

    def booked(self, experience_id: str, day: date) -> int:
        entry = self.entries.get((experience_id, day))
        return entry.booked if entry else 0


@dataclass
class InMemoryBookingRepository(BookingRepository):
    """In-memory booking repository for tests."""

    bookings: dict[UUID, BookingRecord] = field(default_factory=dict)
    fail_create: bool = False
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def create_booking(  # noqa: PLR0913
        self,
        experience_id: str,
        user_id: str,
        day: date,
        number_of_guests: int,
        total_amount: Decimal,
        currency: str,
        status: BookingStatus,
        created_at: datetime,
    ) -> BookingRecord:
        if self.fail_create:
            raise UnavailableError("Store unreachable")
        booking = BookingRecord(
            id=uuid4(),
            experience_id=experience_id,
            user_id=user_id,
            date=day,
            number_of_guests=number_of_guests,
            total_amount=total_amount,
            currency=currency,
            status=status,
            created_at=created_at,
            updated_at=created_at,
        )
        with self._lock:
            self.bookings[booking.id] = booking
        return booking

    def get_booking(self, booking_id: UUID) -> BookingRecord | None:
        return self.bookings.get(booking_id)

    def list_bookings_for_user(self, user_id: str) -> list[BookingRecord]:
        return [b for b in self.bookings.values() if b.user_id == user_id]

    def mark_cancelled(self, booking_id: UUID, updated_at: datetime) -> bool:
        with self._lock:
            booking = self.bookings.get(booking_id)
            if booking is None or booking.status != BookingStatus.CONFIRMED:
                return False
            self.bookings[booking_id] = replace(
                booking,
                status=BookingStatus.CANCELLED,
                release_pending=True,
                updated_at=updated_at,
            )
            return True

    def claim_release(self, booking_id: UUID) -> bool:
        with self._lock:
            booking = self.bookings.get(booking_id)
            if booking is None or not booking.release_pending:
                return False
            self.bookings[booking_id] = replace(booking, release_pending=False)
            return True

    def restore_release(self, booking_id: UUID) -> None:
        with self._lock:
            booking = self.bookings[booking_id]
            self.bookings[booking_id] = replace(booking, release_pending=True)


@dataclass
class InMemoryConversationRepository(ConversationRepository, ConversationStore):
    """In-memory conversations with a unique pair key."""

    conversations: dict[UUID, ConversationRecord] = field(default_factory=dict)
    fail_advance: bool = False
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def get_by_pair_key(self, key: str) -> ConversationRecord | None:
        with self._lock:
            for conversation in self.conversations.values():
                if conversation.pair_key == key:
                    return conversation
        return None

    def create_conversation(
        self, participants: tuple[str, str], key: str, created_at: datetime
    ) -> ConversationRecord:
        with self._lock:
            if any(c.pair_key == key for c in self.conversations.values()):
                raise ConflictRetryError(f"conversation {key}")
            conversation = ConversationRecord(
                id=uuid4(),
                participants=participants,
                pair_key=key,
                created_at=created_at,
                updated_at=created_at,
            )
            self.conversations[conversation.id] = conversation
            return conversation

    def get_conversation(self, conversation_id: UUID) -> ConversationRecord | None:
        return self.conversations.get(conversation_id)

    def list_for_participant(
        self, user_id: str, limit: int
    ) -> list[ConversationRecord]:
        matches = [
            c for c in self.conversations.values() if user_id in c.participants
        ]
        return matches[:limit]

    def advance_last_message(
        self, conversation_id: UUID, message: MessageRecord
    ) -> bool:
        if self.fail_advance:
            raise UnavailableError("Store unreachable")
        with self._lock:
            conversation = self.conversations[conversation_id]
            if conversation.updated_at >= message.timestamp:
                return False
            self.conversations[conversation_id] = replace(
                conversation, last_message=message, updated_at=message.timestamp
            )
            return True

    def mark_last_message_read(
        self, conversation_id: UUID, message_id: UUID
    ) -> ConversationRecord | None:
        with self._lock:
            conversation = self.conversations.get(conversation_id)
            if conversation is None or conversation.last_message is None:
                return None
            if conversation.last_message.id != message_id:
                return None
            updated = replace(
                conversation, last_message=conversation.last_message.mark_read()
            )
            self.conversations[conversation_id] = updated
            return updated


@dataclass
class InMemoryMessageRepository(MessageRepository):
    """In-memory message log for tests."""

    messages: dict[UUID, MessageRecord] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock)

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
        message = MessageRecord(
            id=uuid4(),
            conversation_id=conversation_id,
            sender_id=sender_id,
            receiver_id=receiver_id,
            content=content,
            timestamp=timestamp,
            experience_id=experience_id,
            booking_id=booking_id,
        )
        with self._lock:
            self.messages[message.id] = message
        return message

    def delete_message(self, message_id: UUID) -> None:
        with self._lock:
            self.messages.pop(message_id, None)

    def get_message(self, message_id: UUID) -> MessageRecord | None:
        return self.messages.get(message_id)

    def list_messages(self, conversation_id: UUID) -> list[MessageRecord]:
        return sorted(
            (m for m in self.messages.values() if m.conversation_id == conversation_id),
            key=lambda message: message.timestamp,
        )

    def mark_read(self, message_id: UUID) -> bool:
        with self._lock:
            message = self.messages.get(message_id)
            if message is None or message.read:
                return False
            self.messages[message_id] = message.mark_read()
            return True

    def count_unread(self, receiver_id: str) -> int:
        return sum(
            1
            for message in self.messages.values()
            if message.receiver_id == receiver_id and not message.read
        )


NO_DELAY = RetryPolicy(max_attempts=3, delay_seconds=0)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key="service-key",
    )


@pytest.fixture
def catalog() -> InMemoryExperienceCatalog:
    catalog = InMemoryExperienceCatalog()
    catalog.add()
    return catalog


@pytest.fixture
def capacity_repository() -> InMemoryCapacityRepository:
    return InMemoryCapacityRepository()


@pytest.fixture
def ledger(capacity_repository: InMemoryCapacityRepository) -> CapacityLedger:
    return CapacityLedger(repository=capacity_repository, retry_policy=NO_DELAY)


@pytest.fixture
def booking_repository() -> InMemoryBookingRepository:
    return InMemoryBookingRepository()


@pytest.fixture
def booking_service(
    catalog: InMemoryExperienceCatalog,
    booking_repository: InMemoryBookingRepository,
    ledger: CapacityLedger,
) -> BookingService:
    return BookingService(
        catalog=catalog,
        repository=booking_repository,
        ledger=ledger,
        today=lambda: TODAY,
    )


@pytest.fixture
def conversation_repository() -> InMemoryConversationRepository:
    return InMemoryConversationRepository()


@pytest.fixture
def message_repository() -> InMemoryMessageRepository:
    return InMemoryMessageRepository()


@pytest.fixture
def resolver(
    conversation_repository: InMemoryConversationRepository,
) -> ConversationResolver:
    return ConversationResolver(
        repository=conversation_repository, retry_policy=NO_DELAY
    )


@pytest.fixture
def notifier() -> RealtimeNotifier:
    return RealtimeNotifier()


@pytest.fixture
def message_service(
    message_repository: InMemoryMessageRepository,
    conversation_repository: InMemoryConversationRepository,
    resolver: ConversationResolver,
    notifier: RealtimeNotifier,
) -> MessageService:
    return MessageService(
        messages=message_repository,
        conversations=conversation_repository,
        resolver=resolver,
        notifier=notifier,
    )


@pytest.fixture
def container(
    settings: Settings,
    booking_service: BookingService,
    resolver: ConversationResolver,
    message_service: MessageService,
    notifier: RealtimeNotifier,
) -> AppContainer:
    async def close_resources() -> None:
        notifier.close()

    return AppContainer(
        settings=settings,
        booking_service=booking_service,
        conversation_resolver=resolver,
        message_service=message_service,
        notifier=notifier,
        close_resources=close_resources,
    )
