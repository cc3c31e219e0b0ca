"""In-process realtime notifier with an explicit subscription registry."""

import asyncio
import logging
import threading
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel

from turista.domain.messaging import (
    ConversationRecord,
    MessageRecord,
    conversation_to_dict,
    message_to_dict,
)

logger = logging.getLogger(__name__)

MESSAGE_CREATED = "message.created"
MESSAGE_READ = "message.read"
CONVERSATION_UPDATED = "conversation.updated"

DEFAULT_QUEUE_SIZE = 256


def user_topic(user_id: str) -> str:
    """Topic for a user's conversation list."""
    return f"user:{user_id}"


def conversation_topic(conversation_id: UUID) -> str:
    """Topic for a single conversation thread."""
    return f"conversation:{conversation_id}"


class RealtimeEvent(BaseModel):
    """Server to client event envelope."""

    type: str
    topic: str
    data: dict[str, Any] = {}


@dataclass(eq=False)
class Subscription:
    """A live subscriber bound to one topic and one event loop."""

    topic: str
    loop: asyncio.AbstractEventLoop
    id: UUID = field(default_factory=uuid4)
    queue: asyncio.Queue = field(default_factory=asyncio.Queue)
    closed: bool = False
    overflowed: bool = False

    def deliver(self, event: RealtimeEvent | None) -> None:
        """Hand an event to the subscriber's loop without waiting."""
        self.loop.call_soon_threadsafe(self._enqueue, event)

    def _enqueue(self, event: RealtimeEvent | None) -> None:
        if self.overflowed and event is not None:
            return
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            # Reader is queue_size events behind.
            logger.warning("Subscription %s fell behind on %s", self.id, self.topic)
            self.overflowed = True
            self.closed = True
            while not self.queue.empty():
                self.queue.get_nowait()
            self.queue.put_nowait(None)

    def close(self) -> None:
        """Mark the subscription closed and wake a waiting reader."""
        if self.closed:
            return
        self.closed = True
        try:
            self.deliver(None)
        except RuntimeError:
            logger.debug("Loop already closed for %s", self.id)

    async def next_event(self) -> RealtimeEvent | None:
        """Wait for the next event; None once the subscription is closed."""
        return await self.queue.get()

    def __aiter__(self) -> AsyncIterator[RealtimeEvent]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[RealtimeEvent]:
        while True:
            event = await self.next_event()
            if event is None:
                return
            yield event


class RealtimeNotifier:
    """Pushes conversation and message changes to subscribed clients.

    Publishing is safe from any thread and never blocks on subscribers.
    Conversation snapshots older than the last one published for the same
    conversation are dropped so clients never move backwards. That state is
    kept only while someone listens on the conversation's topics. A subscriber
    with ``queue_size`` undelivered events is closed.
    """

    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE) -> None:
        self.queue_size = queue_size
        self._lock = threading.Lock()
        self._subscriptions: dict[str, dict[UUID, Subscription]] = {}
        self._latest_snapshot: dict[UUID, tuple[datetime, tuple[str, ...]]] = {}

    def register(self, topic: str) -> Subscription:
        """Register a subscription on the running event loop."""
        subscription = Subscription(
            topic=topic,
            loop=asyncio.get_running_loop(),
            queue=asyncio.Queue(maxsize=self.queue_size),
        )
        with self._lock:
            self._subscriptions.setdefault(topic, {})[subscription.id] = subscription
        logger.debug("Subscription %s registered on %s", subscription.id, topic)
        return subscription

    def unregister(self, subscription: Subscription) -> None:
        """Remove a subscription; unknown subscriptions are ignored."""
        with self._lock:
            topic_subscriptions = self._subscriptions.get(subscription.topic)
            if topic_subscriptions is not None:
                topic_subscriptions.pop(subscription.id, None)
                if not topic_subscriptions:
                    del self._subscriptions[subscription.topic]
                    self._prune_snapshots_locked(subscription.topic)
        subscription.close()
        logger.debug("Subscription %s released", subscription.id)

    @asynccontextmanager
    async def subscribe(self, topic: str) -> AsyncIterator[Subscription]:
        """Scoped subscription, released however the block exits."""
        subscription = self.register(topic)
        try:
            yield subscription
        finally:
            self.unregister(subscription)

    def subscriber_count(self, topic: str | None = None) -> int:
        """Return live subscriptions for a topic, or across all topics."""
        with self._lock:
            if topic is not None:
                return len(self._subscriptions.get(topic, {}))
            return sum(len(subs) for subs in self._subscriptions.values())

    def tracked_conversations(self) -> int:
        """Return how many conversations have snapshot ordering state."""
        with self._lock:
            return len(self._latest_snapshot)

    def publish(self, event: RealtimeEvent) -> int:
        """Deliver an event to every subscriber of its topic."""
        with self._lock:
            return self._deliver_locked(event)

    def publish_message(self, message: MessageRecord) -> int:
        """Announce a new message to the thread subscribers."""
        return self.publish(
            RealtimeEvent(
                type=MESSAGE_CREATED,
                topic=conversation_topic(message.conversation_id),
                data=message_to_dict(message),
            )
        )

    def publish_read(self, message: MessageRecord) -> int:
        """Announce that a message was read."""
        return self.publish(
            RealtimeEvent(
                type=MESSAGE_READ,
                topic=conversation_topic(message.conversation_id),
                data=message_to_dict(message),
            )
        )

    def publish_conversation(self, conversation: ConversationRecord) -> int:
        """Push a conversation snapshot to the thread and both participants."""
        data = conversation_to_dict(conversation)
        topics = (conversation_topic(conversation.id),) + tuple(
            user_topic(user_id) for user_id in conversation.participants
        )
        with self._lock:
            latest = self._latest_snapshot.get(conversation.id)
            if latest is not None and conversation.updated_at < latest[0]:
                logger.debug("Dropping stale snapshot for %s", conversation.id)
                return 0
            delivered = sum(
                self._deliver_locked(
                    RealtimeEvent(type=CONVERSATION_UPDATED, topic=topic, data=data)
                )
                for topic in topics
            )
            if delivered:
                self._latest_snapshot[conversation.id] = (conversation.updated_at, topics)
            else:
                self._latest_snapshot.pop(conversation.id, None)
            return delivered

    def close(self) -> None:
        """Release every subscription and wake their readers."""
        with self._lock:
            subscriptions = [
                subscription
                for topic_subscriptions in self._subscriptions.values()
                for subscription in topic_subscriptions.values()
            ]
            self._subscriptions.clear()
            self._latest_snapshot.clear()
        for subscription in subscriptions:
            subscription.close()

    def _deliver_locked(self, event: RealtimeEvent) -> int:
        delivered = 0
        for subscription in list(self._subscriptions.get(event.topic, {}).values()):
            if subscription.closed:
                self._subscriptions[event.topic].pop(subscription.id, None)
                continue
            try:
                subscription.deliver(event)
            except RuntimeError:
                # Event loop of a disconnected client is gone.
                logger.warning(
                    "Dropping subscription %s on closed loop", subscription.id
                )
                self._subscriptions[event.topic].pop(subscription.id, None)
                subscription.closed = True
                continue
            delivered += 1
        if event.topic in self._subscriptions and not self._subscriptions[event.topic]:
            del self._subscriptions[event.topic]
            self._prune_snapshots_locked(event.topic)
        return delivered

    def _prune_snapshots_locked(self, topic: str) -> None:
        stale = [
            conversation_id
            for conversation_id, (_, topics) in self._latest_snapshot.items()
            if topic in topics
            and not any(self._subscriptions.get(other) for other in topics)
        ]
        for conversation_id in stale:
            del self._latest_snapshot[conversation_id]
