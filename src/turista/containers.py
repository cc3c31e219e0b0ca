"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from functools import partial

from supabase import create_client

from turista.adapters.supabase_booking_repository import SupabaseBookingRepository
from turista.adapters.supabase_capacity_repository import SupabaseCapacityRepository
from turista.adapters.supabase_conversation_repository import (
    SupabaseConversationRepository,
)
from turista.adapters.supabase_experience_catalog import SupabaseExperienceCatalog
from turista.adapters.supabase_message_repository import SupabaseMessageRepository
from turista.config import Settings, business_today
from turista.services.bookings import BookingService
from turista.services.capacity import CapacityLedger
from turista.services.conversations import ConversationResolver
from turista.services.messages import MessageService
from turista.services.realtime import RealtimeNotifier
from turista.services.retry import RetryPolicy


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    booking_service: BookingService
    conversation_resolver: ConversationResolver
    message_service: MessageService
    notifier: RealtimeNotifier
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    retry_policy = RetryPolicy(
        max_attempts=resolved_settings.conflict_max_attempts,
        delay_seconds=resolved_settings.conflict_retry_delay_seconds,
    )
    conversation_repository = SupabaseConversationRepository(supabase_client)
    ledger = CapacityLedger(
        repository=SupabaseCapacityRepository(supabase_client),
        retry_policy=retry_policy,
    )
    booking_service = BookingService(
        catalog=SupabaseExperienceCatalog(supabase_client),
        repository=SupabaseBookingRepository(supabase_client),
        ledger=ledger,
        fee_rate=resolved_settings.service_fee_rate,
        allow_cancel_after_date=resolved_settings.allow_cancel_after_date,
        today=partial(business_today, resolved_settings.business_timezone),
    )
    conversation_resolver = ConversationResolver(
        repository=conversation_repository,
        retry_policy=retry_policy,
    )
    notifier = RealtimeNotifier(queue_size=resolved_settings.realtime_queue_size)
    message_service = MessageService(
        messages=SupabaseMessageRepository(supabase_client),
        conversations=conversation_repository,
        resolver=conversation_resolver,
        notifier=notifier,
        conversation_list_limit=resolved_settings.conversation_list_limit,
    )

    async def close_resources() -> None:
        notifier.close()

    return AppContainer(
        settings=resolved_settings,
        booking_service=booking_service,
        conversation_resolver=conversation_resolver,
        message_service=message_service,
        notifier=notifier,
        close_resources=close_resources,
    )
