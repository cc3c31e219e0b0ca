"""Conversation and message endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, Request, status

from turista.api.identity import current_user_id, get_container
from turista.api.models import ConversationRequest, DirectMessageRequest, MessageRequest
from turista.domain.messaging import conversation_to_dict, message_to_dict

router = APIRouter(tags=["messages"])


@router.post("/conversations")
def open_conversation(
    payload: ConversationRequest,
    request: Request,
    user_id: str = Depends(current_user_id),
) -> dict[str, object]:
    """Return the caller's conversation with another user, creating it once."""
    resolver = get_container(request).conversation_resolver
    conversation = resolver.resolve_conversation(user_id, payload.participant_id)
    return conversation_to_dict(conversation)


@router.get("/conversations")
def list_conversations(
    request: Request, user_id: str = Depends(current_user_id)
) -> dict[str, object]:
    """Return the caller's conversations, most recent first."""
    service = get_container(request).message_service
    return {
        "conversations": [
            conversation_to_dict(conversation)
            for conversation in service.list_conversations(user_id)
        ]
    }


@router.get("/conversations/{conversation_id}/messages")
def list_messages(
    conversation_id: UUID, request: Request, user_id: str = Depends(current_user_id)
) -> dict[str, object]:
    """Return a thread, oldest first."""
    service = get_container(request).message_service
    messages = service.list_messages(conversation_id, user_id=user_id)
    return {"messages": [message_to_dict(message) for message in messages]}


@router.post(
    "/conversations/{conversation_id}/messages", status_code=status.HTTP_201_CREATED
)
def send_message(
    conversation_id: UUID,
    payload: MessageRequest,
    request: Request,
    user_id: str = Depends(current_user_id),
) -> dict[str, object]:
    """Send a message to the other participant of a conversation."""
    service = get_container(request).message_service
    conversation = service.get_conversation(conversation_id)
    message_id = service.send_message(
        conversation_id,
        sender_id=user_id,
        receiver_id=conversation.other_participant(user_id),
        content=payload.content,
        experience_id=payload.experience_id,
        booking_id=payload.booking_id,
    )
    return message_to_dict(service.get_message(message_id))


@router.post("/conversations/{conversation_id}/read")
def read_conversation(
    conversation_id: UUID, request: Request, user_id: str = Depends(current_user_id)
) -> dict[str, object]:
    """Mark every message addressed to the caller as read."""
    service = get_container(request).message_service
    return {"marked": service.mark_conversation_read(conversation_id, user_id)}


@router.post("/messages", status_code=status.HTTP_201_CREATED)
def send_direct_message(
    payload: DirectMessageRequest,
    request: Request,
    user_id: str = Depends(current_user_id),
) -> dict[str, object]:
    """Send a message to a user, opening the conversation on first contact."""
    service = get_container(request).message_service
    message = service.send_to_user(
        sender_id=user_id,
        receiver_id=payload.receiver_id,
        content=payload.content,
        experience_id=payload.experience_id,
        booking_id=payload.booking_id,
    )
    return message_to_dict(message)


@router.post("/messages/{message_id}/read")
def read_message(
    message_id: UUID, request: Request, user_id: str = Depends(current_user_id)
) -> dict[str, object]:
    """Mark a message addressed to the caller as read."""
    service = get_container(request).message_service
    changed = service.mark_read(message_id, reader_id=user_id)
    return {"id": str(message_id), "read": True, "changed": changed}


@router.get("/messages/unread-count")
def unread_count(
    request: Request, user_id: str = Depends(current_user_id)
) -> dict[str, object]:
    """Return how many messages the caller has not read."""
    service = get_container(request).message_service
    return {"unread": service.unread_count(user_id)}
