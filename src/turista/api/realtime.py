"""WebSocket feeds backed by the realtime notifier."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING
from uuid import UUID

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from fastapi.concurrency import run_in_threadpool

from turista.domain.errors import NotFoundError
from turista.services.realtime import (
    RealtimeNotifier,
    Subscription,
    conversation_topic,
    user_topic,
)

if TYPE_CHECKING:
    from turista.containers import AppContainer

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


@router.websocket("/ws/users/{user_id}")
async def user_feed(websocket: WebSocket, user_id: str) -> None:
    """Stream conversation list updates for a user."""
    container: AppContainer = websocket.app.state.container
    await _stream(websocket, container.notifier, user_topic(user_id))


@router.websocket("/ws/conversations/{conversation_id}")
async def conversation_feed(
    websocket: WebSocket, conversation_id: UUID, user_id: str
) -> None:
    """Stream new messages and read receipts of one conversation."""
    container: AppContainer = websocket.app.state.container
    try:
        conversation = await run_in_threadpool(
            container.message_service.get_conversation, conversation_id
        )
    except NotFoundError:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    if not conversation.has_participant(user_id):
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    await _stream(websocket, container.notifier, conversation_topic(conversation_id))


async def _stream(websocket: WebSocket, notifier: RealtimeNotifier, topic: str) -> None:
    # Registered before accept so no event is missed once the client is connected.
    async with notifier.subscribe(topic) as subscription:
        await websocket.accept()
        receiver = asyncio.create_task(_drain(websocket))
        sender = asyncio.create_task(_forward(websocket, subscription))
        done, pending = await asyncio.wait(
            {receiver, sender}, return_when=asyncio.FIRST_COMPLETED
        )
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        for task in done:
            exc = task.exception()
            if exc is not None and not isinstance(exc, WebSocketDisconnect):
                logger.warning("Realtime stream on %s ended: %r", topic, exc)
        if sender in done and sender.exception() is None:
            await websocket.close()
    logger.info("Realtime subscriber left %s", topic)


async def _drain(websocket: WebSocket) -> None:
    """Read client frames until the client disconnects."""
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        return


async def _forward(websocket: WebSocket, subscription: Subscription) -> None:
    async for event in subscription:
        await websocket.send_json(event.model_dump(mode="json"))
