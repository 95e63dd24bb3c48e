"""WebSocket endpoint that streams scan events for the caller's channels."""

import asyncio
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, WebSocket, status
from sqlalchemy.orm import Session, sessionmaker

from app.api.v1.auth import load_user
from app.core.database import get_session_factory
from app.models import Repository
from app.services.events import EventBroker, broker, repository_channel, user_channel

logger = logging.getLogger(__name__)

router = APIRouter()


def get_broker() -> EventBroker:
    return broker


def authorize_channels(db: Session, token: str, repository_ids: list[int]) -> list[str] | None:
    """
    Channels the token's user may listen on: their own user channel plus owned repositories.

    None when the token is invalid; repositories the user does not own are skipped.
    """
    user = load_user(db, token)
    if user is None:
        return None
    channels = [user_channel(user.id)]
    if repository_ids:
        owned = (
            db.query(Repository.id)
            .filter(Repository.id.in_(repository_ids), Repository.user_id == user.id)
            .all()
        )
        channels.extend(repository_channel(row.id) for row in owned)
    return channels


async def _forward(websocket: WebSocket, queue: asyncio.Queue) -> None:
    while True:
        await websocket.send_json(await queue.get())


@router.websocket("/ws")
async def scan_events(
    websocket: WebSocket,
    events: Annotated[EventBroker, Depends(get_broker)],
    session_factory: Annotated[sessionmaker, Depends(get_session_factory)],
    token: Annotated[str, Query()] = "",
    repository_id: Annotated[list[int] | None, Query()] = None,
) -> None:
    """
    Stream {"type": "scan:*", "data": {...}} messages.

    Authenticate with ?token=<JWT>; add ?repository_id=<id> (repeatable) to
    follow specific repositories. Delivery is best-effort.
    """
    with session_factory() as db:
        channels = authorize_channels(db, token, repository_id or [])
    if channels is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    await websocket.send_json({"type": "connection", "data": {"status": "connected", "channels": channels}})
    async with events.subscribe(channels) as queue:
        forwarder = asyncio.create_task(_forward(websocket, queue))
        try:
            # Client messages are ignored; receiving only detects the disconnect.
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
        finally:
            forwarder.cancel()
            await asyncio.gather(forwarder, return_exceptions=True)
    logger.info("Event subscriber disconnected from %s", ", ".join(channels))
