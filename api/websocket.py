"""
WebSocket: push the live room view to a client

One LiveViewProjector per connection. Every committed change to the
room produces a fresh personalized RoomView on the socket. The session
ends when the client leaves or a send fails; either way the projector
is stopped so no subscription leaks.

Store writes happen in FastAPI's worker threads, so the projector's
callback hands views to the event loop with call_soon_threadsafe.
"""
import asyncio
import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from starlette.concurrency import run_in_threadpool

import database
from core.change_feed import ChangeFeed
from core.exceptions import RoomNotFound
from core.live_view import LiveViewProjector
from core.room_manager import RoomManager
from schemas import RoomView
from services.view_service import personalize_view

router = APIRouter(tags=["websocket"])
logger = logging.getLogger(__name__)


def get_session_factory():
    return database.SessionLocal


def get_change_feed() -> ChangeFeed:
    return database.change_feed


def _find_room_id(session_factory, code: str) -> UUID:
    db = session_factory()
    try:
        return RoomManager(db).get_room_by_code(code).id
    finally:
        db.close()


@router.websocket("/ws/rooms/{code}")
async def room_updates(
    websocket: WebSocket,
    code: str,
    player_id: Optional[UUID] = None,
    session_factory=Depends(get_session_factory),
    feed: ChangeFeed = Depends(get_change_feed)
):
    await websocket.accept()

    try:
        room_id = await run_in_threadpool(_find_room_id, session_factory, code)
    except RoomNotFound as e:
        await websocket.send_json({"error": str(e)})
        await websocket.close(code=4404)
        return

    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()

    def on_view(view: RoomView) -> None:
        loop.call_soon_threadsafe(queue.put_nowait, view)

    projector = LiveViewProjector(room_id, session_factory, feed)
    projector.add_consumer(on_view)

    async def pump():
        while True:
            view = await queue.get()
            await websocket.send_json(personalize_view(view, player_id).model_dump(mode="json"))

    async def listen():
        # Clients send nothing meaningful; reading detects the disconnect
        while True:
            await websocket.receive_text()

    sender = asyncio.create_task(pump())
    receiver = asyncio.create_task(listen())
    try:
        await run_in_threadpool(projector.start)
        # Whichever side ends first (client left, or a send failed) ends the session
        done, _ = await asyncio.wait({sender, receiver}, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            error = task.exception()
            if isinstance(error, WebSocketDisconnect):
                logger.info(f"Live view client left room {code}")
            elif error is not None:
                logger.error(f"Live view for room {code} failed: {error}", exc_info=error)
    finally:
        projector.stop()
        for task in (sender, receiver):
            task.cancel()
        await asyncio.gather(sender, receiver, return_exceptions=True)
