"""
realtime/hub.py -- WebSocket broadcast channel for change notifications.

BroadcastHub keeps the set of connected sockets and fans each event out to
all of them. It implements catalog.events.Notifier, so ProductService can
publish into it without knowing anything about WebSockets.

Threading model:
  Sync route handlers run on FastAPI's threadpool, but sockets belong to the
  event loop. publish() therefore never sends anything itself: it schedules
  a broadcast task on the loop captured by bind() (called from lifespan) and
  returns immediately. A slow or dead client can never stall a mutation.

Frames are JSON objects: {"event": <name>, "data": <payload>}.

Besides product events the channel carries a presence counter and a chat
room (see handle()). Product events reach every client; chat traffic reaches
only the sockets that sent joinChat.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import WebSocket

logger = logging.getLogger("catalog.realtime")

SYSTEM_USER = "System"


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def _system_message(message: str) -> dict[str, Any]:
    return {"type": "system", "username": SYSTEM_USER, "message": message, "timestamp": _timestamp()}


class BroadcastHub:
    """Connected clients of the broadcast channel."""

    def __init__(self) -> None:
        self._clients: set[WebSocket] = set()
        self._chat_members: set[WebSocket] = set()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        # Strong references so in-flight broadcast tasks are not garbage collected.
        self._tasks: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def bind(self, loop: asyncio.AbstractEventLoop) -> None:
        """Remember the loop that owns the sockets. Call once from lifespan startup."""
        self._loop = loop

    @property
    def online_count(self) -> int:
        return len(self._clients)

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self._clients.add(websocket)
        logger.info("Client connected (%d online)", self.online_count)

    async def disconnect(self, websocket: WebSocket) -> None:
        self._clients.discard(websocket)
        was_member = websocket in self._chat_members
        self._chat_members.discard(websocket)
        logger.info("Client disconnected (%d online)", self.online_count)
        if was_member:
            await self.broadcast("chatMessage", _system_message("A user has left the chat"), chat_only=True)

    async def close(self) -> None:
        """Cancel pending broadcasts and drop every client. Called on shutdown."""
        for task in list(self._tasks):
            task.cancel()
        self._clients.clear()
        self._chat_members.clear()

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    async def send(self, websocket: WebSocket, event: str, data: dict[str, Any]) -> None:
        await websocket.send_json({"event": event, "data": data})

    async def broadcast(
        self,
        event: str,
        data: dict[str, Any],
        *,
        exclude: Optional[WebSocket] = None,
        chat_only: bool = False,
    ) -> None:
        """Send one frame to every client (or every chat member) except exclude.

        Dead sockets are dropped.
        """
        targets = self._chat_members if chat_only else self._clients
        for websocket in list(targets):
            if websocket is exclude:
                continue
            try:
                await self.send(websocket, event, data)
            except Exception:
                logger.warning("Dropping unreachable client while sending %s", event, exc_info=True)
                self._clients.discard(websocket)
                self._chat_members.discard(websocket)

    def publish(self, event: str, payload: dict[str, Any]) -> None:
        """Schedule a broadcast from any thread and return without waiting."""
        loop = self._loop
        if loop is None or loop.is_closed():
            logger.debug("No event loop bound; dropping %s", event)
            return

        def schedule() -> None:
            task = loop.create_task(self.broadcast(event, payload))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            schedule()
        else:
            loop.call_soon_threadsafe(schedule)

    # ------------------------------------------------------------------
    # Client messages
    # ------------------------------------------------------------------

    async def handle(self, websocket: WebSocket, message: Any) -> None:
        """React to one client frame ({"event": ..., "data": {...}}).

        getOnlineUsers -> onlineUsersCount back to the sender
        joinChat       -> sender joins the chat room; welcome to the sender,
                          join notice to the other members
        chatMessage    -> relayed to every chat member as a "user" message
        Anything else gets an "error" frame back.
        """
        if not isinstance(message, dict):
            await self.send(websocket, "error", {"message": "Frames must be JSON objects"})
            return
        event = message.get("event")
        data = message.get("data")
        if not isinstance(data, dict):
            data = {}

        if event == "getOnlineUsers":
            await self.send(websocket, "onlineUsersCount", {"count": self.online_count})
        elif event == "joinChat":
            self._chat_members.add(websocket)
            logger.info("User %s joined chat room", data.get("username") or "Anonymous")
            await self.send(websocket, "chatMessage", _system_message("Welcome to the chat room!"))
            await self.broadcast(
                "chatMessage",
                _system_message("A new user has joined the chat"),
                exclude=websocket,
                chat_only=True,
            )
        elif event == "chatMessage":
            await self.broadcast(
                "chatMessage",
                {
                    "type": "user",
                    "username": data.get("username"),
                    "message": data.get("message"),
                    "timestamp": _timestamp(),
                    "userId": data.get("userId"),
                },
                chat_only=True,
            )
        else:
            await self.send(websocket, "error", {"message": f"Unknown event: {event}"})
