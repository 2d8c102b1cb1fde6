"""Client notification hub: pings connected websocket clients after a commit."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Coroutine, Optional

from fastapi import WebSocket

logger = logging.getLogger(__name__)

PING_MESSAGE = {"type": "ping"}


class ClientHub:
    """
    Registry of connected websocket clients.

    ``notify_all_clients()`` is fire-and-forget and may be called from any
    thread: sends are scheduled on the event loop the clients connected on.
    """

    def __init__(self) -> None:
        self._clients: set[WebSocket] = set()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._lock = threading.Lock()
        self._pending: set[asyncio.Task] = set()

    # -- registry --------------------------------------------------------------

    async def connect(self, ws: WebSocket) -> None:
        await ws.accept()
        self._loop = asyncio.get_running_loop()
        with self._lock:
            self._clients.add(ws)
        logger.info(f"Client connected ({self.client_count} total)")

    def disconnect(self, ws: WebSocket) -> None:
        with self._lock:
            self._clients.discard(ws)

    @property
    def client_count(self) -> int:
        with self._lock:
            return len(self._clients)

    # -- notification ----------------------------------------------------------

    def notify_all_clients(self) -> None:
        with self._lock:
            clients = list(self._clients)
        if not clients or self._loop is None:
            return
        for ws in clients:
            self._schedule(self._send_ping(ws))

    async def _send_ping(self, ws: WebSocket) -> None:
        try:
            await ws.send_json(PING_MESSAGE)
        except Exception:
            logger.warning("Dropping client after failed ping", exc_info=True)
            self.disconnect(ws)

    def _schedule(self, coro: Coroutine[Any, Any, None]) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            coro.close()
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is loop:
            task = loop.create_task(coro)
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
        else:
            asyncio.run_coroutine_threadsafe(coro, loop)
