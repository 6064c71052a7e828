"""
Connection Supervisor — owns the single socket to the PreMiD companion bridge.

Lifecycle:
    start()      close any existing socket, open a new one, wait up to
                 connect_timeout_s for it to come up
    stop()       retract the published presence (socket stays as it is)
    reconnect()  explicit operator retry; a failed attempt raises a
                 notification whose click retries again
    close()      service shutdown

Frames are handled one at a time, in arrival order, by a reader task per
connection. Any disconnect retracts the presence; there is no automatic
reconnection.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Optional

from pydantic import ValidationError
from websockets.asyncio.client import ClientConnection
from websockets.exceptions import ConnectionClosedError

from ..host import LocalHost
from ..transport import open_socket, send_if_open
from .models import ConnectionState, RawActivity, SocketMessage
from .publisher import PresencePublisher
from .synthesizer import ActivitySynthesizer

logger = logging.getLogger(__name__)

FAILED_TITLE = "[PreMiD:Bridge] Connection failed"
FAILED_BODY = "Make sure both the bridge and PreMiD extension are running."


class ConnectionSupervisor:
    """
    Owns the one socket to the companion. Calls to start() and close() are
    serialised, so a second start() waits and then replaces the first socket.

    Usage:
        sup = ConnectionSupervisor(host, synthesizer, publisher, "ws://127.0.0.1:4020")
        await sup.start()
        ...
        await sup.close()
    """

    def __init__(
        self,
        host: LocalHost,
        synthesizer: ActivitySynthesizer,
        publisher: PresencePublisher,
        url: str,
        connect_timeout_s: float = 1.0,
    ):
        self._host = host
        self._synthesizer = synthesizer
        self._publisher = publisher
        self.url = url
        self.connect_timeout_s = connect_timeout_s
        self.state = ConnectionState.DISCONNECTED
        self.reconnecting = False
        self._ws: Optional[ClientConnection] = None
        self._reader: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> bool:
        """(Re)open the socket. Returns True when it is open within the timeout."""
        async with self._lock:
            return await self._start()

    async def _start(self) -> bool:
        await self._close_socket()

        self.state = ConnectionState.CONNECTING
        ws = await open_socket(self.url, self.connect_timeout_s)
        reconnecting, self.reconnecting = self.reconnecting, False

        if ws is None:
            self.state = ConnectionState.CLOSED
            logger.error("Failed to connect to PreMiD at %s", self.url)
            if reconnecting:
                self._host.show_notification(FAILED_TITLE, FAILED_BODY, on_click=self.retry)
            return False

        self._ws = ws
        self.state = ConnectionState.OPEN
        logger.info("Connected to PreMiD at %s", self.url)
        self._host.show_toast("PreMiD Connected")
        self._reader = asyncio.create_task(self._read(ws), name="presence-reader")
        return True

    def stop(self) -> None:
        self._publisher.clear()

    async def reconnect(self) -> bool:
        self.reconnecting = True
        self.stop()
        return await self.start()

    async def retry(self) -> bool:
        self.reconnecting = True
        return await self.start()

    async def close(self) -> None:
        async with self._lock:
            await self._close_socket()

    async def wait_closed(self) -> None:
        """Wait until the current connection's reader has finished."""
        if self._reader is not None:
            await self._reader

    async def _close_socket(self) -> None:
        ws, reader = self._ws, self._reader
        if ws is not None:
            await ws.close()
        if reader is not None:
            await reader

    # ------------------------------------------------------------------
    # Inbound frames
    # ------------------------------------------------------------------

    async def _read(self, ws: ClientConnection) -> None:
        try:
            async for frame in ws:
                try:
                    await self.handle_message(frame)
                except Exception:
                    logger.exception("Handler failed for frame %.200r", frame)
        except ConnectionClosedError as e:
            logger.info("PreMiD connection dropped: %s", e)
        finally:
            if self._ws is ws:
                self._ws = None
                self._reader = None
                self.state = ConnectionState.CLOSED
            logger.info("PreMiD disconnected, clearing activity")
            self._publisher.clear()

    async def handle_message(self, frame: str | bytes) -> None:
        logger.debug("Raw receive: %s", frame)
        try:
            message = SocketMessage.model_validate(json.loads(frame))
        except (ValueError, ValidationError) as e:
            logger.warning("Dropping malformed frame: %s", e)
            return

        if message.type == "getCurrentUser":
            logger.info("Sending currentUser")
            await send_if_open(self._ws, json.dumps({
                "type": "currentUser",
                "user": self._host.get_current_user(),
            }))
        elif message.type == "setActivity":
            try:
                raw = RawActivity.model_validate(message.data)
            except ValidationError as e:
                logger.warning("Dropping invalid setActivity payload: %s", e)
                return
            logger.debug("Received setActivity for %s", raw.application_id)
            self._publisher.publish(await self._synthesizer.synthesize(raw))
        elif message.type == "clearActivity":
            logger.debug("Clearing activity")
            self._publisher.clear()
        else:
            logger.debug("Ignoring message type %r", message.type)
