"""
Local WebSocket helpers shared by the presence supervisor and the chat relay.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import websockets
from websockets.asyncio.client import ClientConnection
from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidURI
from websockets.protocol import State

logger = logging.getLogger(__name__)


async def open_socket(url: str, timeout_s: float) -> Optional[ClientConnection]:
    """
    Open a WebSocket to *url*, giving up after *timeout_s*.
    Returns None when the socket is not open by then.
    """
    try:
        return await asyncio.wait_for(_connect(url), timeout=timeout_s)
    except asyncio.TimeoutError:
        logger.debug("Opening %s timed out after %.1fs", url, timeout_s)
    except (OSError, InvalidHandshake, InvalidURI) as e:
        logger.debug("Opening %s failed: %s", url, e)
    return None


async def _connect(url: str) -> ClientConnection:
    return await websockets.connect(url, open_timeout=None)


def is_open(ws: Optional[ClientConnection]) -> bool:
    return ws is not None and ws.state is State.OPEN


async def send_if_open(ws: Optional[ClientConnection], message: str) -> bool:
    """Send *message* when the socket is open; otherwise drop it."""
    if not is_open(ws):
        logger.debug("Socket not open; dropping %r", message)
        return False
    try:
        await ws.send(message)
    except ConnectionClosed:
        logger.debug("Socket closed while sending; dropping %r", message)
        return False
    return True
