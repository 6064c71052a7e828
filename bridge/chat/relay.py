"""
Chat Relay — sends prefixed outgoing chat messages to the OSC text bridge
instead of the channel.

    ==text     relay "text" (with the chatbox pop sound)
    =/=text    relay "text" silently

With override mode on the default is inverted: every message is relayed,
and "==text" goes to the channel as "text".

Frames sent to the bridge:
    {"content": "...", "sendNow": true, "popNoise": true}
    typing:true / typing:false
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from websockets.asyncio.client import ClientConnection

from ..host import ChatMessage, Command, CommandOption, LocalHost
from ..settings import get_settings, update_settings
from ..transport import is_open, open_socket, send_if_open

logger = logging.getLogger(__name__)

RELAY_PREFIX = "=="
SILENT_PREFIX = "=/="


class ChatRelay:

    def __init__(self, host: LocalHost, url: str, connect_timeout_s: float = 1.0):
        self._host = host
        self.url = url
        self.connect_timeout_s = connect_timeout_s
        self._ws: Optional[ClientConnection] = None
        self._listener = None

    @property
    def connected(self) -> bool:
        return is_open(self._ws)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> bool:
        self._host.register_command(Command(
            name="connect",
            description="Connect to bridge websocket",
            execute=self._connect_command,
        ))

        if self._ws is not None:
            await self._ws.close()
        self._ws = await open_socket(self.url, self.connect_timeout_s)
        if self._ws is None:
            logger.warning("OSC bridge not reachable at %s", self.url)
            return False

        self._host.show_toast("Connected to OSC bridge")
        # replace rather than stack listeners when start() runs twice
        self._host.remove_pre_send_listener(self._listener)
        self._listener = self._host.add_pre_send_listener(self.on_send)
        return True

    def stop(self) -> None:
        self._host.unregister_command("connect")
        self._host.remove_pre_send_listener(self._listener)
        self._listener = None

    async def restart(self) -> bool:
        self.stop()
        return await self.start()

    async def close(self) -> None:
        self.stop()
        if self._ws is not None:
            await self._ws.close()
            self._ws = None

    async def _connect_command(self, args: Dict[str, Any], channel_id: str) -> None:
        await self.restart()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def override_command(self) -> Command:
        return Command(
            name="override",
            description="Toggle override mode, sends all messages NOT with prefix",
            execute=self._override,
            options=[CommandOption(
                name="value",
                description="boolean of override mode",
                type=bool,
                required=True,
            )],
        )

    async def _override(self, args: Dict[str, Any], channel_id: str) -> str:
        value = bool(args["value"])
        update_settings({"override": value})
        reply = f"Override mode is now {str(value).lower()}."
        self._host.send_bot_message(channel_id, reply)
        return reply

    # ------------------------------------------------------------------
    # Host hooks
    # ------------------------------------------------------------------

    async def on_send(self, channel_id: str, message: ChatMessage) -> None:
        if not self.connected:
            self.stop()
            return

        text = message.content.strip()
        if text.startswith(SILENT_PREFIX):
            await self.send(text[len(SILENT_PREFIX):], pop=False)
            message.content = ""
        elif text.startswith(RELAY_PREFIX):
            if get_settings()["override"]:
                message.content = text[len(RELAY_PREFIX):]
                return
            await self.send(text[len(RELAY_PREFIX):])
            message.content = ""
        elif get_settings()["override"]:
            await self.send(text)
            message.content = ""

    async def on_draft_change(self, draft: str) -> None:
        if self.connected and draft.startswith(RELAY_PREFIX):
            await self.send_typing(True)

    async def clear_chatbox(self) -> None:
        await self.send("", pop=False)
        self._host.show_toast("Chatbox cleared!")

    # ------------------------------------------------------------------
    # Frames
    # ------------------------------------------------------------------

    async def send(self, content: str, pop: bool = True, now: bool = True) -> None:
        await send_if_open(self._ws, json.dumps({
            "content": content,
            "sendNow": now,
            "popNoise": pop,
        }))
        await self.send_typing(False)

    async def send_typing(self, typing: bool) -> None:
        await send_if_open(self._ws, "typing:true" if typing else "typing:false")
