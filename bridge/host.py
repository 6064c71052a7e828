"""
Local host — in-process stand-in for the host client's facilities:
dispatch bus, current user, toasts and notifications, command registry,
and pre-send chat listeners.

Everything that reaches the host is also fanned out to subscribers
(the /presence/ws stream) as JSON-ready events.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class ChatMessage:
    channel_id: str
    content: str


@dataclass
class CommandOption:
    name: str
    description: str
    type: type = bool
    required: bool = False


@dataclass
class Command:
    name: str
    description: str
    execute: Callable[[Dict[str, Any], str], Awaitable[Optional[str]]]
    options: List[CommandOption] = field(default_factory=list)


@dataclass
class Notification:
    title: str
    body: str
    on_click: Optional[Callable[[], Any]] = None


class CommandError(ValueError):
    """Command arguments are missing or of the wrong type."""


PreSendListener = Callable[[str, ChatMessage], Any]


class LocalHost:

    def __init__(self, user: Dict[str, Any], queue_size: int = 256):
        self._user = dict(user)
        self._queue_size = queue_size
        self._subscribers: List[asyncio.Queue] = []
        self._last_actions: Dict[str, Dict[str, Any]] = {}
        self._commands: Dict[str, Command] = {}
        self._pre_send: List[PreSendListener] = []
        self.pending_notification: Optional[Notification] = None
        self.toasts: List[str] = []
        self.sent_messages: List[ChatMessage] = []
        self.bot_messages: List[ChatMessage] = []

    # ------------------------------------------------------------------
    # User store / dispatch bus
    # ------------------------------------------------------------------

    def get_current_user(self) -> Dict[str, Any]:
        return dict(self._user)

    def dispatch(self, action: Dict[str, Any]) -> None:
        socket_id = action.get("socketId")
        if socket_id is not None:
            self._last_actions[socket_id] = action
        self._broadcast(action)

    def last_action(self, socket_id: str) -> Optional[Dict[str, Any]]:
        return self._last_actions.get(socket_id)

    # ------------------------------------------------------------------
    # Toasts / notifications
    # ------------------------------------------------------------------

    def show_toast(self, message: str) -> None:
        logger.info("Toast: %s", message)
        self.toasts.append(message)
        self._broadcast({"type": "TOAST", "message": message})

    def show_notification(
        self, title: str, body: str, on_click: Optional[Callable[[], Any]] = None
    ) -> None:
        logger.info("Notification: %s: %s", title, body)
        self.pending_notification = Notification(title, body, on_click)
        self._broadcast({"type": "NOTIFICATION", "title": title, "body": body})

    async def click_notification(self) -> bool:
        """Run the pending notification's click handler. False if there is none."""
        notification, self.pending_notification = self.pending_notification, None
        if notification is None:
            return False
        if notification.on_click is not None:
            result = notification.on_click()
            if inspect.isawaitable(result):
                await result
        return True

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def register_command(self, command: Command) -> None:
        self._commands[command.name] = command

    def unregister_command(self, name: str) -> None:
        self._commands.pop(name, None)

    def commands(self) -> List[str]:
        return sorted(self._commands)

    async def execute_command(
        self, name: str, args: Dict[str, Any], channel_id: str
    ) -> Optional[str]:
        """Raises KeyError for unknown commands and CommandError for bad arguments."""
        command = self._commands[name]
        for option in command.options:
            if option.name not in args:
                if option.required:
                    raise CommandError(f"missing required option {option.name!r}")
                continue
            if not isinstance(args[option.name], option.type):
                raise CommandError(
                    f"option {option.name!r} must be {option.type.__name__}"
                )
        return await command.execute(args, channel_id)

    def send_bot_message(self, channel_id: str, content: str) -> None:
        self.bot_messages.append(ChatMessage(channel_id, content))
        self._broadcast({"type": "BOT_MESSAGE", "channelId": channel_id, "content": content})

    # ------------------------------------------------------------------
    # Outgoing chat pipeline
    # ------------------------------------------------------------------

    def add_pre_send_listener(self, listener: PreSendListener) -> PreSendListener:
        self._pre_send.append(listener)
        return listener

    def remove_pre_send_listener(self, listener: Optional[PreSendListener]) -> None:
        if listener in self._pre_send:
            self._pre_send.remove(listener)

    async def send_message(self, channel_id: str, content: str) -> ChatMessage:
        """Run pre-send listeners; the message is only sent if content remains."""
        message = ChatMessage(channel_id, content)
        for listener in list(self._pre_send):
            result = listener(channel_id, message)
            if inspect.isawaitable(result):
                await result
        if message.content:
            self.sent_messages.append(message)
        return message

    # ------------------------------------------------------------------
    # Subscribers
    # ------------------------------------------------------------------

    def subscribe(self) -> asyncio.Queue:
        q: asyncio.Queue = asyncio.Queue(maxsize=self._queue_size)
        self._subscribers.append(q)
        return q

    def unsubscribe(self, q: asyncio.Queue) -> None:
        if q in self._subscribers:
            self._subscribers.remove(q)

    def _broadcast(self, event: Dict[str, Any]) -> None:
        for q in self._subscribers:
            try:
                q.put_nowait(event)
            except asyncio.QueueFull:
                logger.debug("Subscriber queue full; dropping %s", event.get("type"))
