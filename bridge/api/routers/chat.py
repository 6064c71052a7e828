"""
/chat — the host side of the chat relay: outgoing messages pass through the
pre-send listeners, draft changes drive the typing indicator, and registered
commands can be executed.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request

from ...api.schemas import (
    ChatMessageIn,
    ChatMessageOut,
    ChatStateOut,
    CommandIn,
    CommandOut,
    DraftIn,
)
from ...host import CommandError
from ...settings import get_settings

router = APIRouter(prefix="/chat", tags=["chat"])


def _get_relay(request: Request):
    return request.app.state.relay


def _get_host(request: Request):
    return request.app.state.host


def _state(relay, host) -> ChatStateOut:
    return ChatStateOut(
        connected=relay.connected,
        url=relay.url,
        override=get_settings()["override"],
        commands=host.commands(),
    )


@router.get("", response_model=ChatStateOut)
def get_chat(relay=Depends(_get_relay), host=Depends(_get_host)):
    return _state(relay, host)


@router.post("/messages", response_model=ChatMessageOut)
async def send_message(msg: ChatMessageIn, host=Depends(_get_host)):
    """Run an outgoing message through the pre-send listeners."""
    result = await host.send_message(msg.channel_id, msg.content)
    return ChatMessageOut(
        channel_id=result.channel_id,
        content=result.content,
        send=bool(result.content),
    )


@router.post("/draft", status_code=204)
async def draft_change(body: DraftIn, relay=Depends(_get_relay)):
    await relay.on_draft_change(body.draft)


@router.post("/commands/{name}", response_model=CommandOut)
async def execute_command(name: str, body: CommandIn, host=Depends(_get_host)):
    if name not in host.commands():
        raise HTTPException(status_code=404, detail=f"Unknown command: {name!r}")
    try:
        reply = await host.execute_command(name, body.args, body.channel_id)
    except CommandError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return CommandOut(name=name, reply=reply)


@router.post("/clear", response_model=ChatStateOut)
async def clear_chatbox(relay=Depends(_get_relay), host=Depends(_get_host)):
    """Toolbox action: clear the chatbox on the other side of the bridge."""
    await relay.clear_chatbox()
    return _state(relay, host)


@router.post("/connect", response_model=ChatStateOut)
async def connect(relay=Depends(_get_relay), host=Depends(_get_host)):
    """Toolbox action: reconnect to the OSC bridge."""
    await relay.restart()
    return _state(relay, host)
