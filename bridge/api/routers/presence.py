"""
/presence — connection state, operator actions, and the dispatch stream a
host subscribes to for LOCAL_ACTIVITY_UPDATE actions.
"""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends, HTTPException, Request, WebSocket, WebSocketDisconnect

from ...api.schemas import PresenceStateOut, ReconnectOut
from ...presence.models import ConnectionState

router = APIRouter(prefix="/presence", tags=["presence"])


def _get_supervisor(request: Request):
    return request.app.state.supervisor


def _get_host(request: Request):
    return request.app.state.host


def _get_publisher(request: Request):
    return request.app.state.publisher


@router.get("", response_model=PresenceStateOut)
def get_presence(supervisor=Depends(_get_supervisor), publisher=Depends(_get_publisher)):
    """Return the connection state and the activity currently published."""
    return PresenceStateOut(
        state=supervisor.state.value,
        url=supervisor.url,
        reconnecting=supervisor.reconnecting,
        activity=publisher.current,
    )


@router.post("/reconnect", response_model=ReconnectOut)
async def reconnect(supervisor=Depends(_get_supervisor)):
    """Force-close and restart the companion connection."""
    connected = await supervisor.reconnect()
    return ReconnectOut(connected=connected, state=supervisor.state.value)


@router.post("/stop", response_model=PresenceStateOut)
def stop(supervisor=Depends(_get_supervisor), publisher=Depends(_get_publisher)):
    """Retract the published activity."""
    supervisor.stop()
    return PresenceStateOut(
        state=supervisor.state.value,
        url=supervisor.url,
        reconnecting=supervisor.reconnecting,
        activity=publisher.current,
    )


@router.post("/notification/click", response_model=ReconnectOut)
async def click_notification(supervisor=Depends(_get_supervisor), host=Depends(_get_host)):
    """Act on the pending connection-failed notification (retry)."""
    if not await host.click_notification():
        raise HTTPException(status_code=404, detail="No pending notification")
    return ReconnectOut(
        connected=supervisor.state is ConnectionState.OPEN,
        state=supervisor.state.value,
    )


@router.websocket("/ws")
async def presence_websocket(websocket: WebSocket):
    """
    Stream every dispatched action and host notice.
    The last presence action is replayed first so a new subscriber starts
    from the current state. The subscription ends as soon as the client
    goes away, not at the next event.
    """
    host = websocket.app.state.host
    queue = host.subscribe()
    closed = None
    try:
        await websocket.accept()
        closed = asyncio.create_task(_until_disconnect(websocket))
        last = host.last_action(websocket.app.state.publisher.socket_id)
        if last is not None:
            await websocket.send_json(last)
        while True:
            event = asyncio.ensure_future(queue.get())
            done, _ = await asyncio.wait({event, closed}, return_when=asyncio.FIRST_COMPLETED)
            if closed in done:
                event.cancel()
                break
            await websocket.send_json(event.result())
    except WebSocketDisconnect:
        pass
    finally:
        if closed is not None:
            closed.cancel()
        host.unsubscribe(queue)


async def _until_disconnect(websocket: WebSocket) -> None:
    """Consume inbound frames (ignored) until the client disconnects."""
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return
