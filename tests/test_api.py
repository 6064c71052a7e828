"""
Integration tests for the FastAPI application.
Uses httpx.AsyncClient with the ASGI transport (no running server needed).
Fixtures are provided by tests/conftest.py.
"""

from __future__ import annotations

import json
import time

from fastapi.testclient import TestClient

from bridge.api.app import create_app
from bridge.presence.supervisor import FAILED_TITLE

from conftest import FakeSocket, unused_url


class TestHealth:
    async def test_health_ok(self, client):
        r = await client.get("/health")
        assert r.status_code == 200
        body = r.json()
        assert body["status"] == "ok"
        assert body["presence"] == "disconnected"
        assert body["chat"] is False


class TestPresenceEndpoint:
    async def test_initial_state(self, client):
        r = await client.get("/presence")
        assert r.status_code == 200
        body = r.json()
        assert body["state"] == "disconnected"
        assert body["reconnecting"] is False
        assert body["activity"] is None

    async def test_published_activity_is_reported(self, client, app):
        app.state.publisher.current = {"name": "YouTube", "type": 3, "flags": 1}
        r = await client.get("/presence")
        assert r.json()["activity"]["name"] == "YouTube"

    async def test_stop_retracts_activity(self, client, app):
        app.state.publisher.current = {"name": "YouTube", "type": 3, "flags": 1}
        r = await client.post("/presence/stop")
        assert r.status_code == 200
        assert r.json()["activity"] is None
        assert app.state.host.last_action("PreMiD")["activity"] is None


class TestReconnect:
    async def test_failed_reconnect_raises_notification(self, client, app):
        app.state.supervisor.url = unused_url()
        r = await client.post("/presence/reconnect")
        assert r.status_code == 200
        assert r.json() == {"connected": False, "state": "closed"}
        assert app.state.host.pending_notification.title == FAILED_TITLE

    async def test_click_without_notification_is_404(self, client):
        r = await client.post("/presence/notification/click")
        assert r.status_code == 404

    async def test_click_retries(self, client, app, peer):
        app.state.supervisor.url = unused_url()
        await client.post("/presence/reconnect")

        app.state.supervisor.url = peer.url
        r = await client.post("/presence/notification/click")
        assert r.status_code == 200
        assert r.json() == {"connected": True, "state": "open"}
        assert "PreMiD Connected" in app.state.host.toasts


class TestChatEndpoints:
    async def test_state_lists_commands(self, client):
        r = await client.get("/chat")
        assert r.status_code == 200
        body = r.json()
        assert body["connected"] is False
        assert body["override"] is False
        assert "override" in body["commands"]

    async def test_plain_message_is_sent(self, client):
        r = await client.post("/chat/messages", json={"channel_id": "7", "content": "hello"})
        assert r.json() == {"channel_id": "7", "content": "hello", "send": True}

    async def test_relayed_message_is_consumed(self, client, app):
        relay = app.state.relay
        ws = FakeSocket()
        relay._ws = ws
        relay._listener = app.state.host.add_pre_send_listener(relay.on_send)

        r = await client.post("/chat/messages", json={"content": "==to the chatbox"})
        assert r.json()["send"] is False
        assert json.loads(ws.sent[0])["content"] == "to the chatbox"

    async def test_draft_returns_204(self, client):
        r = await client.post("/chat/draft", json={"draft": "==typing"})
        assert r.status_code == 204

    async def test_override_command(self, client):
        r = await client.post("/chat/commands/override", json={"channel_id": "7", "args": {"value": True}})
        assert r.status_code == 200
        assert r.json()["reply"] == "Override mode is now true."
        assert (await client.get("/chat")).json()["override"] is True

    async def test_override_command_bad_args_is_422(self, client):
        r = await client.post("/chat/commands/override", json={"args": {}})
        assert r.status_code == 422

    async def test_unknown_command_is_404(self, client):
        r = await client.post("/chat/commands/nope", json={})
        assert r.status_code == 404

    async def test_connect_against_bridge(self, client, app, peer):
        app.state.relay.url = peer.url
        r = await client.post("/chat/connect")
        assert r.json()["connected"] is True
        assert "connect" in r.json()["commands"]

    async def test_clear_chatbox_toasts(self, client, app):
        r = await client.post("/chat/clear")
        assert r.status_code == 200
        assert app.state.host.toasts[-1] == "Chatbox cleared!"


class TestPresenceStream:
    def test_replays_last_action_then_streams(self):
        with TestClient(create_app(autostart=False)) as tc:
            tc.post("/presence/stop")
            with tc.websocket_connect("/presence/ws") as ws:
                replay = ws.receive_json()
                assert replay == {
                    "type": "LOCAL_ACTIVITY_UPDATE",
                    "activity": None,
                    "socketId": "PreMiD",
                }
                tc.post("/chat/clear")
                assert ws.receive_json() == {"type": "TOAST", "message": "Chatbox cleared!"}

    def test_disconnect_unsubscribes_without_further_events(self):
        app = create_app(autostart=False)
        with TestClient(app) as tc:
            host = app.state.host
            with tc.websocket_connect("/presence/ws"):
                assert len(host._subscribers) == 1
            # nothing is dispatched after the client leaves
            deadline = time.monotonic() + 2
            while host._subscribers and time.monotonic() < deadline:
                time.sleep(0.01)
            assert host._subscribers == []
