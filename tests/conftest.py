"""
Shared pytest fixtures and configuration.
"""

import asyncio

import httpx
import pytest
import pytest_asyncio
import websockets
from httpx import ASGITransport, AsyncClient
from websockets.protocol import State

import bridge.settings as settings_mod
from bridge.api.app import create_app
from bridge.host import LocalHost
from bridge.presence.resolver import AssetResolver
from bridge.presence.synthesizer import ActivitySynthesizer

METADATA_BASE = "https://raw.githubusercontent.com/PreMiD/Presences/main/websites"
NOW = 1_700_000_000

APPS = {
    "100": {"name": "YouTube", "icon": "yt-icon", "flags": 0},
    "200": {"name": "Spotify", "icon": "sp-icon", "flags": 0},
    "300": {"name": "PreMiD", "icon": None, "flags": 0},
    "400": {"name": "", "icon": None, "flags": 0},
    "500": {"name": "Some Game", "icon": None, "flags": 0},
    "600": {"name": "Twitter", "icon": None, "flags": 0},
    "700": {"name": "Broken", "icon": None, "flags": 0},
}

ASSETS = {
    "logo": "111",
    "pause": "222",
    "premid_large": "900",
    "premid_small": "901",
}

METADATA = {
    "YouTube": {"category": "videos", "tags": ["video", "youtube"]},
    "Spotify": {"category": "music", "tags": ["music"]},
    "Twitter": {"category": "socials", "tags": ["social", "video"]},
    "Reddit": {"category": "socials", "tags": ["forum"]},
    "Crunchyroll": {"category": "anime", "tags": ["streaming"]},
}


class FakeDirectory:
    """In-memory ApplicationDirectory that counts lookups."""

    def __init__(self, apps=None, assets=None):
        self.apps = dict(APPS if apps is None else apps)
        self.assets = dict(ASSETS if assets is None else assets)
        self.lookups = 0
        self.asset_calls = []

    async def lookup_application(self, application_id):
        self.lookups += 1
        await asyncio.sleep(0)
        return dict(self.apps[application_id])

    async def get_asset_images(self, application_id, keys):
        self.asset_calls.append((application_id, list(keys)))
        return [self.assets.get(k) if k else None for k in keys]


class FakeSocket:
    """Stands in for an open client connection; records sent frames."""

    def __init__(self):
        self.state = State.OPEN
        self.sent = []

    async def send(self, message):
        self.sent.append(message)

    async def close(self):
        self.state = State.CLOSED


def metadata_handler(request: httpx.Request) -> httpx.Response:
    # .../websites/<bucket>/<name>/metadata.json
    name = request.url.path.split("/")[-2]
    if name == "Broken":
        return httpx.Response(200, content=b"{not json")
    if name in METADATA:
        return httpx.Response(200, json=METADATA[name])
    return httpx.Response(404)


async def wait_until(predicate, timeout=2.0):
    """Poll *predicate* until it is truthy or *timeout* elapses."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


def unused_url() -> str:
    """A ws:// URL nothing is listening on."""
    import socket
    with socket.socket() as s:
        s.bind(("127.0.0.1", 0))
        port = s.getsockname()[1]
    return f"ws://127.0.0.1:{port}"


# ── Settings isolation ────────────────────────────────────────────────────────

@pytest.fixture(autouse=True)
def tmp_settings_file(tmp_path, monkeypatch):
    """
    Redirect the settings store to a fresh temp file for each test.
    Also resets the in-memory cache so each test starts clean.
    """
    fake_file = tmp_path / "settings.json"
    monkeypatch.setattr(settings_mod, "_FILE", fake_file)
    monkeypatch.setattr(settings_mod, "_current", {})
    yield fake_file


# ── Presence components ──────────────────────────────────────────────────────

@pytest_asyncio.fixture()
async def http():
    async with httpx.AsyncClient(transport=httpx.MockTransport(metadata_handler)) as c:
        yield c


@pytest.fixture()
def directory():
    return FakeDirectory()


@pytest.fixture()
def resolver(directory, http):
    return AssetResolver(directory, http, METADATA_BASE)


@pytest.fixture()
def synthesizer(resolver):
    return ActivitySynthesizer(resolver, branding="vcMiD v1.2.0", clock=lambda: NOW)


@pytest.fixture()
def host():
    return LocalHost(user={"id": "42", "username": "tester"})


# ── Local WebSocket peers ────────────────────────────────────────────────────

class Peer:
    """
    A local WebSocket server playing the companion process.
    Sends `script` frames on connect, then records what it receives.
    With `hang_up` set it closes right after the script.
    """

    def __init__(self):
        self.url = ""
        self.script = []
        self.hang_up = False
        self.received = []
        self.connections = 0

    async def handler(self, ws):
        self.connections += 1
        for frame in self.script:
            await ws.send(frame)
        if self.hang_up:
            await ws.close()
            return
        try:
            async for message in ws:
                self.received.append(message)
        except websockets.ConnectionClosed:
            pass


@pytest_asyncio.fixture()
async def peer():
    p = Peer()
    async with websockets.serve(p.handler, "127.0.0.1", 0) as server:
        port = server.sockets[0].getsockname()[1]
        p.url = f"ws://127.0.0.1:{port}"
        yield p


# ── API ──────────────────────────────────────────────────────────────────────

@pytest.fixture()
def app():
    """Create a fresh app instance that does not dial the local bridges."""
    return create_app(autostart=False)


@pytest_asyncio.fixture()
async def client(app):
    """Async HTTP client wired directly to the ASGI app (no server needed)."""
    async with app.router.lifespan_context(app):
        async with AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test"
        ) as ac:
            yield ac
