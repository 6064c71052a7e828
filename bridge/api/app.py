"""
FastAPI application — local control API for the presence bridge.
Runs on http://127.0.0.1:8766 by default.

The host stand-in, resolver, publisher, supervisor and relay live on
app.state; every create_app() call builds its own set in the lifespan.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from ..chat.relay import ChatRelay
from ..config import config
from ..host import LocalHost
from ..presence.directory import HttpApplicationDirectory
from ..presence.publisher import PresencePublisher
from ..presence.resolver import AssetResolver
from ..presence.supervisor import ConnectionSupervisor
from ..presence.synthesizer import ActivitySynthesizer

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lifespan: builds the bridge components and shuts them down
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    host = LocalHost(user={"id": config.user_id, "username": config.username})
    http = httpx.AsyncClient(timeout=config.http_timeout_s, follow_redirects=True)

    resolver = AssetResolver(
        HttpApplicationDirectory(http, config.api_base_url),
        http,
        config.metadata_base_url,
    )
    synthesizer = ActivitySynthesizer(resolver, branding=f"{config.bridge_name} v{config.version}")
    publisher = PresencePublisher(host.dispatch, config.socket_id)
    supervisor = ConnectionSupervisor(
        host, synthesizer, publisher, config.presence_url, config.connect_timeout_s
    )
    relay = ChatRelay(host, config.chat_url, config.connect_timeout_s)
    host.register_command(relay.override_command())

    app.state.host = host
    app.state.resolver = resolver
    app.state.publisher = publisher
    app.state.supervisor = supervisor
    app.state.relay = relay

    logger.info("Presence bridge starting (presence=%s, chat=%s)", config.presence_url, config.chat_url)
    if app.state.autostart:
        # first start is quiet: no retry notification if the companion is down
        await supervisor.start()
        await relay.start()

    yield

    logger.info("Presence bridge shutting down")
    await relay.close()
    supervisor.stop()
    await supervisor.close()
    await http.aclose()


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------

def create_app(autostart: Optional[bool] = None) -> FastAPI:
    app = FastAPI(
        title="Presence Bridge",
        description="Local bridge from the PreMiD companion to the host presence bus",
        version=config.version,
        lifespan=lifespan,
    )
    app.state.autostart = config.autostart if autostart is None else autostart

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://localhost:3000", "null"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from .routers import chat, presence, settings

    app.include_router(presence.router)
    app.include_router(settings.router)
    app.include_router(chat.router)

    @app.get("/health")
    def health(request: Request):
        supervisor = getattr(request.app.state, "supervisor", None)
        relay = getattr(request.app.state, "relay", None)
        return {
            "status": "ok",
            "version": config.version,
            "presence": supervisor.state.value if supervisor else "unknown",
            "chat": relay.connected if relay else False,
        }

    return app


app = create_app()
