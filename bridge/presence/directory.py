"""
Application Directory — host-side lookups for RPC application info and
application asset images.

The resolver only depends on the ApplicationDirectory protocol; the HTTP
implementation below talks to the public application RPC endpoints.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Protocol

import httpx

logger = logging.getLogger(__name__)


class ApplicationDirectory(Protocol):
    async def lookup_application(self, application_id: str) -> Dict[str, Any]:
        """Return at least ``name``; ``icon`` and ``flags`` when known."""
        ...

    async def get_asset_images(
        self, application_id: str, keys: List[Optional[str]]
    ) -> List[Optional[str]]:
        """Map asset keys to host image references, aligned with *keys*."""
        ...


def _is_direct_reference(key: str) -> bool:
    return key.startswith(("http://", "https://", "mp:"))


class HttpApplicationDirectory:
    """
    Resolves applications and asset keys over HTTP.

    Usage:
        async with httpx.AsyncClient() as client:
            directory = HttpApplicationDirectory(client, "https://discord.com/api/v9")
            app = await directory.lookup_application("463097721130188830")
    """

    def __init__(self, client: httpx.AsyncClient, api_base_url: str):
        self._client = client
        self._base = api_base_url.rstrip("/")
        self._assets: Dict[str, Dict[str, str]] = {}

    async def lookup_application(self, application_id: str) -> Dict[str, Any]:
        r = await self._client.get(f"{self._base}/oauth2/applications/{application_id}/rpc")
        r.raise_for_status()
        body = r.json()
        return {
            "id": str(body.get("id", application_id)),
            "name": body.get("name") or "",
            "icon": body.get("icon"),
            "flags": int(body.get("flags") or 0),
        }

    async def get_asset_images(
        self, application_id: str, keys: List[Optional[str]]
    ) -> List[Optional[str]]:
        images: List[Optional[str]] = []
        for key in keys:
            if not key:
                images.append(None)
            elif _is_direct_reference(key):
                images.append(key)
            else:
                assets = await self._asset_index(application_id)
                images.append(assets.get(key))
        return images

    async def _asset_index(self, application_id: str) -> Dict[str, str]:
        """Asset name → asset id, fetched once per application."""
        if application_id not in self._assets:
            r = await self._client.get(
                f"{self._base}/oauth2/applications/{application_id}/assets"
            )
            r.raise_for_status()
            self._assets[application_id] = {
                a["name"]: str(a["id"]) for a in r.json() if "name" in a and "id" in a
            }
            logger.debug(
                "Indexed %d assets for %s", len(self._assets[application_id]), application_id
            )
        return self._assets[application_id]
