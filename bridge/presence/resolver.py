"""
Asset/Metadata Resolver — application descriptors and asset images.

Descriptors are cached for the life of the process. Concurrent resolutions
of the same application id share one in-flight lookup.

Category inference reads the presence metadata published in the PreMiD
Presences repository:

    <base>/<bucket>/<name>/metadata.json

where bucket is the first letter of the name, "0-9" for a leading digit,
and "%23" (an encoded "#") for anything else.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from .directory import ApplicationDirectory
from .models import ActivityType, ApplicationDescriptor

logger = logging.getLogger(__name__)

_WATCHING_ANIME_TAGS = {"video", "media", "streaming"}


class ResolutionError(LookupError):
    """The host could not describe an application id."""


def category_bucket(name: str) -> str:
    first = name[:1]
    if first.isascii() and first.isalpha():
        return first
    if first.isascii() and first.isdigit():
        return "0-9"
    return "%23"


def category_from_metadata(metadata: Dict[str, Any]) -> Optional[ActivityType]:
    """Map a presence metadata document to an activity category (None = use default)."""
    category = metadata.get("category")
    tags = metadata.get("tags") or []
    if category == "socials":
        if "video" in tags:
            return ActivityType.WATCHING
    elif category == "anime":
        if any(tag in _WATCHING_ANIME_TAGS for tag in tags):
            return ActivityType.WATCHING
    elif category == "music":
        return ActivityType.LISTENING
    elif category == "videos":
        return ActivityType.WATCHING
    return None


class AssetResolver:
    """
    Application descriptors and asset images, cached per application id.

    Usage:
        resolver = AssetResolver(directory, client, config.metadata_base_url)
        app = await resolver.resolve_application("463097721130188830")
        image = await resolver.resolve_asset(app.id, "logo")
    """

    def __init__(
        self,
        directory: ApplicationDirectory,
        http: httpx.AsyncClient,
        metadata_base_url: str,
    ):
        self._directory = directory
        self._http = http
        self._metadata_base = metadata_base_url.rstrip("/")
        self._cache: Dict[str, ApplicationDescriptor] = {}
        self._pending: Dict[str, asyncio.Task] = {}

    # ------------------------------------------------------------------
    # Applications
    # ------------------------------------------------------------------

    async def resolve_application(self, application_id: str) -> ApplicationDescriptor:
        cached = self._cache.get(application_id)
        if cached is not None:
            return cached

        task = self._pending.get(application_id)
        if task is None:
            task = asyncio.ensure_future(self._resolve(application_id))
            self._pending[application_id] = task
            task.add_done_callback(lambda _t: self._pending.pop(application_id, None))
        # shield: one cancelled waiter must not cancel the shared lookup
        return await asyncio.shield(task)

    async def _resolve(self, application_id: str) -> ApplicationDescriptor:
        logger.debug("Looking up %s", application_id)
        try:
            info = await self._directory.lookup_application(application_id)
        except (httpx.HTTPError, ValueError, KeyError) as e:
            raise ResolutionError(f"lookup failed for {application_id}: {e}") from e

        name = str(info.get("name") or "")
        logger.debug("Lookup finished for %s", name)
        category = await self.infer_category(name) if name else None
        logger.debug("Activity type for %s: %s", name, category)

        descriptor = ApplicationDescriptor(
            id=application_id,
            name=name,
            icon=info.get("icon"),
            category=category,
            flags=int(info.get("flags") or 0),
        )
        self._cache[application_id] = descriptor
        return descriptor

    async def infer_category(self, name: str) -> Optional[ActivityType]:
        url = f"{self._metadata_base}/{category_bucket(name)}/{name}/metadata.json"
        try:
            r = await self._http.get(url)
        except httpx.HTTPError as e:
            logger.warning("Metadata fetch for %r failed: %s", name, e)
            return None
        if not r.is_success:
            return ActivityType.PLAYING
        try:
            metadata = r.json()
            return category_from_metadata(metadata)
        except (ValueError, AttributeError, TypeError) as e:
            logger.warning("Unreadable metadata for %r: %s", name, e)
            return ActivityType.PLAYING

    def cached(self, application_id: str) -> Optional[ApplicationDescriptor]:
        return self._cache.get(application_id)

    def clear(self) -> None:
        self._cache.clear()

    # ------------------------------------------------------------------
    # Assets
    # ------------------------------------------------------------------

    async def resolve_asset(self, application_id: str, key: str) -> Optional[str]:
        try:
            images = await self._directory.get_asset_images(application_id, [key, None])
        except (httpx.HTTPError, ValueError, KeyError) as e:
            logger.warning("Asset lookup for %s/%s failed: %s", application_id, key, e)
            return None
        return images[0] if images else None
