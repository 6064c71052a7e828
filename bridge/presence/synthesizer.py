"""
Activity Synthesizer — turns an inbound companion activity into the activity
the host displays, or None when nothing should be shown.

Steps, in order:
  1. resolve the application (name, inferred category)
  2. suppress unknown apps and the companion's own placeholder app
  3. pick the category (inferred, else the operator fallback)
  4. resolve large/small assets, with a placeholder per slot and a
     default small caption
  5. brand PLAYING activities with the bridge name and version
  6. forward buttons when enabled
  7. reconcile timestamps; WATCHING gets an elapsed/remaining caption
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from ..settings import get_settings
from .models import (
    ActivityAssets,
    ActivityMetadata,
    ActivityTimestamps,
    ActivityType,
    RawActivity,
    SynthesizedActivity,
)
from .resolver import AssetResolver, ResolutionError

logger = logging.getLogger(__name__)

PLACEHOLDER_APP_NAME = "PreMiD"
LARGE_PLACEHOLDER_KEY = "premid_large"
SMALL_PLACEHOLDER_KEY = "premid_small"
SMALL_TEXT_FALLBACK = "hello there :3"

# Platforms whose second button is a "view channel" link
VIDEO_PLATFORMS = {"YouTube"}


def format_duration(seconds: float) -> str:
    """MM:SS; minutes are not wrapped into hours, negatives clamp to 00:00."""
    seconds = max(int(seconds), 0)
    minutes, rest = divmod(seconds, 60)
    return f"{minutes:02d}:{rest:02d}"


def _fallback_category(value: int) -> ActivityType:
    try:
        return ActivityType(value)
    except ValueError:
        logger.warning("Unknown fallback status type %r; using PLAYING", value)
        return ActivityType.PLAYING


class ActivitySynthesizer:
    """
    Builds the host activity for one inbound companion payload.

    Usage:
        synth = ActivitySynthesizer(resolver, branding="vcMiD v1.2.0")
        activity = await synth.synthesize(raw)   # None when suppressed
    """

    def __init__(
        self,
        resolver: AssetResolver,
        branding: str,
        clock: Callable[[], float] = time.time,
    ):
        self._resolver = resolver
        self._branding = branding
        self._clock = clock

    async def synthesize(self, raw: RawActivity) -> Optional[SynthesizedActivity]:
        try:
            app = await self._resolver.resolve_application(raw.application_id)
        except ResolutionError as e:
            logger.warning("Suppressing activity: %s", e)
            return None

        if not app.name or app.name == PLACEHOLDER_APP_NAME:
            return None

        s = get_settings()
        category = app.category or _fallback_category(s["status_type"])

        activity = SynthesizedActivity(
            application_id=raw.application_id,
            name=app.name,
            type=category,
            state=raw.state,
            details=raw.details,
            assets=await self._assets(raw),
        )

        if category == ActivityType.PLAYING:
            activity.assets.large_text = self._branding

        if s["show_buttons"] and raw.buttons:
            self._apply_buttons(activity, raw, hide_view_channel=s["hide_view_channel"])

        self._apply_timestamps(activity, raw)
        return activity

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _assets(self, raw: RawActivity) -> ActivityAssets:
        assets = raw.assets
        return ActivityAssets(
            large_image=await self._asset(
                raw.application_id, assets.large_image if assets else None, LARGE_PLACEHOLDER_KEY
            ),
            large_text=assets.large_text if assets else None,
            small_image=await self._asset(
                raw.application_id, assets.small_image if assets else None, SMALL_PLACEHOLDER_KEY
            ),
            small_text=(assets.small_text if assets else None) or SMALL_TEXT_FALLBACK,
        )

    async def _asset(self, application_id: str, key: Optional[str], placeholder: str) -> Optional[str]:
        image = await self._resolver.resolve_asset(application_id, key or placeholder)
        if image is None and key and key != placeholder:
            image = await self._resolver.resolve_asset(application_id, placeholder)
        return image

    @staticmethod
    def _apply_buttons(
        activity: SynthesizedActivity, raw: RawActivity, hide_view_channel: bool
    ) -> None:
        urls = raw.metadata.button_urls if raw.metadata else None
        if activity.name in VIDEO_PLATFORMS and hide_view_channel:
            activity.buttons = raw.buttons[:1]
            if urls:
                activity.metadata = ActivityMetadata(button_urls=urls[:1])
        else:
            activity.buttons = list(raw.buttons)
            if urls:
                activity.metadata = ActivityMetadata(button_urls=list(urls))

    def _apply_timestamps(self, activity: SynthesizedActivity, raw: RawActivity) -> None:
        if raw.timestamps is None:
            return
        start, end = raw.timestamps.start, raw.timestamps.end
        watching = activity.type == ActivityType.WATCHING
        now = int(self._clock())

        if start and end:
            activity.timestamps = ActivityTimestamps(start=start, end=end)
        elif start:
            if watching:
                activity.assets.large_text = f"{format_duration(now - start)} elapsed"
            activity.timestamps = ActivityTimestamps(start=start)
        elif end:
            if watching:
                activity.assets.large_text = f"{format_duration(end - now)} left"
            activity.timestamps = ActivityTimestamps(end=end)
