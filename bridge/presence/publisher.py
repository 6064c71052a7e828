"""
Presence Publisher — pushes the current activity onto the host dispatch bus.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from .models import SynthesizedActivity

logger = logging.getLogger(__name__)

LOCAL_ACTIVITY_UPDATE = "LOCAL_ACTIVITY_UPDATE"


class PresencePublisher:

    def __init__(self, dispatch: Callable[[Dict[str, Any]], None], socket_id: str):
        self._dispatch = dispatch
        self.socket_id = socket_id
        self.current: Optional[Dict[str, Any]] = None

    def publish(self, activity: Optional[SynthesizedActivity]) -> None:
        """Publish *activity*, or retract the presence when it is None."""
        payload = activity.to_payload() if activity is not None else None
        self.current = payload
        logger.debug("Publishing activity: %s", payload)
        self._dispatch({
            "type": LOCAL_ACTIVITY_UPDATE,
            "activity": payload,
            "socketId": self.socket_id,
        })

    def clear(self) -> None:
        self.publish(None)
