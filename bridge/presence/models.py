"""
Presence data model — inbound activity payloads, resolved application
descriptors, and the outbound activity record sent to the host.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum, IntEnum, IntFlag
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ActivityType(IntEnum):
    PLAYING = 0
    LISTENING = 2
    WATCHING = 3
    COMPETING = 5


class ActivityFlag(IntFlag):
    INSTANCE = 1 << 0


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


@dataclass(frozen=True)
class ApplicationDescriptor:
    id: str
    name: str
    icon: Optional[str] = None
    category: Optional[ActivityType] = None
    flags: int = 0


# ── Inbound (untrusted) ────────────────────────────────────────────────────

class _Inbound(BaseModel):
    model_config = ConfigDict(extra="ignore")


class RawTimestamps(_Inbound):
    start: Optional[Union[int, float]] = None
    end: Optional[Union[int, float]] = None


class RawAssets(_Inbound):
    large_image: Optional[str] = None
    large_text: Optional[str] = None
    small_image: Optional[str] = None
    small_text: Optional[str] = None


class RawMetadata(_Inbound):
    button_urls: Optional[List[str]] = None


class RawActivity(_Inbound):
    application_id: str
    state: Optional[str] = None
    details: Optional[str] = None
    timestamps: Optional[RawTimestamps] = None
    assets: Optional[RawAssets] = None
    buttons: Optional[List[str]] = None
    metadata: Optional[RawMetadata] = None


class SocketMessage(_Inbound):
    type: str
    data: Any = None


# ── Outbound ───────────────────────────────────────────────────────────────

def _omit_empty(record: Any, keep: tuple[str, ...] = ()) -> Dict[str, Any]:
    """Serialise a dataclass, dropping every falsy value except the *keep* keys."""
    out: Dict[str, Any] = {}
    for f in fields(record):
        value = getattr(record, f.name)
        if hasattr(value, "to_payload"):
            value = value.to_payload()
        if f.name in keep or value:
            out[f.name] = int(value) if isinstance(value, IntEnum) else value
    return out


@dataclass
class ActivityAssets:
    large_image: Optional[str] = None
    large_text: Optional[str] = None
    small_image: Optional[str] = None
    small_text: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        return _omit_empty(self)


@dataclass
class ActivityTimestamps:
    start: Optional[Union[int, float]] = None
    end: Optional[Union[int, float]] = None

    def to_payload(self) -> Dict[str, Any]:
        return _omit_empty(self)


@dataclass
class ActivityMetadata:
    button_urls: List[str] = field(default_factory=list)

    def to_payload(self) -> Dict[str, Any]:
        return _omit_empty(self)


@dataclass
class SynthesizedActivity:
    application_id: str
    name: str
    type: ActivityType
    state: Optional[str] = None
    details: Optional[str] = None
    flags: int = int(ActivityFlag.INSTANCE)
    assets: ActivityAssets = field(default_factory=ActivityAssets)
    timestamps: Optional[ActivityTimestamps] = None
    buttons: List[str] = field(default_factory=list)
    metadata: Optional[ActivityMetadata] = None

    def to_payload(self) -> Dict[str, Any]:
        """
        Host-ready dict. Empty values are omitted; ``type`` is always kept
        because the host rejects an activity without a category, even when
        it is PLAYING (0).
        """
        return _omit_empty(self, keep=("type",))
