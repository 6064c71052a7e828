"""
Pydantic schemas for the local control API.
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

# ── Presence ───────────────────────────────────────────────────────────────

class PresenceStateOut(BaseModel):
    state: str = Field(..., description="disconnected | connecting | open | closed")
    url: str
    reconnecting: bool
    activity: Optional[Dict[str, Any]] = None


class ReconnectOut(BaseModel):
    connected: bool
    state: str


# ── Settings ───────────────────────────────────────────────────────────────

class SettingsPatch(BaseModel):
    show_buttons:      Optional[bool] = None
    manual_share:      Optional[bool] = None
    hide_view_channel: Optional[bool] = None
    status_type:       Optional[Literal[0, 2, 3, 5]] = Field(
        None, description="0 playing | 2 listening | 3 watching | 5 competing"
    )
    override:          Optional[bool] = None


# ── Chat ───────────────────────────────────────────────────────────────────

class ChatMessageIn(BaseModel):
    channel_id: str = "0"
    content: str


class ChatMessageOut(BaseModel):
    channel_id: str
    content: str
    send: bool = Field(..., description="False when the relay consumed the message")


class DraftIn(BaseModel):
    draft: str


class CommandIn(BaseModel):
    channel_id: str = "0"
    args: Dict[str, Any] = Field(default_factory=dict)


class CommandOut(BaseModel):
    name: str
    reply: Optional[str] = None


class ChatStateOut(BaseModel):
    connected: bool
    url: str
    override: bool
    commands: List[str]
