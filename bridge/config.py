"""
Central configuration for the presence bridge.
All values can be overridden via environment variables or a local config.json.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path

_ROOT = Path(__file__).parent.parent
_CONFIG_FILE = _ROOT / "config.json"


@dataclass
class Config:
    # Control API
    api_host: str = "127.0.0.1"
    api_port: int = 8766

    # Local bridge sockets
    presence_url: str = "ws://127.0.0.1:4020"    # PreMiD companion bridge
    chat_url: str = "ws://127.0.0.1:6942"        # OSC text bridge
    connect_timeout_s: float = 1.0
    autostart: bool = True

    # Lookups
    http_timeout_s: float = 5.0
    metadata_base_url: str = "https://raw.githubusercontent.com/PreMiD/Presences/main/websites"
    api_base_url: str = "https://discord.com/api/v9"

    # Presence identity
    socket_id: str = "PreMiD"
    bridge_name: str = "vcMiD"
    version: str = "1.2.0"

    # Current user echoed back to the companion on getCurrentUser
    user_id: str = "0"
    username: str = "local"

    log_level: str = "info"

    # Storage
    data_dir: Path = field(default_factory=lambda: _ROOT / "data")

    def __post_init__(self):
        self.data_dir = Path(self.data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)

    @classmethod
    def load(cls) -> "Config":
        cfg = cls()
        if _CONFIG_FILE.exists():
            overrides = json.loads(_CONFIG_FILE.read_text())
            for k, v in overrides.items():
                if hasattr(cfg, k):
                    setattr(cfg, k, v)
        # environment variable overrides (PBR_*)
        for k in cfg.__dataclass_fields__:  # type: ignore[attr-defined]
            env_key = f"PBR_{k.upper()}"
            if env_key in os.environ:
                setattr(cfg, k, _coerce(getattr(cfg, k), os.environ[env_key]))
        cfg.data_dir = Path(cfg.data_dir)
        return cfg


def _coerce(current, raw: str):
    if isinstance(current, bool):
        return raw.strip().lower() in ("1", "true", "yes", "on")
    return type(current)(raw)


# Module-level singleton
config = Config.load()
