"""
/settings — read and update operator settings.
"""

from __future__ import annotations

from fastapi import APIRouter

from ...api.schemas import SettingsPatch
from ...settings import DEFAULTS, get_settings, update_settings

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("")
def read_settings():
    """Return current settings with their defaults for reference."""
    current = get_settings()
    return {"settings": current, "defaults": DEFAULTS}


@router.put("")
def write_settings(patch: SettingsPatch):
    """Apply a partial update; unknown keys are ignored. Persists to data/settings.json."""
    data = {k: v for k, v in patch.model_dump().items() if v is not None}
    return {"settings": update_settings(data)}
