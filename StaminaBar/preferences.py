"""Persisted preference flags.

Mirrors the small set of flags the watch keeps in its user defaults, such
as whether the onboarding screens have been shown.  Values live in
:data:`paths.PREFERENCES_JSON` and are cached in memory.  A missing or
corrupt file reads as empty.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict

import paths

logger = logging.getLogger(__name__)

ONBOARDING_SHOWN = "onboarding_shown"

_PREFERENCES: Dict[str, Any] = {}


def _preferences_path() -> Path:
    return Path(paths.PREFERENCES_JSON)


def load_preferences() -> Dict[str, Any]:
    """Load preferences from disk into memory and return them."""

    path = _preferences_path()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        data = {}
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Ignoring unreadable preferences file %s: %s", path, exc)
        data = {}
    if not isinstance(data, dict):
        data = {}
    _PREFERENCES.clear()
    _PREFERENCES.update(data)
    return dict(_PREFERENCES)


def save_preferences(prefs: Dict[str, Any]) -> None:
    """Replace the stored preferences with ``prefs``."""

    _PREFERENCES.clear()
    _PREFERENCES.update(prefs)
    path = _preferences_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(prefs, indent=2), encoding="utf-8")


def get_flag(name: str, default: bool = False) -> bool:
    if not _PREFERENCES:
        load_preferences()
    return bool(_PREFERENCES.get(name, default))


def set_flag(name: str, value: bool = True) -> None:
    prefs = load_preferences()
    prefs[name] = bool(value)
    save_preferences(prefs)


def onboarding_shown() -> bool:
    return get_flag(ONBOARDING_SHOWN)


def mark_onboarding_shown(shown: bool = True) -> None:
    set_flag(ONBOARDING_SHOWN, shown)


__all__ = [
    "ONBOARDING_SHOWN",
    "load_preferences",
    "save_preferences",
    "get_flag",
    "set_flag",
    "onboarding_shown",
    "mark_onboarding_shown",
]
