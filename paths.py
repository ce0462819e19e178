from __future__ import annotations

import os
from pathlib import Path
from typing import Dict


def _get_base_dir() -> Path:
    """Return the data root, honouring ``BASE_DIR`` from the environment."""

    p = os.environ.get("BASE_DIR")
    return Path(p) if p else Path(__file__).resolve().parent


def _compute() -> Dict[str, Path]:
    BASE = _get_base_dir()
    LOGS = BASE / "logs"
    STATE = BASE / "state"

    # Paths are only computed here; callers create directories on demand.
    return {
        "BASE_DIR": BASE,
        "LOGS_DIR": LOGS,
        "STATE_DIR": STATE,
        "PREFERENCES_JSON": STATE / "preferences.json",
    }


def _apply(d):
    globals().update(d)


def refresh_paths() -> None:
    """Recompute globals after BASE_DIR changes (tests call this)."""
    _apply(_compute())


# initialize on import
_apply(_compute())
