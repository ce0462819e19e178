import sys
from pathlib import Path  # noqa: E402

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import logging  # noqa: E402
import os  # noqa: E402

import pytest  # noqa: E402

os.environ.setdefault("BASE_DIR", str(ROOT))

import paths  # noqa: E402
from config.settings import reset_settings  # noqa: E402
from StaminaBar import preferences  # noqa: E402


@pytest.fixture(autouse=True)
def _isolated_base_dir(tmp_path, monkeypatch):
    """Point BASE_DIR at a temporary directory and reload settings and paths."""

    monkeypatch.setenv("BASE_DIR", str(tmp_path))
    monkeypatch.delenv("HR_STRAP_MAC", raising=False)
    monkeypatch.delenv("POLL_OVERLAP", raising=False)
    reset_settings()
    paths.refresh_paths()
    preferences._PREFERENCES.clear()
    yield tmp_path
    monkeypatch.undo()
    reset_settings()
    paths.refresh_paths()
    preferences._PREFERENCES.clear()


@pytest.fixture(autouse=True)
def _restore_root_handlers():
    """Remove log handlers a test installed so files under tmp dirs are released."""

    root = logging.getLogger()
    werkzeug = logging.getLogger("werkzeug")
    before = list(root.handlers)
    werk_before = list(werkzeug.handlers)
    level = root.level
    yield
    for logger, kept in ((root, before), (werkzeug, werk_before)):
        for handler in list(logger.handlers):
            if handler not in kept:
                logger.removeHandler(handler)
                handler.close()
    root.setLevel(level)
