import pytest
from pydantic import ValidationError

from config.settings import Settings, get_settings, reset_settings


def test_defaults(tmp_path):
    cfg = get_settings()
    assert cfg.BASE_DIR == tmp_path
    assert cfg.POLL_INTERVAL == 20.0
    assert cfg.POLL_OVERLAP == "coalesce"
    assert cfg.HR_STRAP_MAC is None
    assert cfg.DEFAULT_LOCATION == "outdoor"


def test_reset_settings_picks_up_environment(monkeypatch):
    before = get_settings()
    monkeypatch.setenv("POLL_INTERVAL", "7.5")
    monkeypatch.setenv("STAMINA_ACCESS_LOG", "1")
    reset_settings()
    cfg = get_settings()
    assert cfg is not before
    assert cfg.POLL_INTERVAL == 7.5
    assert cfg.STAMINA_ACCESS_LOG is True


def test_invalid_overlap_policy(monkeypatch):
    monkeypatch.setenv("POLL_OVERLAP", "queue")
    with pytest.raises(ValidationError):
        Settings()


def test_paths_follow_base_dir(tmp_path):
    import paths

    assert paths.BASE_DIR == tmp_path
    assert paths.PREFERENCES_JSON == tmp_path / "state" / "preferences.json"
