import types

import pytest

pytest.importorskip("flask")
from flask import Flask  # noqa: E402

import routes.health as health_module  # noqa: E402
from StaminaBar.runtime import WorkoutRuntime  # noqa: E402


def _stub_psutil(monkeypatch):
    monkeypatch.setattr(health_module.psutil, "disk_usage", lambda path: types.SimpleNamespace(free=2 * 1024**3))
    monkeypatch.setattr(health_module.psutil, "cpu_percent", lambda interval=None: 12.5)
    monkeypatch.setattr(health_module.psutil, "virtual_memory", lambda: types.SimpleNamespace(percent=40))


def _app(runtime=None):
    app = Flask(__name__)
    if runtime is not None:
        app.extensions["workout_runtime"] = runtime
    app.register_blueprint(health_module.health_bp, url_prefix="/api/health")
    return app


def test_health_without_runtime(monkeypatch):
    _stub_psutil(monkeypatch)
    with _app().test_client() as client:
        resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.get_json() == {
        "workout_loop": False,
        "poller_running": False,
        "hr_strap": None,
        "disk_free_gb": 2.0,
        "cpu_percent": 12.5,
        "mem_percent": 40,
    }


def test_health_with_running_loop(monkeypatch):
    _stub_psutil(monkeypatch)
    runtime = WorkoutRuntime().start()
    try:
        with _app(runtime).test_client() as client:
            data = client.get("/api/health").get_json()
    finally:
        runtime.stop()
    assert data["workout_loop"] is True
    assert data["poller_running"] is False
    assert not runtime.alive
