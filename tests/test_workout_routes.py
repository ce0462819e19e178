import pytest

pytest.importorskip("flask")

from stamina_server import create_app  # noqa: E402
from StaminaBar.runtime import WorkoutRuntime  # noqa: E402
from StaminaBar.simulated import SimulatedHealthStore  # noqa: E402


@pytest.fixture
def runtime():
    rt = WorkoutRuntime(SimulatedHealthStore())
    yield rt
    rt.stop()


@pytest.fixture
def client(runtime):
    app = create_app(runtime)
    with app.test_client() as c:
        yield c


def test_status_starts_idle(client):
    resp = client.get("/api/workout/status")
    assert resp.status_code == 200
    data = resp.get_json()
    assert data["state"] == "idle"
    assert data["zone"]["band"] == "Refresh"
    assert data["poller"] == {"running": False, "ticks": 0}


def test_activities(client):
    data = client.get("/api/workout/activities").get_json()
    assert [a["label"] for a in data] == ["Stamina Bar", "Walk", "Yoga", "Run", "Bike", "Hike", "Weights", "HIIT"]


def test_workout_flow(client, runtime):
    data = client.post("/api/workout/start", json={"activity": "running"}).get_json()
    assert data["state"] == "running"
    assert data["label"] == "Run"
    assert data["poller"]["running"] is True

    assert client.post("/api/workout/toggle").get_json()["state"] == "paused"
    assert client.post("/api/workout/resume").get_json()["state"] == "running"

    data = client.post("/api/workout/end").get_json()
    assert data["state"] == "ended"
    assert data["summary"]["activity"] == "running"
    assert data["poller"]["running"] is False

    data = client.post("/api/workout/dismiss").get_json()
    assert data["state"] == "idle"
    assert data["summary"] is None
    assert len(runtime.store.sessions) == 1


def test_start_accepts_form_data(client):
    data = client.post("/api/workout/start", data={"activity": "walking"}).get_json()
    assert data["activity"] == "walking"


def test_start_requires_known_activity(client):
    assert client.post("/api/workout/start", json={}).status_code == 400
    resp = client.post("/api/workout/start", json={"activity": "curling"})
    assert resp.status_code == 400
    assert "curling" in resp.get_json()["error"]


def test_unknown_action(client):
    resp = client.post("/api/workout/teleport")
    assert resp.status_code == 404


def test_end_when_idle_is_noop(client):
    data = client.post("/api/workout/end").get_json()
    assert data["state"] == "idle"


def test_authorize(client, runtime):
    client.post("/api/workout/authorize")
    assert runtime.store.authorized


@pytest.mark.parametrize("bpm, band", [("150", "60"), ("69.5", "100"), ("0", "Refresh")])
def test_zone_route(client, bpm, band):
    resp = client.get(f"/api/workout/zone/{bpm}")
    assert resp.status_code == 200
    assert resp.get_json()["band"] == band


@pytest.mark.parametrize("bpm", ["abc", "-3", "nan", "inf"])
def test_zone_route_rejects_bad_input(client, bpm):
    assert client.get(f"/api/workout/zone/{bpm}").status_code == 400


def test_runtime_rejects_unknown_action(runtime):
    runtime.start()
    with pytest.raises(ValueError):
        runtime.action("explode")
