import base64
import time

import numpy as np
import pytest
from fastapi.testclient import TestClient

from rom.api import main
from rom.api.main import app, get_config_manager


@pytest.fixture
def client(config_manager):
    app.dependency_overrides[get_config_manager] = lambda: config_manager
    with TestClient(app) as test_client:
        yield test_client
    for session_id in list(main.countdown_timers):
        main._cancel_countdown(session_id)
    main.active_sessions.clear()
    app.dependency_overrides.clear()


def _as_json(frame):
    return {
        "landmarks": {
            role: point.as_dict() if point is not None else None
            for role, point in frame.items()
        }
    }


def _create(client, **body):
    response = client.post("/api/sessions", json=body)
    assert response.status_code == 200
    return response.json()["session_id"]


def test_list_joints(client):
    joints = client.get("/api/joints").json()["joints"]
    assert [j["joint_id"] for j in joints] == ["shoulder", "elbow", "knee", "hip"]
    assert joints[2]["is_extension_convention"] is True


def test_create_session_defaults(client):
    response = client.post("/api/sessions", json={})
    data = response.json()
    assert data["joint_id"] == "elbow"
    assert data["state"] == "idle"
    assert data["remaining_seconds"] == 15


def test_create_session_unknown_joint(client):
    assert client.post("/api/sessions", json={"joint_id": "wrist"}).status_code == 404


def test_create_session_invalid_duration(client):
    response = client.post("/api/sessions", json={"duration_seconds": 0})
    assert response.status_code == 422


def test_unknown_session(client):
    assert client.get("/api/sessions/nope").status_code == 404
    assert client.post("/api/sessions/nope/start").status_code == 404


def test_full_assessment_flow(client, make_frame):
    session_id = _create(client, joint_id="elbow", patient_id="P-9", duration_seconds=2)

    started = client.post(f"/api/sessions/{session_id}/start", json={"auto_countdown": False})
    assert started.json()["state"] == "recording"

    assert client.get(f"/api/sessions/{session_id}/report").status_code == 404

    readout = client.post(
        f"/api/sessions/{session_id}/frames",
        json=_as_json(make_frame("elbow", left=140, right=None)),
    ).json()
    assert readout["angles"]["left"] == pytest.approx(140)
    assert readout["angles"]["right"] is None
    assert readout["left_count"] == 1

    client.post(
        f"/api/sessions/{session_id}/frames",
        json=_as_json(make_frame("elbow", left=130, right=135)),
    )

    assert client.post(f"/api/sessions/{session_id}/tick").json()["completed"] is False
    final = client.post(f"/api/sessions/{session_id}/tick").json()
    assert final["completed"] is True
    assert final["state"] == "complete"

    report = client.get(f"/api/sessions/{session_id}/report").json()
    assert report["patient_id"] == "P-9"
    assert report["left"]["count"] == 2
    assert report["right"]["count"] == 1
    assert report["observations"] == ["Elbow Flexion ROM within expected limits"]


def test_state_errors_map_to_conflict(client):
    session_id = _create(client, joint_id="knee")

    assert client.post(f"/api/sessions/{session_id}/stop").status_code == 409

    client.post(f"/api/sessions/{session_id}/start", json={"auto_countdown": False})
    assert client.post(f"/api/sessions/{session_id}/start", json={"auto_countdown": False}).status_code == 409
    assert client.post(f"/api/sessions/{session_id}/reset").status_code == 409

    stopped = client.post(f"/api/sessions/{session_id}/stop").json()
    assert stopped["state"] == "idle"
    assert client.get(f"/api/sessions/{session_id}/report").status_code == 404

    assert client.post(f"/api/sessions/{session_id}/reset").json()["state"] == "idle"


def test_auto_countdown(client, config_manager):
    config_manager.update_section("session", {"tick_interval": 0.01})
    session_id = _create(client, joint_id="hip", duration_seconds=2)

    client.post(f"/api/sessions/{session_id}/start")
    assert session_id in main.countdown_timers

    deadline = time.monotonic() + 5
    while main.active_sessions[session_id].report is None and time.monotonic() < deadline:
        time.sleep(0.01)

    status = client.get(f"/api/sessions/{session_id}").json()
    assert status["state"] == "complete"
    assert status["has_report"] is True


def test_delete_session(client):
    session_id = _create(client)
    assert client.delete(f"/api/sessions/{session_id}").json()["status"] == "success"
    assert client.get(f"/api/sessions/{session_id}").status_code == 404


def test_stream_frames(client, make_frame):
    session_id = _create(client, joint_id="elbow", duration_seconds=1)
    client.post(f"/api/sessions/{session_id}/start", json={"auto_countdown": False})

    with client.websocket_connect(f"/api/sessions/{session_id}/stream") as websocket:
        websocket.send_json(_as_json(make_frame("elbow", left=120, right=110)))
        reply = websocket.receive_json()
        assert reply["angles"]["left"] == pytest.approx(120)
        assert reply["left_count"] == 1
        assert "report" not in reply

        websocket.send_text("not json")
        assert "error" in websocket.receive_json()

        main.active_sessions[session_id].advance_one_second()
        websocket.send_json(_as_json(make_frame("elbow", left=120, right=110)))
        reply = websocket.receive_json()
        assert reply["angles"] == {}
        assert reply["report"]["left"]["count"] == 1


def test_start_rejects_stored_non_positive_tick_interval(client, config_manager):
    config_manager.config["session"]["tick_interval"] = 0
    session_id = _create(client, joint_id="elbow")

    assert client.post(f"/api/sessions/{session_id}/start").status_code == 422
    assert session_id not in main.countdown_timers
    assert client.get(f"/api/sessions/{session_id}").json()["state"] == "idle"


class FakePoseDetector:
    """Stands in for MediaPipe: returns queued landmark frames in order."""

    def __init__(self, pose_config, frames):
        self.pose_config = pose_config
        self.frames = list(frames)
        self.images = []

    def find_landmarks(self, image):
        self.images.append(image.shape)
        return self.frames.pop(0)

    def close(self):
        pass


def test_video_stream_detects_and_samples(client, config_manager, make_frame, monkeypatch):
    pytest.importorskip("mediapipe")
    cv2 = pytest.importorskip("cv2")
    from rom.utils.pose_detector import PoseDetector

    config_manager.update_section("pose", {"model_complexity": 0})
    detected = make_frame("elbow", left=125, right=115)
    empty = {role: None for role in detected}
    created = []

    def from_config(pose_config):
        created.append(FakePoseDetector(pose_config, [detected, empty]))
        return created[-1]

    monkeypatch.setattr(PoseDetector, "from_config", staticmethod(from_config))

    _, buffer = cv2.imencode(".jpg", np.zeros((48, 64, 3), dtype=np.uint8))
    image = "data:image/jpeg;base64," + base64.b64encode(buffer.tobytes()).decode("ascii")

    session_id = _create(client, joint_id="elbow", duration_seconds=5)
    client.post(f"/api/sessions/{session_id}/start", json={"auto_countdown": False})

    with client.websocket_connect(f"/api/sessions/{session_id}/video") as websocket:
        websocket.send_text(image)
        reply = websocket.receive_json()
        assert reply["detected"] is True
        assert reply["angles"]["left"] == pytest.approx(125)
        assert reply["angles"]["right"] == pytest.approx(115)
        assert reply["left_count"] == 1

        websocket.send_text("data:image/jpeg;base64,")
        assert "error" in websocket.receive_json()

        websocket.send_text(image)
        reply = websocket.receive_json()
        assert reply["detected"] is False
        assert reply["angles"] == {"left": None, "right": None}
        assert reply["left_count"] == 1

    assert created[0].pose_config["model_complexity"] == 0
    assert created[0].images == [(48, 64, 3), (48, 64, 3)]
