import pytest
from fastapi.testclient import TestClient

from api import server
from api.server import app
from photoshoot.generators.mock import MockGateway, fake_image
from photoshoot.pipeline.manager import StudioOrchestrator

client = TestClient(app)
AUTH_HEADERS = {"x-api-key": "dev-secret-key"}


@pytest.fixture(autouse=True)
def fresh_orchestrator(monkeypatch, tmp_path):
    # Background tasks run before TestClient returns, so workflows finish inside each request
    studio = StudioOrchestrator(MockGateway(blob_dir=str(tmp_path)), poll_interval=0, retry_base_delay=0)
    monkeypatch.setattr(server, "orchestrator", studio)
    return studio


def dress(count=1):
    payload = {
        "model_ids": ["m1"],
        "apparel": [{"image": fake_image("tee"), "description": "white tee"}],
        "number_of_images": count,
    }
    response = client.patch("/state", json=payload, headers=AUTH_HEADERS)
    assert response.status_code == 200
    return response.json()


def test_health_check():
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "Photoshoot API is running"
    assert response.json()["backend"] == "mock"


def test_mutating_endpoints_require_api_key():
    assert client.patch("/state", json={}).status_code == 401
    assert client.post("/generate", json={}, headers={"x-api-key": "wrong"}).status_code == 403


def test_state_is_public():
    response = client.get("/state")
    assert response.status_code == 200
    data = response.json()
    assert data["mode"] == "apparel"
    assert data["aspect_ratio"] == "3:4"
    assert data["generated_images"] is None


def test_patch_state_resolves_catalog_ids(fresh_orchestrator):
    payload = {
        "background_id": "bg4",
        "lighting_id": "lp3",
        "time_of_day": "Golden Hour",
        "aspect_ratio": "9:16",
        "number_of_images": 12,
        "shot_type_id": "st4",
    }
    response = client.patch("/state", json=payload, headers=AUTH_HEADERS)

    assert response.status_code == 200
    data = response.json()
    assert data["background_name"] == "City Street"
    assert data["aspect_ratio"] == "9:16"
    assert data["number_of_images"] == 4
    state = fresh_orchestrator.state
    assert state.scene.lighting.id == "lp3"
    assert state.scene.time_of_day.value == "Golden Hour"
    assert state.apparel_controls.shot_type.id == "st4"


@pytest.mark.parametrize("payload", [
    {"background_id": "bg99"},
    {"model_ids": ["nobody"]},
    {"mode": "sculpture"},
    {"aspect_ratio": "5:7"},
    {"ecommerce_pack": "mega100"},
])
def test_patch_state_rejects_unknown_ids(payload, fresh_orchestrator):
    before = fresh_orchestrator.state

    response = client.patch("/state", json=payload, headers=AUTH_HEADERS)

    assert response.status_code == 400
    assert fresh_orchestrator.state == before


def test_generate_runs_in_background_and_tracks_usage():
    dress(count=2)

    response = client.post("/generate", json={"user_id": "stylist-1"}, headers=AUTH_HEADERS)
    assert response.status_code == 200
    assert response.json() == {"workflow": "generate", "status": "accepted"}

    data = client.get("/state", params={"user_id": "stylist-1"}).json()
    assert len(data["generated_images"]) == 2
    assert all(data["generated_images"])
    assert data["usage"] == 2
    assert data["generation_count"] == 1
    assert data["is_generating"] is False


def test_generate_reports_validation_errors_in_state():
    client.post("/generate", json={}, headers=AUTH_HEADERS)

    data = client.get("/state").json()
    assert data["error"] == "At least one apparel item is required."


def test_generate_conflicts_while_busy(fresh_orchestrator):
    fresh_orchestrator.store.update(is_generating=True)
    response = client.post("/generate", json={}, headers=AUTH_HEADERS)
    assert response.status_code == 409


def test_select_edit_and_cancel_round_trip():
    dress(count=2)
    client.post("/generate", json={}, headers=AUTH_HEADERS)
    original = client.get("/state").json()["generated_images"][1]

    assert client.post("/images/7/select", headers=AUTH_HEADERS).status_code == 404
    started = client.post("/edit/start/1", headers=AUTH_HEADERS).json()
    assert started["is_editing"] is True
    assert started["edit_index"] == 1

    edit = {"mask": fake_image("mask"), "prompt": "make the tee red"}
    assert client.post("/edit", json=edit, headers=AUTH_HEADERS).status_code == 200
    assert client.get("/state").json()["generated_images"][1] != original

    cancelled = client.post("/edit/cancel", headers=AUTH_HEADERS).json()
    assert cancelled["generated_images"][1] == original
    assert cancelled["is_editing"] is False


def test_video_endpoint(fresh_orchestrator):
    dress()
    client.post("/generate", json={}, headers=AUTH_HEADERS)

    assert client.post("/video", json={"animation_id": "an99"}, headers=AUTH_HEADERS).status_code == 400

    response = client.post("/video", json={"animation_id": "an1"}, headers=AUTH_HEADERS)
    assert response.status_code == 200
    data = client.get("/state").json()
    assert data["generated_video_url"] == fresh_orchestrator.gateway.fetched[0]
    assert data["video_source_image"] is not None


def test_background_endpoint_installs_ai_background():
    response = client.post("/background", json={"prompt": "foggy pine forest at dawn"}, headers=AUTH_HEADERS)
    assert response.status_code == 200
    assert client.get("/state").json()["background_name"] == "AI: foggy pine forest at..."


def test_cancel_endpoint_clears_progress(fresh_orchestrator):
    fresh_orchestrator.store.update(is_generating=True, loading_message="Preparing your vision...")

    data = client.post("/cancel", headers=AUTH_HEADERS).json()

    assert data["is_generating"] is False
    assert data["loading_message"] == ""


def test_image_upload_returns_data_url():
    files = {"file": ("look.png", b"\x89PNG fake", "image/png")}
    response = client.post("/upload", files=files, headers=AUTH_HEADERS)

    assert response.status_code == 200
    data = response.json()
    assert data["filename"] == "look.png"
    assert data["data_url"].startswith("data:image/png;base64,")


def test_upload_rejects_non_images():
    files = {"file": ("notes.txt", b"hello", "text/plain")}
    response = client.post("/upload", files=files, headers=AUTH_HEADERS)
    assert response.status_code == 400
