"""
End-to-end tests for the Flask API through its test client.
"""
import base64
from io import BytesIO

import pytest
from PIL import Image as PILImage

import api_server


@pytest.fixture
def client():
  api_server.app.config["TESTING"] = True
  with api_server.app.test_client() as test_client:
    yield test_client
  api_server.sessions.clear()


@pytest.fixture
def uploads(solid_image, stats_record, png_bytes):
  background = png_bytes(solid_image(600, 800, (40, 80, 40, 255)))
  record = png_bytes(stats_record)

  def build(background_name="photo.png", record_name="record.png"):
    return {
      "background_image": (BytesIO(background), background_name),
      "record_image": (BytesIO(record), record_name),
    }

  return build


def _load(client, uploads):
  response = client.post("/api/load-images", data=uploads(), content_type="multipart/form-data")
  assert response.status_code == 200
  return response.get_json()["session_id"]


def test_full_flow(client, uploads):
  session_id = _load(client, uploads)

  processed = client.post("/api/process", json={"session_id": session_id, "color_mode": "white"})
  body = processed.get_json()
  assert processed.status_code == 200
  assert body["canvas"] == {"width": 300, "height": 400}
  assert body["preview"].startswith("data:image/png;base64,")
  preview = PILImage.open(BytesIO(base64.b64decode(body["preview"].split(",", 1)[1])))
  assert preview.size == (300, 400)

  dragged = client.post("/api/placement/drag", json={"session_id": session_id, "dx": 12, "dy": -4})
  assert dragged.get_json()["placement"]["left"] == pytest.approx(15 + 12)

  reset = client.post("/api/placement/reset", json={"session_id": session_id})
  assert reset.get_json()["placement"]["left"] == pytest.approx(15)

  exported = client.post("/api/export", json={"session_id": session_id})
  assert exported.status_code == 200
  assert exported.mimetype == "image/png"
  assert "attachment" in exported.headers["Content-Disposition"]
  assert ".png" in exported.headers["Content-Disposition"]
  assert PILImage.open(BytesIO(exported.data)).size == (600, 800)


def test_missing_upload_rejected(client, uploads):
  data = uploads()
  del data["record_image"]
  response = client.post("/api/load-images", data=data, content_type="multipart/form-data")
  assert response.status_code == 400
  assert response.get_json()["success"] is False


@pytest.mark.parametrize("record_name", ["record.tiff", "record.gif"])
def test_unsupported_extension_rejected(client, uploads, record_name):
  response = client.post(
    "/api/load-images", data=uploads(record_name=record_name), content_type="multipart/form-data")
  assert response.status_code == 400


def test_undecodable_upload_rejected(client, uploads):
  data = uploads()
  data["background_image"] = (BytesIO(b"garbage"), "photo.jpg")
  response = client.post("/api/load-images", data=data, content_type="multipart/form-data")
  assert response.status_code == 400
  assert "Could not read image" in response.get_json()["message"]


def test_unknown_session_rejected(client):
  response = client.post("/api/process", json={"session_id": "missing", "color_mode": "white"})
  assert response.status_code == 400


def test_bad_color_mode_rejected(client, uploads):
  session_id = _load(client, uploads)
  response = client.post("/api/process", json={"session_id": session_id, "color_mode": "purple"})
  assert response.status_code == 400


def test_export_before_process_conflicts(client, uploads):
  session_id = _load(client, uploads)
  response = client.post("/api/export", json={"session_id": session_id})
  assert response.status_code == 409


def test_health_and_clear_session(client, uploads):
  session_id = _load(client, uploads)

  health = client.get("/api/health").get_json()
  assert health["status"] == "healthy"
  assert health["active_sessions"] == 1

  assert client.post("/api/clear-session", json={"session_id": session_id}).get_json()["success"] is True
  assert client.post("/api/clear-session", json={"session_id": session_id}).get_json()["success"] is False


def test_non_finite_drag_leaves_session_usable(client, uploads):
  session_id = _load(client, uploads)
  client.post("/api/process", json={"session_id": session_id, "color_mode": "white"})

  bad = client.post("/api/placement/drag", json={"session_id": session_id, "dx": "nan"})
  assert bad.status_code == 400
  assert bad.get_json()["success"] is False
  assert api_server.sessions[session_id].placement.left == pytest.approx(15)

  moved = client.post("/api/placement/drag", json={"session_id": session_id, "dx": 1})
  assert moved.status_code == 200
  assert client.post("/api/export", json={"session_id": session_id}).status_code == 200


def test_oversized_upload_returns_json_error(client, uploads, monkeypatch):
  monkeypatch.setitem(api_server.app.config, "MAX_CONTENT_LENGTH", 64)

  response = client.post("/api/load-images", data=uploads(), content_type="multipart/form-data")

  assert response.status_code == 413
  assert response.get_json()["success"] is False
  assert "too large" in response.get_json()["message"]


def test_unhandled_error_returns_json_error(client, uploads, monkeypatch):
  session_id = _load(client, uploads)
  client.post("/api/process", json={"session_id": session_id, "color_mode": "white"})
  monkeypatch.setitem(api_server.app.config, "PROPAGATE_EXCEPTIONS", False)

  def explode(*args):
    raise RuntimeError("renderer crashed")

  monkeypatch.setattr(api_server.sessions[session_id], "drag", explode)
  response = client.post("/api/placement/drag", json={"session_id": session_id, "dx": 1})

  assert response.status_code == 500
  assert response.get_json() == {"success": False, "message": "Internal server error"}
