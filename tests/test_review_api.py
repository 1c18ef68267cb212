"""
Tests for the review API: ingestion endpoints and selection commands.
"""

import pytest
from fastapi.testclient import TestClient

from declutter.pipeline.session import PhotoSession
from declutter.ui.app import create_app

RED = (220, 20, 20)
DARK_RED = (200, 25, 25)
BLUE = (20, 20, 220)


@pytest.fixture
def session(fake_provider):
    session = PhotoSession(fake_provider)
    yield session
    session.close()


@pytest.fixture
def api(session, tmp_path):
    with TestClient(create_app(session, upload_dir=tmp_path / "uploads")) as client:
        yield client


@pytest.fixture
def photo_dir(tmp_path, make_image):
    (tmp_path / "photos").mkdir()
    make_image("photos/red1.jpg", color=RED)
    make_image("photos/red2.jpg", color=DARK_RED)
    make_image("photos/blue.jpg", color=BLUE)
    return tmp_path / "photos"


@pytest.fixture
def scanned(api, photo_dir):
    response = api.post("/api/scan", json={"path": str(photo_dir)})
    assert response.status_code == 200
    return response.json()["state"]


class TestIngestion:

    def test_empty_state(self, api):
        state = api.get("/api/state").json()

        assert state["photos"] == []
        assert state["current_history_index"] == -1
        assert state["can_undo"] is False
        assert state["is_loading"] is False

    def test_scan_directory(self, scanned):
        assert len(scanned["photos"]) == 3
        assert len(scanned["groups"]) == 1
        assert scanned["groups"][0]["size"] == 2
        assert len(scanned["unique_photos"]) == 1
        assert len(scanned["selected_photos"]) == 2
        assert scanned["history_length"] == 1

    def test_selected_flags_follow_selection(self, scanned):
        for photo in scanned["photos"]:
            assert photo["selected"] == (photo["id"] in scanned["selected_photos"])

    def test_scan_missing_directory(self, api, tmp_path):
        response = api.post("/api/scan", json={"path": str(tmp_path / "nowhere")})
        assert response.status_code == 404

    def test_scan_directory_without_images(self, api, tmp_path):
        (tmp_path / "empty").mkdir()
        response = api.post("/api/scan", json={"path": str(tmp_path / "empty")})
        assert response.status_code == 400

    def test_upload_photos(self, api, photo_dir, tmp_path):
        files = [
            ("files", ("red1.jpg", (photo_dir / "red1.jpg").read_bytes(), "image/jpeg")),
            ("files", ("notes.txt", b"hello", "text/plain")),
        ]

        response = api.post("/api/photos", files=files)

        assert response.status_code == 200
        assert response.json()["added"] == 1
        assert len(list((tmp_path / "uploads").iterdir())) == 1

    def test_upload_only_unsupported(self, api):
        files = [("files", ("notes.txt", b"hello", "text/plain"))]
        assert api.post("/api/photos", files=files).status_code == 400

    def test_serve_image(self, api, scanned):
        photo_id = scanned["photos"][0]["id"]

        response = api.get(f"/api/image/{photo_id}")

        assert response.status_code == 200
        assert response.headers["content-type"] == "image/jpeg"

    def test_serve_unknown_image(self, api):
        assert api.get("/api/image/missing").status_code == 404


class TestSelectionCommands:

    def test_toggle_and_undo_redo(self, api, scanned):
        photo_id = next(p["id"] for p in scanned["photos"] if not p["selected"])

        toggled = api.post(f"/api/photos/{photo_id}/toggle").json()
        assert toggled["changed"] is True
        assert photo_id in toggled["state"]["selected_photos"]
        assert toggled["state"]["can_undo"] is True

        undone = api.post("/api/undo").json()
        assert photo_id not in undone["state"]["selected_photos"]
        assert undone["state"]["can_redo"] is True

        redone = api.post("/api/redo").json()
        assert photo_id in redone["state"]["selected_photos"]

    def test_unknown_photo_toggle_is_noop(self, api, scanned):
        result = api.post("/api/photos/missing/toggle").json()

        assert result["changed"] is False
        assert result["state"]["history_length"] == scanned["history_length"]

    def test_group_commands(self, api, scanned):
        group = scanned["groups"][0]
        member_ids = {p["id"] for p in group["photos"]}

        selected = api.post(f"/api/groups/{group['id']}/select").json()
        assert member_ids <= set(selected["state"]["selected_photos"])

        deselected = api.post(f"/api/groups/{group['id']}/deselect").json()
        assert not member_ids & set(deselected["state"]["selected_photos"])

        again = api.post(f"/api/groups/{group['id']}/deselect").json()
        assert again["changed"] is False

    def test_select_all_deselect_all_undo(self, api, scanned):
        api.post("/api/select-all")
        cleared = api.post("/api/deselect-all").json()
        assert cleared["state"]["selected_photos"] == []

        restored = api.post("/api/undo").json()
        assert len(restored["state"]["selected_photos"]) == 3

    def test_download_selected(self, api, scanned, tmp_path):
        response = api.post("/api/download-selected", json={"destination": str(tmp_path / "keepers")})

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 2
        assert len(list((tmp_path / "keepers").iterdir())) == 2
