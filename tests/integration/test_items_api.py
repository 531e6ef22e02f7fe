"""
Integration tests for the owner dashboard and item routes.

Tests registration, code image publishing, downloads, responses and sharing.
"""
import io
import json

import pytest
from fastapi.testclient import TestClient
from PIL import Image
from sqlalchemy.orm import Session

from app.config import settings
from app.models import RegisteredItem
from app.services.errors import StorageError
from app.services.storage_service import get_storage
from app.main import app
from tests.factories import create_item, create_feedback


def create_via_form(client: TestClient, **fields):
    data = {"title": "My Talk", "label": "Ada", "category": "PyCon", "kind": "speaker"}
    data.update(fields)
    return client.post("/items", data=data, follow_redirects=False)


class TestDashboard:
    def test_requires_login(self, client: TestClient):
        response = client.get("/dashboard", follow_redirects=False)

        assert response.status_code == 401

    def test_browser_redirected_to_login(self, client: TestClient):
        response = client.get(
            "/dashboard", headers={"accept": "text/html"}, follow_redirects=False
        )

        assert response.status_code == 303
        assert response.headers["location"].startswith("/auth/login?next=/dashboard")

    def test_empty_dashboard(self, auth_client: TestClient):
        response = auth_client.get("/dashboard")

        assert response.status_code == 200
        assert "No items yet" in response.text
        assert "Talk title" in response.text

    def test_deck_form_labels(self, auth_client: TestClient):
        response = auth_client.get("/dashboard?kind=deck")

        assert "Deck name" in response.text
        assert "Industry" in response.text
        assert "Healthcare" in response.text

    def test_lists_items_with_metrics(self, auth_client: TestClient, db: Session, test_user):
        item = create_item(db, test_user, title="Scaling Python")
        create_feedback(db, item, rating=5, comment="Loved it", minutes_ago=2)
        create_feedback(db, item, rating=2, minutes_ago=1)

        response = auth_client.get("/dashboard")

        assert "Scaling Python" in response.text
        assert "3.5" in response.text
        assert "Loved it" in response.text
        assert "No comment" in response.text
        assert f"/f/{item.slug}/qr.svg?size=96" in response.text


class TestCreateItem:
    def test_create_publishes_code_image(
        self, auth_client: TestClient, db: Session, test_user, storage
    ):
        response = create_via_form(auth_client)

        assert response.status_code == 303
        location = response.headers["location"]
        assert "notice=created" in location

        item = db.query(RegisteredItem).filter(RegisteredItem.user_id == test_user.id).one()
        assert f"created={item.id}" in location
        assert item.slug.startswith("my-talk-")
        assert item.code_image_url == f"/uploads/qr-codes/{test_user.id}/{item.id}.png"
        assert storage.exists(item.storage_path)

    def test_created_panel(self, auth_client: TestClient, db: Session, test_user):
        response = create_via_form(auth_client, title="Panel Talk")
        page = auth_client.get(response.headers["location"])

        item = db.query(RegisteredItem).filter(RegisteredItem.user_id == test_user.id).one()
        assert page.status_code == 200
        assert f"http://testserver/f/{item.slug}" in page.text
        assert f"/f/{item.slug}/qr.svg?size=256" in page.text
        assert f"/items/{item.id}/qr?format=jpeg" in page.text
        assert "QR code generated and saved" in page.text

    def test_missing_fields(self, auth_client: TestClient, db: Session, test_user):
        response = create_via_form(auth_client, label="  ")

        assert response.status_code == 303
        assert "error=missing_fields" in response.headers["location"]
        assert db.query(RegisteredItem).count() == 0

    def test_unknown_kind(self, auth_client: TestClient):
        response = create_via_form(auth_client, kind="poster")

        assert "error=invalid_kind" in response.headers["location"]

    def test_unknown_kind_not_echoed_into_redirect(self, auth_client: TestClient):
        response = create_via_form(auth_client, kind="x&notice=shared")

        location = response.headers["location"]
        assert "notice=shared" not in location
        assert "kind=speaker" in location
        assert "error=invalid_kind" in location

    def test_overlong_title(self, auth_client: TestClient, db: Session, test_user):
        response = create_via_form(auth_client, title="t" * 1000)

        assert response.status_code == 303
        assert "error=too_long" in response.headers["location"]
        assert db.query(RegisteredItem).count() == 0

    def test_upload_failure_keeps_item(self, auth_client: TestClient, db: Session, test_user):
        class BrokenStorage:
            def upload(self, *args, **kwargs):
                raise StorageError("bucket unavailable")

        app.dependency_overrides[get_storage] = lambda: BrokenStorage()

        response = create_via_form(auth_client)

        assert "error=qr_upload_failed" in response.headers["location"]
        item = db.query(RegisteredItem).filter(RegisteredItem.user_id == test_user.id).one()
        assert item.code_image_url is None

    def test_retry_code_image(self, auth_client: TestClient, db: Session, test_user, storage):
        item = create_item(db, test_user)

        response = auth_client.post(
            f"/items/{item.id}/code-image", follow_redirects=False
        )

        assert response.status_code == 303
        assert "notice=qr_saved" in response.headers["location"]
        db.refresh(item)
        assert item.code_image_url is not None
        assert storage.exists(item.storage_path)


class TestResponsesPage:
    def test_lists_responses(self, auth_client: TestClient, db: Session, test_user):
        item = create_item(db, test_user, title="Deep Dive")
        create_feedback(db, item, rating=4, comment="Clear and useful", minutes_ago=5)
        create_feedback(db, item, rating=3, minutes_ago=1)

        response = auth_client.get(f"/items/{item.id}/responses")

        assert response.status_code == 200
        assert "Deep Dive" in response.text
        assert "2 total responses" in response.text
        assert "Clear and useful" in response.text
        assert f"/feedback/{item.slug}" in response.text

    def test_unknown_item(self, auth_client: TestClient):
        response = auth_client.get("/items/999999/responses")

        assert response.status_code == 404


class TestDownload:
    def test_png_download(self, auth_client: TestClient, db: Session, test_user):
        item = create_item(db, test_user)

        response = auth_client.get(f"/items/{item.id}/qr?format=png&size=256")

        assert response.status_code == 200
        assert response.headers["content-type"] == "image/png"
        assert (
            response.headers["content-disposition"]
            == f'attachment; filename="{item.slug}-qr.png"'
        )
        image = Image.open(io.BytesIO(response.content))
        assert image.size == (256, 256)
        assert image.getpixel((0, 0)) == (255, 255, 255)

    def test_jpeg_download(self, auth_client: TestClient, db: Session, test_user):
        item = create_item(db, test_user)

        response = auth_client.get(f"/items/{item.id}/qr?format=jpeg&size=256")

        assert response.headers["content-type"] == "image/jpeg"
        assert f"{item.slug}-qr.jpg" in response.headers["content-disposition"]

    def test_default_export_size(self, auth_client: TestClient, db: Session, test_user):
        item = create_item(db, test_user)

        response = auth_client.get(f"/items/{item.id}/qr")

        image = Image.open(io.BytesIO(response.content))
        assert image.size == (settings.qr_export_size, settings.qr_export_size)

    @pytest.mark.parametrize("query", ["format=gif", "size=10", "size=99999"])
    def test_invalid_parameters(self, auth_client: TestClient, db: Session, test_user, query):
        item = create_item(db, test_user)

        response = auth_client.get(f"/items/{item.id}/qr?{query}")

        assert response.status_code == 400

    def test_download_stores_nothing(self, auth_client: TestClient, db: Session, test_user, storage):
        item = create_item(db, test_user)

        auth_client.get(f"/items/{item.id}/qr?format=png&size=128")

        assert not storage.exists(item.storage_path)
        assert item.code_image_url is None


class TestShare:
    @pytest.fixture(autouse=True)
    def fast_poll(self, monkeypatch):
        monkeypatch.setattr(settings, "readiness_poll_attempts", 2)
        monkeypatch.setattr(settings, "readiness_poll_interval", 0)

    def test_share_relays_image(self, auth_client: TestClient, db: Session, test_user, webhook):
        create_via_form(auth_client, title="Shared Talk")
        item = db.query(RegisteredItem).filter(RegisteredItem.user_id == test_user.id).one()

        response = auth_client.post(f"/items/{item.id}/share", follow_redirects=False)

        assert response.status_code == 303
        assert "notice=shared" in response.headers["location"]
        payload = json.loads(webhook.bodies[0])
        assert payload["title"] == "Shared Talk"
        assert payload["feedback_url"] == f"http://testserver/f/{item.slug}"
        assert payload["image_base64"]

    def test_share_before_image_exists(self, auth_client: TestClient, db: Session, test_user, webhook):
        item = create_item(db, test_user)

        response = auth_client.post(f"/items/{item.id}/share", follow_redirects=False)

        assert "error=qr_not_ready" in response.headers["location"]
        assert webhook.requests == []

    def test_share_relay_failure(self, auth_client: TestClient, db: Session, test_user, webhook):
        import httpx

        create_via_form(auth_client)
        item = db.query(RegisteredItem).filter(RegisteredItem.user_id == test_user.id).one()
        webhook.fail_with = httpx.ConnectError("refused")

        response = auth_client.post(f"/items/{item.id}/share", follow_redirects=False)

        assert "error=share_failed" in response.headers["location"]
