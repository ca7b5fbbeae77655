"""
HTTP tests for the gateway endpoints.

The app runs against the in-memory store (see conftest.py) with staging in a
temporary directory. TestClient is used as a context manager so the startup
bucket provisioning runs exactly as it does in production.
"""

import asyncio
import io
import re

import pytest
from fastapi.testclient import TestClient

from image_gateway.core.models import MULTIPLE_IMAGE_BUCKET, SINGLE_IMAGE_BUCKET
from image_gateway.main import create_app

UUID = r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}"


def image_parts(count: int, field: str = "images", ext: str = ".png"):
    return [(field, (f"photo{i}{ext}", f"image-{i}".encode(), "image/png")) for i in range(1, count + 1)]


def staged_files(staging_dir):
    """Regular files left in the staging directory (group dirs excluded)."""
    if not staging_dir.exists():
        return []
    return [p for p in staging_dir.iterdir() if p.is_file()]


# ---------------------------------------------------------------------------
# Startup
# ---------------------------------------------------------------------------

class TestStartup:
    """Tests for bucket provisioning in the lifespan."""

    def test_buckets_created_on_startup(self, client, store):
        assert set(store._buckets) == {SINGLE_IMAGE_BUCKET, MULTIPLE_IMAGE_BUCKET}

    def test_restart_keeps_existing_buckets(self, app, store):
        """Provisioning twice is harmless."""
        with TestClient(app):
            pass
        with TestClient(app):
            pass

        assert set(store._buckets) == {SINGLE_IMAGE_BUCKET, MULTIPLE_IMAGE_BUCKET}

    def test_best_effort_starts_without_buckets(self, app, store):
        store.fail_make_bucket = True

        with TestClient(app) as client:
            response = client.get("/health")

        assert response.status_code == 200
        assert store._buckets == {}

    def test_buckets_created_in_configured_region(self, settings, store):
        app = create_app(settings.model_copy(update={"minio_region": "eu-central-1"}))
        app.state.storage_client = store

        with TestClient(app):
            pass

        assert set(store.bucket_regions.values()) == {"eu-central-1"}

    def test_fail_fast_aborts_startup(self, settings, store):
        app = create_app(settings.model_copy(update={"bucket_provisioning": "fail_fast"}))
        app.state.storage_client = store
        store.fail_make_bucket = True

        # the lifespan error surfaces when the client starts the app
        with pytest.raises(Exception):
            with TestClient(app):
                pass


# ---------------------------------------------------------------------------
# POST /upload
# ---------------------------------------------------------------------------

class TestUploadSingle:
    """Tests for single-image upload."""

    def test_requested_filename_gets_extension(self, client, store, staging_dir):
        response = client.post(
            "/upload",
            files={"image": ("photo.png", b"png-bytes", "image/png")},
            data={"filename": "avatar"},
        )

        assert response.status_code == 200
        assert response.json() == {
            "message": "Image uploaded successfully to bucket1",
            "filename": "avatar.png",
        }
        assert store.get_object(SINGLE_IMAGE_BUCKET, "avatar.png") == b"png-bytes"
        assert staged_files(staging_dir) == []

    def test_generated_filename(self, client, store):
        response = client.post("/upload", files={"image": ("photo.jpg", b"jpg", "image/jpeg")})

        assert response.status_code == 200
        key = response.json()["filename"]
        assert re.fullmatch(UUID + r"\.jpg", key)
        assert store.get_object(SINGLE_IMAGE_BUCKET, key) == b"jpg"

    def test_no_file(self, client):
        response = client.post("/upload", data={"filename": "avatar"})

        assert response.status_code == 400
        assert response.json() == {"message": "No file uploaded"}

    def test_file_under_wrong_field(self, client):
        response = client.post("/upload", files={"picture": ("photo.png", b"x", "image/png")})

        assert response.status_code == 400

    def test_invalid_filename(self, client):
        response = client.post(
            "/upload",
            files={"image": ("photo.png", b"x", "image/png")},
            data={"filename": "../../etc/passwd"},
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid upload"

    def test_store_error_returns_500_and_keeps_staging_file(self, client, store, staging_dir):
        store.fail_put_after = 0

        response = client.post(
            "/upload",
            files={"image": ("photo.png", b"x", "image/png")},
            data={"filename": "avatar"},
        )

        assert response.status_code == 500
        body = response.json()
        assert body["message"] == "Error uploading file to MinIO"
        assert body["error"]["code"] == "InternalError"
        assert [p.name for p in staged_files(staging_dir)] == ["avatar.png"]


# ---------------------------------------------------------------------------
# POST /upload-multiple
# ---------------------------------------------------------------------------

class TestUploadMultiple:
    """Tests for grouped upload."""

    def test_positional_keys_in_upload_order(self, client, store, staging_dir):
        response = client.post(
            "/upload-multiple",
            files=image_parts(3),
            data={"filename": "trip"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Images uploaded successfully to bucket2"
        assert body["folder"] == "trip"
        assert [f["filename"] for f in body["files"]] == ["trip/1.png", "trip/2.png", "trip/3.png"]
        assert all(f["url"] for f in body["files"])
        assert store.get_object(MULTIPLE_IMAGE_BUCKET, "trip/2.png") == b"image-2"
        assert staged_files(staging_dir) == []
        assert (staging_dir / "trip").is_dir()

    def test_ten_files_accepted(self, client):
        response = client.post("/upload-multiple", files=image_parts(10), data={"filename": "ten"})

        assert response.status_code == 200
        assert [f["filename"] for f in response.json()["files"]] == [f"ten/{i}.png" for i in range(1, 11)]

    def test_second_name_override_only(self, client):
        response = client.post(
            "/upload-multiple",
            files=image_parts(3),
            data={"filename": "trip", "filename2": "cover.jpg"},
        )

        assert response.status_code == 200
        assert [f["filename"] for f in response.json()["files"]] == [
            "trip/1.png", "trip/cover.jpg", "trip/3.png"
        ]

    def test_generated_group_id(self, client):
        response = client.post("/upload-multiple", files=image_parts(1, ext=".gif"))

        assert response.status_code == 200
        body = response.json()
        assert re.fullmatch(UUID, body["folder"])
        assert body["files"][0]["filename"] == f"{body['folder']}/1.gif"

    def test_no_files(self, client):
        response = client.post("/upload-multiple", data={"filename": "trip"})

        assert response.status_code == 400
        assert response.json() == {"message": "No files uploaded"}

    def test_eleven_files_rejected(self, client, store):
        response = client.post("/upload-multiple", files=image_parts(11), data={"filename": "trip"})

        assert response.status_code == 400
        assert response.json()["message"] == "Too many files"
        assert asyncio.run(store.list_objects(MULTIPLE_IMAGE_BUCKET, "trip/")) == []

    def test_failure_mid_group_keeps_earlier_files(self, client, store):
        store.fail_put_after = 1

        response = client.post("/upload-multiple", files=image_parts(3), data={"filename": "trip"})

        assert response.status_code == 500
        assert response.json()["message"] == "Error uploading files to MinIO"
        assert asyncio.run(store.list_objects(MULTIPLE_IMAGE_BUCKET, "trip/")) == ["trip/1.png"]


# ---------------------------------------------------------------------------
# GET /get-images/{folder}
# ---------------------------------------------------------------------------

class TestGetImages:
    """Tests for group listing."""

    @pytest.fixture
    def uploaded(self, client, store):
        client.post("/upload-multiple", files=image_parts(3), data={"filename": "trip"})
        asyncio.run(store.put_object(MULTIPLE_IMAGE_BUCKET, "trip/", io.BytesIO(b""), 0))
        return client

    def test_lists_stored_images(self, uploaded):
        response = uploaded.get("/get-images/trip")

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Successfully retrieved all images in the folder"
        names = sorted(f["filename"] for f in body["files"])
        assert names == ["trip/1.png", "trip/2.png", "trip/3.png"]
        assert len({f["url"] for f in body["files"]}) == 3

    def test_url_failure_omits_object(self, uploaded, store):
        store.fail_presign_keys = {"trip/2.png"}

        response = uploaded.get("/get-images/trip")

        assert response.status_code == 200
        assert sorted(f["filename"] for f in response.json()["files"]) == ["trip/1.png", "trip/3.png"]

    def test_list_failure(self, uploaded, store):
        store.fail_list = True

        response = uploaded.get("/get-images/trip")

        assert response.status_code == 500
        assert response.json()["message"] == "Error retrieving images"

    def test_unknown_folder_is_empty(self, client):
        response = client.get("/get-images/nothing-here")

        assert response.status_code == 200
        assert response.json()["files"] == []


# ---------------------------------------------------------------------------
# GET /download/{filename}
# ---------------------------------------------------------------------------

class TestDownload:
    """Tests for single-image download links."""

    def test_url_for_uploaded_image(self, client):
        client.post(
            "/upload",
            files={"image": ("photo.png", b"x", "image/png")},
            data={"filename": "avatar"},
        )

        response = client.get("/download/avatar.png")

        assert response.status_code == 200
        assert response.json()["message"] == "Presigned URL generated successfully from bucket1"
        assert "single-image-bucket/avatar.png" in response.json()["url"]

    def test_url_for_never_stored_key(self, client):
        """No existence check: unknown keys still get a 200 and a URL."""
        response = client.get("/download/never-stored.png")

        assert response.status_code == 200
        assert "never-stored.png" in response.json()["url"]

    def test_url_failure(self, client, store):
        store.fail_presign_keys = {"avatar.png"}

        response = client.get("/download/avatar.png")

        assert response.status_code == 500
        body = response.json()
        assert body["message"] == "Error generating presigned URL"
        assert body["error"]["code"] == "SignatureDoesNotMatch"


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

class TestHealth:
    """Tests for liveness and readiness."""

    def test_liveness(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        assert response.json()["details"] == {"storage_mock_mode": True}

    def test_ready_when_buckets_exist(self, client):
        response = client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["status"] == "ready"

    def test_not_ready_without_buckets(self, app, store):
        store.fail_make_bucket = True

        with TestClient(app) as client:
            response = client.get("/health/ready")

        assert response.status_code == 503
        body = response.json()
        assert body["status"] == "not_ready"
        assert {c["name"] for c in body["checks"] if c["status"] == "error"} == {
            f"bucket:{SINGLE_IMAGE_BUCKET}",
            f"bucket:{MULTIPLE_IMAGE_BUCKET}",
        }

    def test_root(self, client):
        assert client.get("/").json()["docs"] == "/docs"
