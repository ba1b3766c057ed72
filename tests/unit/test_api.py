"""
API tests.

The whole app runs in mock mode: in-memory Snowflake and object store,
media tools that copy instead of calling FFmpeg. Staging goes to tmp_path
so each test can check nothing was left behind.
"""

import os
from datetime import timedelta
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from src.config.settings import Settings
from src.core.media.errors import InspectionFailed
from src.core.media.models import Geometry, VideoRecord
from src.infrastructure.auth.tokens import issue_access_token
from src.infrastructure.snowflake.repositories.videos import SnowflakeVideoRepository
from src.infrastructure.video.processor import MockMediaTools
from src.main import create_app

SECRET = "api-test-secret-that-is-long-enough"
VIDEO_BYTES = b"\x00\x00\x00\x18ftypmp42" + b"\x01" * 2048
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x02" * 128


def make_settings(tmp_path, **overrides) -> Settings:
    values = dict(
        jwt_secret=SECRET,
        s3_bucket="media",
        s3_mock_mode=True,
        snowflake_mock_mode=True,
        media_mock_mode=True,
        staging_dir=str(tmp_path / "staging"),
        max_video_upload_bytes=16 * 1024,
        max_thumbnail_upload_bytes=1024,
        public_base_url="http://testserver",
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def owner():
    return uuid4()


@pytest.fixture
def auth(owner):
    return {"Authorization": f"Bearer {issue_access_token(owner, SECRET)}"}


def repository_for(app) -> SnowflakeVideoRepository:
    return SnowflakeVideoRepository(app.state.mock_snowflake_connection)


def seed_video(app, user_id, **fields) -> VideoRecord:
    video = VideoRecord(id=uuid4(), user_id=user_id, title="Test video", **fields)
    repository_for(app).create_video(video)
    return video


def post_video(client, video_id, headers, data=VIDEO_BYTES, content_type="video/mp4"):
    return client.post(
        f"/api/videos/{video_id}/video",
        files={"video": ("clip.mp4", data, content_type)},
        headers=headers,
    )


def post_thumbnail(client, video_id, headers, data=PNG_BYTES, content_type="image/png"):
    return client.post(
        f"/api/videos/{video_id}/thumbnail",
        files={"thumbnail": ("thumb", data, content_type)},
        headers=headers,
    )


# ---------------------------------------------------------------------------
# Video upload
# ---------------------------------------------------------------------------

class TestVideoUploadEndpoint:
    def test_upload_returns_signed_url_and_persists_reference(self, app, client, settings, owner, auth):
        video = seed_video(app, owner)

        response = post_video(client, video.id, auth)

        assert response.status_code == 200
        body = response.json()
        assert body["id"] == str(video.id)
        assert body["video_url"].startswith("mock://storage/media/landscape/")
        assert app.state.object_store.fetch_url(body["video_url"]) == VIDEO_BYTES

        stored = repository_for(app).get_video(video.id).video_url
        assert stored.startswith("media,landscape/")
        assert stored.endswith(".mp4")
        assert os.listdir(settings.staging_dir) == []

    def test_portrait_video_goes_under_portrait(self, app, client, owner, auth):
        app.state.media_tools = MockMediaTools(Geometry.PORTRAIT)
        video = seed_video(app, owner)

        response = post_video(client, video.id, auth)

        assert response.status_code == 200
        assert repository_for(app).get_video(video.id).video_url.startswith("media,portrait/")

    def test_missing_token_is_401(self, app, client, owner):
        video = seed_video(app, owner)
        response = post_video(client, video.id, {})

        assert response.status_code == 401
        assert response.json()["error"] == "unauthenticated"

    def test_expired_token_is_401(self, app, client, owner):
        video = seed_video(app, owner)
        token = issue_access_token(owner, SECRET, expires_in=timedelta(seconds=-5))

        response = post_video(client, video.id, {"Authorization": f"Bearer {token}"})

        assert response.status_code == 401

    def test_other_users_video_is_403(self, app, client, auth, settings):
        video = seed_video(app, uuid4())

        response = post_video(client, video.id, auth)

        assert response.status_code == 403
        assert response.json()["error"] == "forbidden"
        assert app.state.object_store.object_count == 0
        assert repository_for(app).get_video(video.id).video_url is None
        assert os.listdir(settings.staging_dir) == []

    def test_malformed_id_is_400(self, client, auth):
        response = post_video(client, "not-a-uuid", auth)

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid ID"

    def test_unknown_video_is_404(self, client, auth):
        response = post_video(client, uuid4(), auth)
        assert response.status_code == 404

    def test_wrong_media_type_is_400(self, app, client, owner, auth):
        video = seed_video(app, owner)

        response = post_video(client, video.id, auth, content_type="video/quicktime")

        assert response.status_code == 400
        assert response.json()["error"] == "unsupported_media_type"

    def test_oversized_video_is_413(self, app, client, owner, auth, settings):
        video = seed_video(app, owner)

        response = post_video(client, video.id, auth, data=b"x" * (settings.max_video_upload_bytes + 1))

        assert response.status_code == 413
        assert app.state.object_store.object_count == 0
        assert os.listdir(settings.staging_dir) == []

    def test_server_errors_hide_internal_detail(self, app, client, owner, auth):
        class BrokenProbe(MockMediaTools):
            def inspect(self, path):
                raise InspectionFailed("ffprobe returned malformed output: /var/tmp/secret-path")

        app.state.media_tools = BrokenProbe()
        video = seed_video(app, owner)

        response = post_video(client, video.id, auth)

        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "inspection_failed"
        assert "secret-path" not in body["detail"]
        assert app.state.object_store.object_count == 0


# ---------------------------------------------------------------------------
# Thumbnail upload
# ---------------------------------------------------------------------------

class TestThumbnailUploadEndpoint:
    def test_png_thumbnail_is_stored(self, app, client, owner, auth):
        video = seed_video(app, owner)

        response = post_thumbnail(client, video.id, auth)

        assert response.status_code == 200
        url = response.json()["thumbnail_url"]
        assert url.startswith("mock://storage/media/thumbnails/")
        assert url.split("?")[0].endswith(".png")
        assert app.state.object_store.fetch_url(url) == PNG_BYTES

    def test_corrupt_video_reference_does_not_fail_thumbnail_upload(self, app, client, owner, auth):
        video = seed_video(app, owner, video_url="")

        response = post_thumbnail(client, video.id, auth)

        assert response.status_code == 200
        body = response.json()
        assert body["video_url"] is None
        assert body["url_error"] is not None
        assert app.state.object_store.fetch_url(body["thumbnail_url"]) == PNG_BYTES
        assert repository_for(app).get_video(video.id).thumbnail_url.startswith("media,thumbnails/")

    def test_gif_thumbnail_is_400(self, app, client, owner, auth):
        video = seed_video(app, owner)

        response = post_thumbnail(client, video.id, auth, data=b"GIF89a", content_type="image/gif")

        assert response.status_code == 400
        assert repository_for(app).get_video(video.id).thumbnail_url is None

    def test_oversized_thumbnail_is_413(self, app, client, owner, auth, settings):
        video = seed_video(app, owner)

        response = post_thumbnail(client, video.id, auth, data=b"x" * (settings.max_thumbnail_upload_bytes + 1))

        assert response.status_code == 413

    def test_memory_mode_serves_thumbnail_from_api(self, tmp_path, owner, auth):
        app = create_app(make_settings(tmp_path, thumbnail_store_mode="memory"))
        client = TestClient(app)
        video = seed_video(app, owner)

        response = post_thumbnail(client, video.id, auth, data=b"jpeg-bytes", content_type="image/jpeg")

        assert response.status_code == 200
        url = response.json()["thumbnail_url"]
        assert url == f"http://testserver/api/thumbnails/{video.id}"

        served = client.get(f"/api/thumbnails/{video.id}")
        assert served.status_code == 200
        assert served.content == b"jpeg-bytes"
        assert served.headers["content-type"] == "image/jpeg"
        assert app.state.object_store.object_count == 0

    def test_unknown_thumbnail_is_404(self, client):
        assert client.get(f"/api/thumbnails/{uuid4()}").status_code == 404


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

class TestReadEndpoints:
    def test_get_video_signs_fresh_urls(self, app, client, owner, auth):
        video = seed_video(app, owner)
        upload_url = post_video(client, video.id, auth).json()["video_url"]

        first = client.get(f"/api/videos/{video.id}", headers=auth).json()["video_url"]
        second = client.get(f"/api/videos/{video.id}", headers=auth).json()["video_url"]

        assert len({upload_url, first, second}) == 3
        assert app.state.object_store.fetch_url(first) == VIDEO_BYTES

    def test_get_other_users_video_is_403(self, app, client, auth):
        video = seed_video(app, uuid4())
        assert client.get(f"/api/videos/{video.id}", headers=auth).status_code == 403

    def test_get_requires_token(self, app, client, owner):
        video = seed_video(app, owner)
        assert client.get(f"/api/videos/{video.id}").status_code == 401

    def test_corrupt_reference_is_reported_not_fatal(self, app, client, owner, auth):
        video = seed_video(app, owner, video_url="corrupt-reference")

        response = client.get(f"/api/videos/{video.id}", headers=auth)

        assert response.status_code == 200
        body = response.json()
        assert body["video_url"] is None
        assert body["url_error"] is not None

    def test_list_returns_only_callers_videos(self, app, client, owner, auth):
        mine = seed_video(app, owner)
        seed_video(app, uuid4())

        response = client.get("/api/videos", headers=auth)

        assert response.status_code == 200
        assert [v["id"] for v in response.json()] == [str(mine.id)]


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

class TestHealth:
    def test_liveness(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["details"]["mock_mode"]["s3"] is True

    def test_ready_in_mock_mode(self, client):
        response = client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["status"] == "ready"
        assert response.json()["storage_mode"] == {"objects": "mock", "thumbnails": "object_store"}

    def test_not_ready_without_jwt_secret(self, tmp_path):
        client = TestClient(create_app(make_settings(tmp_path, jwt_secret="")))

        response = client.get("/health/ready")

        assert response.status_code == 503
        checks = {c["name"]: c["status"] for c in response.json()["checks"]}
        assert checks["configuration"] == "error"
        assert checks["database"] == "ok"
