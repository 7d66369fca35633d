"""
Shared fixtures for the upload service tests.

The pipeline talks to four collaborators (datastore, object storage, probe,
remuxer). The fakes below stand in for them so that no MongoDB, S3 or
ffmpeg is needed to exercise the HTTP surface.
"""

import os
import shutil
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from main import create_app
from tubely.api.routes_videos import get_upload_pipeline
from tubely.core.config import Settings
from tubely.core.security import make_access_token
from tubely.database.schemas.video import VideoRecord
from tubely.media.probe import AspectClass
from tubely.media.remux import OUTPUT_SUFFIX
from tubely.services.upload_pipeline import UploadPipeline
from tubely.storage.s3 import S3Storage

JWT_SECRET = "test-jwt-secret"
BUCKET = "tubely-test"
REGION = "us-east-2"

OWNER_ID = "5b6c2f4e-8d0a-4c47-9a7e-2f1d3c4b5a60"
OTHER_USER_ID = "0f9e8d7c-6b5a-4938-8271-605f4e3d2c1b"
VIDEO_ID = "3fa85f64-5717-4562-b3fc-2c963f66afa6"

FAKE_MP4 = b"\x00\x00\x00\x18ftypmp42" + b"\x00" * 64 + b"mdat-payload"
REMUX_MARKER = b"faststart:"
BOUNDARY = "tubelyboundary"


# =============================================================================
# FAKE COLLABORATORS
# =============================================================================

class FakeVideoRepository:
    def __init__(self, videos=()):
        self.videos = {video.id: video.model_copy() for video in videos}
        self.updates = []
        self.get_error = None
        self.update_error = None

    async def get_video(self, video_id):
        if self.get_error:
            raise self.get_error
        video = self.videos.get(video_id)
        return video.model_copy() if video else None

    async def update_video(self, video):
        if self.update_error:
            raise self.update_error
        self.updates.append(video.model_copy())
        self.videos[video.id] = video.model_copy()


class FakeStorage(S3Storage):
    """Real URL construction, in-memory objects."""

    def __init__(self):
        super().__init__(s3_client=None, region=REGION)
        self.objects = {}
        self.calls = []
        self.error = None

    def put(self, bucket, key, content_type, body):
        self.calls.append((bucket, key, content_type))
        if self.error:
            raise self.error
        self.objects[(bucket, key)] = body.read()


class FakeProbe:
    def __init__(self, aspect=AspectClass.LANDSCAPE):
        self.aspect = aspect
        self.error = None
        self.calls = []
        self.seen_bytes = None

    async def probe(self, path):
        self.calls.append(path)
        self.seen_bytes = Path(path).read_bytes()
        if self.error:
            raise self.error
        return self.aspect


class FakeRemuxer:
    """Writes `faststart:` + input next to the input, like a remux would."""

    def __init__(self):
        self.error = None
        self.write_output = True
        self.calls = []
        self.outputs = []

    async def remux(self, path):
        self.calls.append(path)
        if self.error:
            raise self.error
        output_path = path + OUTPUT_SUFFIX
        if not self.write_output:
            return output_path
        with open(path, "rb") as src, open(output_path, "wb") as dst:
            dst.write(REMUX_MARKER)
            shutil.copyfileobj(src, dst)
        self.outputs.append(output_path)
        return output_path


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def upload_dir(tmp_path):
    """Directory the pipeline stages temp files in; must be empty after every request."""
    path = tmp_path / "uploads"
    path.mkdir()
    return path


@pytest.fixture
def settings(upload_dir):
    return Settings(
        JWT_SECRET=JWT_SECRET,
        AWS_S3_BUCKET=BUCKET,
        AWS_REGION=REGION,
        S3_CF_DISTRIBUTION=None,
        UPLOAD_TMP_DIR=str(upload_dir),
        MAX_UPLOAD_BYTES=64 * 1024,
    )


@pytest.fixture
def video_record():
    return VideoRecord(
        id=VIDEO_ID,
        user_id=OWNER_ID,
        title="Boots demo",
        description="A demo upload",
    )


@pytest.fixture
def video_repo(video_record):
    return FakeVideoRepository([video_record])


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def probe():
    return FakeProbe()


@pytest.fixture
def remuxer():
    return FakeRemuxer()


@pytest.fixture
def pipelines():
    """Every UploadPipeline built while handling requests, in order."""
    return []


@pytest.fixture
def app(settings, video_repo, storage, probe, remuxer, pipelines):
    app = create_app(settings)
    app.state.video_repository = video_repo
    app.state.storage = storage
    app.state.media_probe = probe
    app.state.remuxer = remuxer

    def build_pipeline():
        pipeline = UploadPipeline(
            settings=settings,
            videos=video_repo,
            storage=storage,
            probe=probe,
            remuxer=remuxer,
        )
        pipelines.append(pipeline)
        return pipeline

    app.dependency_overrides[get_upload_pipeline] = build_pipeline
    return app


@pytest.fixture
def client(app):
    # No context manager: startup hooks (Mongo, S3) must not run
    return TestClient(app)


@pytest.fixture
def auth_headers():
    token = make_access_token(OWNER_ID, JWT_SECRET)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_tool(tmp_path):
    """
    Write an executable shell script standing in for ffprobe/ffmpeg.

    Usage:
        ffprobe = make_tool("ffprobe", "echo '{}'")
    """
    def _make(name, body):
        path = tmp_path / name
        path.write_text("#!/bin/sh\n" + body + "\n")
        path.chmod(0o755)
        return str(path)

    return _make


def staged_files(directory):
    return sorted(os.listdir(directory))


def multipart_body(data, field="video", content_type="video/mp4", boundary=BOUNDARY):
    """A single-file multipart/form-data body, for requests built by hand."""
    head = (
        f"--{boundary}\r\n"
        f'Content-Disposition: form-data; name="{field}"; filename="clip.mp4"\r\n'
        f"Content-Type: {content_type}\r\n\r\n"
    ).encode()
    return head + data + f"\r\n--{boundary}--\r\n".encode()
