"""
Shared fixtures: synthetic images, a fake encoder and a fake HTTP API.
"""
import json
from io import BytesIO
from pathlib import Path

import httpx
import pytest
from PIL import Image

from slideshow_worker import metrics
from slideshow_worker.pipeline import render
from slideshow_worker.pipeline.models import ImageAsset, PublishContext, VideoArtifact
from slideshow_worker.pipeline.orchestrator import WorkflowService
from slideshow_worker.pipeline.run_log import RunLog


def make_image(color=(255, 0, 0), size=(64, 48), fmt="PNG") -> bytes:
    """Encode a solid-colour image in the given format."""
    img = Image.new("RGB", size, color)
    buf = BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


def make_asset(field_name: str, color=(255, 0, 0), fmt="PNG", size=(64, 48)) -> ImageAsset:
    return ImageAsset(field_name=field_name, filename=f"{field_name}.{fmt.lower()}", data=make_image(color, size, fmt))


class FakeEncoder:
    """Stands in for ffmpeg: records the command and writes a dummy output file."""

    def __init__(self, returncode: int = 0, write_output: bool = True, payload: bytes = b"\x00\x00\x00\x18ftypmp42fake"):
        self.returncode = returncode
        self.write_output = write_output
        self.payload = payload
        self.calls: list[list[str]] = []

    async def __call__(self, cmd: list[str], timeout: float):
        self.calls.append(cmd)
        if self.write_output:
            Path(cmd[-1]).write_bytes(self.payload)
        return self.returncode, "" if self.returncode == 0 else "encoder exploded"

    def arg(self, flag: str) -> str:
        cmd = self.calls[-1]
        return cmd[cmd.index(flag) + 1]


class FakeApi:
    """
    Routes requests by URL path to canned responses and records every request.

        api.on("/v2/video/upload/", 200, {"data": {}})
        api.on("/upload/drive/v3/files", exc=httpx.ConnectError("down"))
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self._routes: dict[str, tuple] = {}

    def on(self, path: str, status: int = 200, body=None, exc: Exception = None, raw: bytes = None):
        self._routes[path] = (status, body, exc, raw)
        return self

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status, body, exc, raw = self._routes.get(request.url.path, (404, {"error": "not mocked"}, None, None))
        if exc is not None:
            raise exc
        if raw is not None:
            return httpx.Response(status, content=raw)
        return httpx.Response(status, json=body if body is not None else {})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    @property
    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]

    def find(self, path: str) -> httpx.Request:
        for r in self.requests:
            if r.url.path == path:
                return r
        raise AssertionError(f"No request to {path}; saw {self.paths}")

    @staticmethod
    def json_body(request: httpx.Request) -> dict:
        return json.loads(request.content)


# Paths the fake API knows about
DRIVE_CREATE = "/upload/drive/v3/files"
FB_VIDEOS = "/v18.0/page-1/videos"
IG_MEDIA = "/v18.0/ig-1/media"
IG_PUBLISH = "/v18.0/ig-1/media_publish"
TIKTOK_UPLOAD = "/v2/video/upload/"


def drive_permissions(file_id: str) -> str:
    return f"/drive/v3/files/{file_id}/permissions"


@pytest.fixture(autouse=True)
def _reset_metrics():
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def fake_encoder(monkeypatch) -> FakeEncoder:
    encoder = FakeEncoder()
    monkeypatch.setattr(render, "_run_encoder", encoder)
    return encoder


@pytest.fixture
def fake_api() -> FakeApi:
    return FakeApi()


@pytest.fixture
def work_root(tmp_path) -> Path:
    root = tmp_path / "work"
    root.mkdir()
    return root


@pytest.fixture
def service(work_root, fake_api) -> WorkflowService:
    return WorkflowService(work_root=str(work_root), transport=fake_api.transport)


@pytest.fixture
def artifact() -> VideoArtifact:
    return VideoArtifact(
        data=b"video-bytes",
        file_name="my-video.mp4",
        frame_count=2,
        frame_duration_seconds=2.0,
        nominal_duration_seconds=4.0,
    )


@pytest.fixture
def publish_ctx(artifact) -> PublishContext:
    return PublishContext(
        artifact=artifact,
        title="My Video",
        caption="Look at this",
        public_link="https://drive.google.com/uc?export=download&id=file-1",
        run_log=RunLog("test"),
    )
