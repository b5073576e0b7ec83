import os

import httpx
import pytest

from app.media import MediaHost, save_upload

UPLOAD_URL = "https://media.example.com/upload"


def host_replying(handler):
    return MediaHost(UPLOAD_URL, "videotube", transport=httpx.MockTransport(handler))


@pytest.fixture
def spooled(tmp_path):
    path = tmp_path / "avatar.png"
    path.write_bytes(b"\x89PNG avatar")
    return str(path)


async def test_upload_returns_secure_url_and_removes_file(spooled):
    seen = {}

    def handler(request):
        seen["body"] = request.content
        return httpx.Response(200, json={"secure_url": "https://cdn.example.com/a.png"})

    uploaded = await host_replying(handler).upload(spooled)

    assert uploaded == {"url": "https://cdn.example.com/a.png"}
    assert b"\x89PNG avatar" in seen["body"]
    assert b"videotube" in seen["body"]
    assert not os.path.exists(spooled)


async def test_upload_failure_returns_none_and_removes_file(spooled):
    host = host_replying(lambda request: httpx.Response(502, text="bad gateway"))

    assert await host.upload(spooled) is None
    assert not os.path.exists(spooled)


async def test_upload_without_url_in_reply(spooled):
    host = host_replying(lambda request: httpx.Response(200, json={"public_id": "a"}))

    assert await host.upload(spooled) is None


async def test_upload_of_missing_file(tmp_path):
    host = host_replying(lambda request: httpx.Response(200, json={"url": "unused"}))

    assert await host.upload(None) is None
    assert await host.upload(str(tmp_path / "gone.png")) is None


async def test_save_upload_spools_into_upload_dir(tmp_path):
    upload_dir = tmp_path / "uploads"
    upload = UploadFileStub("clip.mp4", b"frames")

    path = await save_upload(upload, str(upload_dir))

    assert path.startswith(str(upload_dir))
    assert path.endswith(".mp4")
    with open(path, "rb") as fh:
        assert fh.read() == b"frames"


async def test_save_upload_without_file(tmp_path):
    assert await save_upload(None, str(tmp_path)) is None
    assert await save_upload(UploadFileStub("", b""), str(tmp_path)) is None


class UploadFileStub:
    def __init__(self, filename, content):
        self.filename = filename
        self._content = content

    async def read(self):
        return self._content
