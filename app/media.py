# app/media.py
import asyncio
import logging
import os
import uuid
from typing import Dict, Optional

import httpx
from fastapi import Depends, UploadFile

from app.config import Settings, get_settings

logger = logging.getLogger(__name__)


def _read_bytes(path: str) -> bytes:
    with open(path, "rb") as fh:
        return fh.read()


def _write_bytes(path: str, content: bytes) -> None:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "wb") as out:
        out.write(content)


class MediaHost:
    """Uploads local files to the external media host and hands back the URL.

    The local copy is removed once the upload attempt finishes, successful
    or not.
    """

    def __init__(
        self,
        upload_url: str,
        upload_preset: str,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.upload_url = upload_url
        self.upload_preset = upload_preset
        self.timeout = timeout
        self.transport = transport

    async def upload(self, local_path: Optional[str]) -> Optional[Dict[str, str]]:
        if not local_path:
            return None

        try:
            content = await asyncio.to_thread(_read_bytes, local_path)
            async with httpx.AsyncClient(transport=self.transport) as client:
                response = await client.post(
                    self.upload_url,
                    data={"upload_preset": self.upload_preset},
                    files={"file": (os.path.basename(local_path), content)},
                    timeout=self.timeout,
                )
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, OSError, ValueError) as exc:
            logger.warning(f"Media upload failed for {local_path}: {exc}")
            return None
        finally:
            await asyncio.to_thread(_remove_quietly, local_path)

        url = (body.get("secure_url") or body.get("url")) if isinstance(body, dict) else None
        if not url:
            logger.warning(f"Media host returned no url for {local_path}")
            return None
        return {"url": url}


def _remove_quietly(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass


def get_media_host(settings: Settings = Depends(get_settings)) -> MediaHost:
    return MediaHost(
        settings.media_upload_url,
        settings.media_upload_preset,
        timeout=settings.media_upload_timeout,
    )


async def save_upload(upload: Optional[UploadFile], upload_dir: str) -> Optional[str]:
    """Spool an incoming upload to ``upload_dir`` and return its path."""
    if upload is None or not upload.filename:
        return None
    _, ext = os.path.splitext(upload.filename)
    path = os.path.join(upload_dir, f"{uuid.uuid4().hex}{ext}")
    content = await upload.read()
    await asyncio.to_thread(_write_bytes, path, content)
    return path


def discard_uploads(*paths: Optional[str]) -> None:
    """Remove spooled uploads that never reached the media host."""
    for path in paths:
        if path:
            _remove_quietly(path)
