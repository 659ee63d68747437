"""Disk cache for video thumbnails.

Thumbnails are referenced as ``cache://<filename>`` in the catalog and only
downloaded when something asks for the file. Filenames are derived from
``(video_id, size_label, width, height)``, so the cache is keyed on that
tuple rather than on image bytes.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import os
from pathlib import Path
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen
from uuid import uuid4

from tubedesk.models.catalog import CACHE_URL_SCHEME, Thumbnail
from tubedesk.services.results import OperationResult

LOGGER = logging.getLogger("tubedesk.thumbnails")

# MD5 of the image YouTube serves while a video is still processing.
PROCESSING_PLACEHOLDER_MD5 = "e2ddfee11ae7edcae257da47f3a78a70"
USER_AGENT = "tubedesk/0.1"


def thumbnail_filename(video_id: str, size_label: str, width: int, height: int) -> str:
    return f"{video_id}_{size_label}_{width}_{height}.jpg"


def cache_url(filename: str) -> str:
    return f"{CACHE_URL_SCHEME}{filename}"


def filename_from_cache_url(url: str) -> str | None:
    if not url.startswith(CACHE_URL_SCHEME):
        return None
    filename = url[len(CACHE_URL_SCHEME) :]
    return filename or None


class ThumbnailCache:
    def __init__(
        self,
        cache_dir: Path,
        *,
        timeout_seconds: float = 30.0,
    ) -> None:
        self._cache_dir = cache_dir
        self._timeout_seconds = timeout_seconds
        self._remote_urls: dict[str, str] = {}

    @property
    def cache_dir(self) -> Path:
        return self._cache_dir

    def reset_registry(self) -> None:
        self._remote_urls = {}

    def remote_url_for(self, filename: str) -> str | None:
        return self._remote_urls.get(filename)

    def register(self, video_id: str, size_label: str, payload: dict[str, Any]) -> Thumbnail | None:
        remote_url = payload.get("url")
        if not isinstance(remote_url, str) or not remote_url.strip():
            return None

        width = _coerce_dimension(payload.get("width"))
        height = _coerce_dimension(payload.get("height"))
        filename = thumbnail_filename(video_id, size_label, width, height)
        self._remote_urls[filename] = remote_url
        return Thumbnail(url=cache_url(filename), width=width, height=height)

    def path_for(self, filename: str) -> Path | None:
        if not filename or Path(filename).name != filename or filename in {".", ".."}:
            return None
        return self._cache_dir / filename

    async def resolve(self, filename: str) -> Path | None:
        file_path = self.path_for(filename)
        if file_path is None:
            LOGGER.warning("thumbnail rejected_filename filename=%r", filename)
            return None

        if file_path.is_file():
            return file_path

        remote_url = self._remote_urls.get(filename)
        if remote_url is None:
            return None

        if await self.download(remote_url, filename):
            return file_path
        return None

    async def download(self, url: str, filename: str) -> bool:
        file_path = self.path_for(filename)
        if file_path is None:
            return False

        try:
            status_code, body = await asyncio.to_thread(
                _fetch_bytes, url, timeout_seconds=self._timeout_seconds
            )
        except (URLError, TimeoutError, OSError) as exc:
            LOGGER.warning("thumbnail download_failed url=%s error=%s", url, exc)
            return False

        if status_code != 200:
            LOGGER.warning("thumbnail download_failed url=%s status=%s", url, status_code)
            return False

        digest = hashlib.md5(body, usedforsecurity=False).hexdigest()
        if digest == PROCESSING_PLACEHOLDER_MD5:
            LOGGER.info("thumbnail processing_placeholder_skipped filename=%s", filename)
            return False

        temp_path = file_path.with_name(f".{file_path.stem}.{uuid4().hex}.tmp")
        try:
            self._cache_dir.mkdir(parents=True, exist_ok=True)
            temp_path.write_bytes(body)
            os.replace(temp_path, file_path)
        except OSError:
            temp_path.unlink(missing_ok=True)
            LOGGER.error("thumbnail write_failed path=%s", file_path, exc_info=True)
            return False

        LOGGER.debug("thumbnail cached path=%s bytes=%s", file_path, len(body))
        return True

    def clear(self) -> OperationResult:
        if not self._cache_dir.is_dir():
            return OperationResult.ok()
        removed = 0
        try:
            for entry in self._cache_dir.iterdir():
                if entry.is_file() or entry.is_symlink():
                    entry.unlink(missing_ok=True)
                    removed += 1
        except OSError as exc:
            LOGGER.warning("thumbnail clear_failed dir=%s", self._cache_dir, exc_info=True)
            return OperationResult.failed(f"Failed to clear thumbnail cache: {exc}")
        LOGGER.info("thumbnail cache_cleared files=%s", removed)
        return OperationResult.ok()


def _fetch_bytes(url: str, *, timeout_seconds: float) -> tuple[int, bytes]:
    request = Request(url, headers={"user-agent": USER_AGENT}, method="GET")
    try:
        with urlopen(request, timeout=timeout_seconds) as response:
            return int(response.getcode() or 0), response.read()
    except HTTPError as exc:
        return int(exc.code), b""


def _coerce_dimension(raw_value: object) -> int:
    if isinstance(raw_value, bool):
        return 0
    if isinstance(raw_value, int):
        return raw_value
    if isinstance(raw_value, str) and raw_value.isdigit():
        return int(raw_value)
    return 0
