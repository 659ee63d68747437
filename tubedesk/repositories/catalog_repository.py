from __future__ import annotations

import json
import logging
import os
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from uuid import uuid4

from pydantic import TypeAdapter, ValidationError

from tubedesk.models.catalog import VideoRecord, dedupe_videos
from tubedesk.services.results import OperationResult

LOGGER = logging.getLogger("tubedesk.backup")

_CATALOG_ADAPTER = TypeAdapter(list[VideoRecord])


@dataclass(frozen=True)
class CatalogLoadResult:
    found: bool
    videos: list[VideoRecord] = field(default_factory=list)
    error: str | None = None


class CatalogRepository:
    def save(self, catalog: Sequence[VideoRecord], path: Path) -> OperationResult:
        payload = [video.model_dump(mode="json", exclude_none=True) for video in catalog]
        temp_path = path.with_name(f".{path.name}.{uuid4().hex}.tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            temp_path.write_text(
                json.dumps(payload, indent=2, ensure_ascii=False),
                encoding="utf-8",
            )
            os.replace(temp_path, path)
        except OSError as exc:
            temp_path.unlink(missing_ok=True)
            LOGGER.warning("backup save_failed path=%s", path, exc_info=True)
            return OperationResult.failed(f"Failed to save catalog to {path}: {exc}")

        LOGGER.info("backup saved path=%s videos=%s", path, len(payload))
        return OperationResult.ok()

    def load(self, path: Path) -> CatalogLoadResult:
        if not path.is_file():
            LOGGER.info("backup not_found path=%s", path)
            return CatalogLoadResult(found=False)

        try:
            raw = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            LOGGER.warning("backup read_failed path=%s", path, exc_info=True)
            return CatalogLoadResult(found=True, error=f"Failed to read {path}: {exc}")

        try:
            videos = _CATALOG_ADAPTER.validate_json(raw)
        except ValidationError as exc:
            LOGGER.warning("backup invalid path=%s errors=%s", path, exc.error_count())
            return CatalogLoadResult(
                found=True,
                error=f"Backup file {path} is not a valid video catalog: {_first_error(exc)}",
            )

        unique = dedupe_videos(videos)
        if len(unique) != len(videos):
            LOGGER.warning(
                "backup duplicate_ids_dropped path=%s dropped=%s", path, len(videos) - len(unique)
            )
        videos = unique

        LOGGER.info("backup loaded path=%s videos=%s", path, len(videos))
        return CatalogLoadResult(found=True, videos=videos)


def _first_error(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = str(first.get("msg", "invalid value"))
    if location:
        return f"{location}: {message}"
    return message
