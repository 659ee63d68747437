from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from tubedesk.dependencies import reset_cached_dependencies


@pytest.fixture(autouse=True)
def _isolated_settings(  # pyright: ignore[reportUnusedFunction]
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> Iterator[Path]:
    data_dir = tmp_path / "tubedesk-data"
    monkeypatch.setenv("TUBEDESK_DATA_DIR", str(data_dir))
    monkeypatch.setenv("TUBEDESK_BACKUP_PATH", str(tmp_path / "videos_backup.json"))
    monkeypatch.setenv("TUBEDESK_LOG_LEVEL", "ERROR")
    monkeypatch.setenv("TUBEDESK_LOCALE", "en_US")
    reset_cached_dependencies()
    yield data_dir
    app_logger = logging.getLogger("tubedesk")
    for handler in list(app_logger.handlers):
        app_logger.removeHandler(handler)
        handler.close()


@pytest.fixture
def write_client_secret(tmp_path: Path) -> Callable[..., Path]:
    def _write(
        path: Path | None = None,
        *,
        payload: object | None = None,
    ) -> Path:
        target = path or tmp_path / "client_secret.json"
        if payload is None:
            payload = {
                "installed": {
                    "client_id": "client-123.apps.googleusercontent.com",
                    "client_secret": "secret-456",
                    "redirect_uris": ["http://localhost"],
                }
            }
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps(payload), encoding="utf-8")
        return target

    return _write
