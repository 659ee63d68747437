from __future__ import annotations

import json
import types
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner

from tubedesk.cli.main import main
from tubedesk.services.credential_store import ClientCredentials
from tubedesk.services.token_manager import AuthResult, AuthSession


class FakeClient:
    def __init__(self) -> None:
        self.updates: list[dict[str, Any]] = []
        self._resource = ""
        self._method = ""
        self._kwargs: dict[str, Any] = {}

    def _select(self, resource: str) -> FakeClient:
        self._resource = resource
        return self

    def channels(self) -> FakeClient:
        return self._select("channels")

    def playlistItems(self) -> FakeClient:  # noqa: N802
        return self._select("playlistItems")

    def videos(self) -> FakeClient:
        return self._select("videos")

    def videoCategories(self) -> FakeClient:  # noqa: N802
        return self._select("videoCategories")

    def list(self, **kwargs: Any) -> FakeClient:
        self._method = "list"
        self._kwargs = kwargs
        return self

    def update(self, **kwargs: Any) -> FakeClient:
        self._method = "update"
        self._kwargs = kwargs
        return self

    def execute(self) -> dict[str, Any]:
        kwargs = self._kwargs
        if self._method == "update":
            self.updates.append(kwargs)
            if kwargs["body"]["id"] == "locked":
                raise RuntimeError("Forbidden")
            return {"id": kwargs["body"]["id"]}
        if self._resource == "channels":
            return {"items": [{"contentDetails": {"relatedPlaylists": {"uploads": "UU1"}}}]}
        if self._resource == "playlistItems":
            return {
                "items": [
                    {"snippet": {"resourceId": {"videoId": video_id}}} for video_id in ("vid1", "vid2")
                ]
            }
        if self._resource == "videoCategories":
            return {"items": [{"id": "27", "snippet": {"title": "Education", "assignable": True}}]}
        return {
            "items": [
                {
                    "id": video_id,
                    "snippet": {
                        "title": f"Clip {video_id}",
                        "publishedAt": "2024-01-02T00:00:00Z",
                        "categoryId": "22",
                    },
                    "status": {"privacyStatus": "private"},
                }
                for video_id in str(kwargs["id"]).split(",")
            ]
        }


class FakeTokenManager:
    def __init__(self, result: AuthResult, token_path: Path) -> None:
        self._result = result
        self.token_path = token_path

    async def authenticate(self) -> AuthResult:
        return self._result


@pytest.fixture
def fake_youtube(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> FakeClient:
    client = FakeClient()

    def _fake_import_module(name: str) -> object:
        if name == "googleapiclient.discovery":
            return types.SimpleNamespace(build=lambda *_args, **_kwargs: client)
        raise AssertionError(f"Unexpected module import: {name}")

    session = AuthSession(
        client=ClientCredentials(client_id="cid", client_secret="s", redirect_uri="http://localhost"),
        redirect_uri="http://localhost",
        credentials=object(),
    )
    manager = FakeTokenManager(AuthResult(success=True, session=session), tmp_path / "token.json")
    monkeypatch.setattr("tubedesk.services.token_manager.import_module", _fake_import_module)
    monkeypatch.setattr("tubedesk.dependencies.get_token_manager", lambda: manager)
    return client


def test_credentials_check_reports_missing_file() -> None:
    result = CliRunner().invoke(main, ["credentials", "check"])

    assert result.exit_code == 1
    assert "not found" in result.output


def test_credentials_install_then_check(write_client_secret: Callable[..., Path]) -> None:
    source = write_client_secret()
    runner = CliRunner()

    installed = runner.invoke(main, ["credentials", "install", str(source)])
    checked = runner.invoke(main, ["credentials", "check"])

    assert installed.exit_code == 0, installed.output
    assert "Installed credentials" in installed.output
    assert checked.exit_code == 0, checked.output
    assert "Credentials OK" in checked.output


def test_credentials_remove_with_yes(
    _isolated_settings: Path,
    write_client_secret: Callable[..., Path],
) -> None:
    credentials_path = write_client_secret(_isolated_settings / "credentials.json")

    result = CliRunner().invoke(main, ["credentials", "remove", "--yes"])

    assert result.exit_code == 0, result.output
    assert not credentials_path.exists()


def test_auth_failure_exits_non_zero(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    manager = FakeTokenManager(
        AuthResult(success=False, error="Authorization was denied: access_denied"),
        tmp_path / "token.json",
    )
    monkeypatch.setattr("tubedesk.dependencies.get_token_manager", lambda: manager)

    result = CliRunner().invoke(main, ["auth"])

    assert result.exit_code == 1
    assert "access_denied" in result.output


def test_videos_list_saves_backup(fake_youtube: FakeClient, tmp_path: Path) -> None:
    _ = fake_youtube
    runner = CliRunner()

    listed = runner.invoke(main, ["videos", "list", "--save"])
    loaded = runner.invoke(main, ["backup", "load"])

    assert listed.exit_code == 0, listed.output
    assert "vid1" in listed.output
    assert "2 video(s)" in listed.output
    backup = json.loads((tmp_path / "videos_backup.json").read_text(encoding="utf-8"))
    assert [video["id"] for video in backup] == ["vid1", "vid2"]
    assert loaded.exit_code == 0, loaded.output
    assert "vid2" in loaded.output


def test_backup_load_missing_file() -> None:
    result = CliRunner().invoke(main, ["backup", "load"])

    assert result.exit_code == 1
    assert "No backup found" in result.output


def test_videos_update_sends_single_update(fake_youtube: FakeClient) -> None:
    result = CliRunner().invoke(
        main,
        ["videos", "update", "vid1", "--title", "Renamed", "--description", "Body", "--privacy", "public"],
    )

    assert result.exit_code == 0, result.output
    (update,) = fake_youtube.updates
    assert update["part"] == "snippet,status"
    assert update["body"]["snippet"]["title"] == "Renamed"


def test_videos_update_keeps_current_category(fake_youtube: FakeClient) -> None:
    result = CliRunner().invoke(main, ["videos", "update", "vid1", "--title", "T", "--description", "D"])

    assert result.exit_code == 0, result.output
    (update,) = fake_youtube.updates
    assert update["part"] == "snippet"
    assert update["body"]["snippet"] == {"title": "T", "description": "D", "categoryId": "22"}


def test_videos_update_sends_explicit_category(fake_youtube: FakeClient) -> None:
    result = CliRunner().invoke(
        main,
        ["videos", "update", "vid1", "--title", "T", "--description", "D", "--category-id", "27"],
    )

    assert result.exit_code == 0, result.output
    (update,) = fake_youtube.updates
    assert update["body"]["snippet"]["categoryId"] == "27"


def test_videos_batch_update_reports_failures(fake_youtube: FakeClient, tmp_path: Path) -> None:
    updates_file = tmp_path / "updates.json"
    updates_file.write_text(
        json.dumps(
            [
                {"video_id": "vid1", "title": "A", "description": "a"},
                {"video_id": "locked", "title": "B", "description": "b"},
                {"video_id": "vid2", "title": "C"},
            ]
        ),
        encoding="utf-8",
    )

    result = CliRunner().invoke(main, ["videos", "batch-update", str(updates_file)])

    assert result.exit_code == 1
    assert "1 of 3 updated" in result.output
    assert "Forbidden" in result.output
    assert "Missing required fields" in result.output
    assert [update["body"]["id"] for update in fake_youtube.updates] == ["vid1", "locked"]


def test_videos_batch_update_rejects_invalid_file(tmp_path: Path) -> None:
    updates_file = tmp_path / "updates.json"
    updates_file.write_text('{"video_id": "vid1"}', encoding="utf-8")

    result = CliRunner().invoke(main, ["videos", "batch-update", str(updates_file)])

    assert result.exit_code == 1
    assert "Cannot read updates" in result.output


def test_categories_lists_assignable(fake_youtube: FakeClient) -> None:
    _ = fake_youtube

    result = CliRunner().invoke(main, ["categories"])

    assert result.exit_code == 0, result.output
    assert "Education" in result.output


def test_cache_clear(_isolated_settings: Path) -> None:
    cache_dir = _isolated_settings / "cache" / "thumbnails"
    cache_dir.mkdir(parents=True)
    (cache_dir / "vid1_medium_320_180.jpg").write_bytes(b"jpeg")

    result = CliRunner().invoke(main, ["cache", "clear"])

    assert result.exit_code == 0, result.output
    assert list(cache_dir.iterdir()) == []


def test_cache_resolve_existing_file(_isolated_settings: Path) -> None:
    cache_dir = _isolated_settings / "cache" / "thumbnails"
    cache_dir.mkdir(parents=True)
    (cache_dir / "vid1_medium_320_180.jpg").write_bytes(b"jpeg")

    result = CliRunner().invoke(main, ["cache", "resolve", "cache://vid1_medium_320_180.jpg"])

    assert result.exit_code == 0, result.output
    assert "vid1_medium_320_180.jpg" in result.output


def test_cache_resolve_rejects_traversal() -> None:
    result = CliRunner().invoke(main, ["cache", "resolve", "../secret.jpg"])

    assert result.exit_code == 1
    assert "Invalid thumbnail filename" in result.output
