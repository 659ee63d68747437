from __future__ import annotations

import json
import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any, cast
from uuid import uuid4

from tubedesk.services.errors import (
    CredentialsError,
    CredentialsMalformedError,
    CredentialsMissingFieldsError,
    CredentialsNotFoundError,
    StorageError,
)
from tubedesk.services.results import OperationResult

LOGGER = logging.getLogger("tubedesk.credentials")

REQUIRED_INSTALLED_FIELDS: tuple[str, ...] = ("client_id", "client_secret", "redirect_uris")


@dataclass(frozen=True)
class ClientCredentials:
    client_id: str
    client_secret: str
    redirect_uri: str

    def as_client_config(self, redirect_uri: str | None = None) -> dict[str, Any]:
        return {
            "installed": {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "redirect_uris": [redirect_uri or self.redirect_uri],
                "auth_uri": "https://accounts.google.com/o/oauth2/auth",
                "token_uri": "https://oauth2.googleapis.com/token",
            }
        }


@dataclass(frozen=True)
class CredentialCheck:
    valid: bool
    path: Path
    error: str | None = None
    kind: str | None = None


class CredentialStore:
    """Client-secret and token files kept under the per-user data directory."""

    def __init__(self, credentials_path: Path, token_path: Path) -> None:
        self._credentials_path = credentials_path
        self._token_path = token_path

    def locate(self) -> Path:
        return self._credentials_path

    @property
    def token_path(self) -> Path:
        return self._token_path

    def check(self) -> CredentialCheck:
        try:
            self.load()
        except CredentialsError as exc:
            return CredentialCheck(
                valid=False,
                path=self._credentials_path,
                error=str(exc),
                kind=exc.kind,
            )
        return CredentialCheck(valid=True, path=self._credentials_path)

    def load(self) -> ClientCredentials:
        path = self._credentials_path
        if not path.is_file():
            raise CredentialsNotFoundError(
                f"Credentials file not found at {path}. Download an OAuth client "
                "(desktop app) from Google Cloud Console and install it."
            )

        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise CredentialsMalformedError(
                f"Credentials file at {path} is not valid JSON: {exc}"
            ) from exc

        if not isinstance(payload, dict):
            raise CredentialsMalformedError(f"Credentials file at {path} must contain an object.")

        installed = cast(dict[str, Any], payload).get("installed")
        if not isinstance(installed, dict):
            raise CredentialsMissingFieldsError(
                "Credentials file is missing the `installed` section "
                "(client_id, client_secret, redirect_uris)."
            )

        installed_dict = cast(dict[str, Any], installed)
        missing = [
            field_name
            for field_name in REQUIRED_INSTALLED_FIELDS
            if not _has_value(installed_dict.get(field_name))
        ]
        if missing:
            raise CredentialsMissingFieldsError(
                f"Credentials file is missing required fields: {', '.join(missing)}."
            )

        raw_redirect_uris = installed_dict["redirect_uris"]
        if isinstance(raw_redirect_uris, str):
            redirect_uri = raw_redirect_uris
        elif isinstance(raw_redirect_uris, list):
            redirect_uri = str(cast(list[Any], raw_redirect_uris)[0])
        else:
            raise CredentialsMalformedError("`installed.redirect_uris` must be a list of URLs.")

        return ClientCredentials(
            client_id=str(installed_dict["client_id"]),
            client_secret=str(installed_dict["client_secret"]),
            redirect_uri=redirect_uri,
        )

    def install(self, source_path: Path) -> OperationResult:
        try:
            self._copy_atomically(source_path)
        except StorageError as exc:
            LOGGER.warning("credentials install_failed source=%s", source_path, exc_info=True)
            return OperationResult.failed(str(exc))
        LOGGER.info("credentials installed path=%s", self._credentials_path)
        return OperationResult.ok()

    def remove(self) -> OperationResult:
        try:
            for path in (self._credentials_path, self._token_path):
                path.unlink(missing_ok=True)
        except OSError as exc:
            LOGGER.warning("credentials remove_failed", exc_info=True)
            return OperationResult.failed(f"Failed to remove stored credentials: {exc}")
        LOGGER.info("credentials removed path=%s", self._credentials_path)
        return OperationResult.ok()

    def _copy_atomically(self, source_path: Path) -> None:
        source = source_path.expanduser().resolve()
        if not source.is_file():
            raise StorageError(f"Credentials source file does not exist: {source}")

        destination = self._credentials_path
        if source == destination:
            return

        temp_path = destination.with_name(f".{destination.name}.{uuid4().hex}.tmp")
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, temp_path)
            os.replace(temp_path, destination)
        except OSError as exc:
            temp_path.unlink(missing_ok=True)
            raise StorageError(f"Failed to install credentials file: {exc}") from exc


def _has_value(raw_value: object) -> bool:
    if isinstance(raw_value, str):
        return bool(raw_value.strip())
    if isinstance(raw_value, list):
        items = cast(list[Any], raw_value)
        return bool(items) and isinstance(items[0], str) and _has_value(items[0])
    return raw_value is not None
