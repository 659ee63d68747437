from __future__ import annotations

import asyncio
import json
import logging
import os
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from importlib import import_module
from pathlib import Path
from types import SimpleNamespace
from typing import Any, cast
from urllib.error import HTTPError
from urllib.parse import urlencode
from urllib.request import urlopen
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, ValidationError

from tubedesk.services.credential_store import ClientCredentials, CredentialStore
from tubedesk.services.errors import StorageError, TubeDeskError
from tubedesk.services.local_auth_server import LocalAuthServer, find_available_port

LOGGER = logging.getLogger("tubedesk.oauth")

TOKEN_URI = "https://oauth2.googleapis.com/token"
TOKENINFO_URL = "https://oauth2.googleapis.com/tokeninfo"
DEFAULT_PORT_BASE = 5000

TokenValidator = Callable[[str], Awaitable[bool]]


class StoredToken(BaseModel):
    model_config = ConfigDict(extra="ignore")

    access_token: str | None = None
    refresh_token: str | None = None
    expiry: datetime | None = None
    token_type: str | None = "Bearer"
    scope: str | None = None

    @classmethod
    def from_credentials(cls, credentials: Any) -> StoredToken:
        raw_expiry = getattr(credentials, "expiry", None)
        expiry = None
        if isinstance(raw_expiry, datetime):
            # google-auth keeps expiry as naive UTC.
            expiry = raw_expiry.replace(tzinfo=UTC) if raw_expiry.tzinfo is None else raw_expiry
        scopes = getattr(credentials, "scopes", None)
        return cls(
            access_token=getattr(credentials, "token", None),
            refresh_token=getattr(credentials, "refresh_token", None),
            expiry=expiry,
            scope=" ".join(scopes) if scopes else None,
        )

    def to_credentials(
        self,
        credentials_cls: Any,
        client: ClientCredentials,
        scopes: Sequence[str],
    ) -> Any:
        expiry = self.expiry
        if expiry is not None and expiry.tzinfo is not None:
            expiry = expiry.astimezone(UTC).replace(tzinfo=None)
        return credentials_cls(
            token=self.access_token,
            refresh_token=self.refresh_token,
            token_uri=TOKEN_URI,
            client_id=client.client_id,
            client_secret=client.client_secret,
            scopes=list(scopes),
            expiry=expiry,
        )


@dataclass(frozen=True)
class AuthSession:
    client: ClientCredentials
    redirect_uri: str
    credentials: Any

    def build_youtube_client(self) -> Any:
        discovery_module = import_module("googleapiclient.discovery")
        return discovery_module.build(
            "youtube",
            "v3",
            credentials=self.credentials,
            cache_discovery=False,
        )


@dataclass(frozen=True)
class AuthResult:
    success: bool
    error: str | None = None
    session: AuthSession | None = None


class TokenManager:
    def __init__(
        self,
        credential_store: CredentialStore,
        auth_server: LocalAuthServer,
        *,
        scopes: Sequence[str],
        port_base: int = DEFAULT_PORT_BASE,
        port_attempts: int = 100,
        token_validator: TokenValidator | None = None,
        http_timeout_seconds: float = 30.0,
    ) -> None:
        self._credential_store = credential_store
        self._auth_server = auth_server
        self._scopes = tuple(scopes)
        self._port_base = port_base
        self._port_attempts = port_attempts
        self._token_validator = token_validator or _TokenInfoValidator(http_timeout_seconds)

    @property
    def token_path(self) -> Path:
        return self._credential_store.token_path

    async def authenticate(self) -> AuthResult:
        try:
            session = await self._authenticate()
        except TubeDeskError as exc:
            LOGGER.warning("oauth authentication_failed error=%s", exc)
            return AuthResult(success=False, error=str(exc))
        except Exception as exc:
            LOGGER.error("oauth authentication_failed", exc_info=True)
            message = str(exc).strip() or "Unknown authentication error."
            return AuthResult(success=False, error=f"Authentication failed: {message}")
        LOGGER.info("oauth authenticated redirect_uri=%s", session.redirect_uri)
        return AuthResult(success=True, session=session)

    async def _authenticate(self) -> AuthSession:
        client = self._credential_store.load()
        google = _load_google_modules()

        stored = self._read_token()
        if stored is None or not stored.access_token:
            LOGGER.info("oauth no_stored_token; starting authorization")
            return await self.get_new_token(client)

        credentials = stored.to_credentials(google.Credentials, client, self._scopes)
        if await self._is_valid(stored.access_token):
            return AuthSession(
                client=client,
                redirect_uri=client.redirect_uri,
                credentials=credentials,
            )

        if not stored.refresh_token:
            LOGGER.info("oauth token_invalid_without_refresh_token; starting authorization")
            return await self.get_new_token(client)

        try:
            await asyncio.to_thread(credentials.refresh, google.Request())
        except Exception:
            LOGGER.warning("oauth token_refresh_failed; starting authorization", exc_info=True)
            return await self.get_new_token(client)

        self._write_token(StoredToken.from_credentials(credentials))
        LOGGER.info("oauth token_refreshed path=%s", self.token_path)
        return AuthSession(client=client, redirect_uri=client.redirect_uri, credentials=credentials)

    async def get_new_token(self, client: ClientCredentials) -> AuthSession:
        google = _load_google_modules()
        port = find_available_port(
            self._port_base,
            self._port_attempts,
            host=self._auth_server.host,
        )
        redirect_uri = self._auth_server.redirect_uri(port)

        # The same flow instance builds the URL and exchanges the code, so the
        # redirect URI (and PKCE verifier) match on both legs.
        flow = google.InstalledAppFlow.from_client_config(
            client.as_client_config(redirect_uri),
            scopes=list(self._scopes),
            redirect_uri=redirect_uri,
        )
        authorization_url, _state = flow.authorization_url(
            access_type="offline",
            prompt="consent",
        )

        def _exchange(code: str) -> Any:
            flow.fetch_token(code=code)
            return flow.credentials

        credentials = await self._auth_server.run_callback(port, authorization_url, _exchange)
        self._write_token(StoredToken.from_credentials(credentials))
        LOGGER.info("oauth token_saved path=%s", self.token_path)
        return AuthSession(client=client, redirect_uri=redirect_uri, credentials=credentials)

    async def _is_valid(self, access_token: str) -> bool:
        try:
            return await self._token_validator(access_token)
        except Exception:
            LOGGER.info("oauth token_validation_failed", exc_info=True)
            return False

    def _read_token(self) -> StoredToken | None:
        path = self.token_path
        if not path.is_file():
            return None
        try:
            return StoredToken.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, ValidationError):
            LOGGER.warning("oauth token_file_unreadable path=%s", path, exc_info=True)
            return None

    def _write_token(self, token: StoredToken) -> None:
        path = self.token_path
        temp_path = path.with_name(f".{path.name}.{uuid4().hex}.tmp")
        payload = token.model_dump(mode="json", exclude_none=True)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            temp_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
            os.replace(temp_path, path)
        except OSError as exc:
            temp_path.unlink(missing_ok=True)
            raise StorageError(f"Failed to save OAuth token to {path}: {exc}") from exc


class _TokenInfoValidator:
    def __init__(self, timeout_seconds: float) -> None:
        self._timeout_seconds = timeout_seconds

    async def __call__(self, access_token: str) -> bool:
        return await asyncio.to_thread(self._check, access_token)

    def _check(self, access_token: str) -> bool:
        query = urlencode({"access_token": access_token})
        try:
            with urlopen(f"{TOKENINFO_URL}?{query}", timeout=self._timeout_seconds) as response:
                return int(response.getcode() or 0) == 200
        except HTTPError:
            return False


def _load_google_modules() -> SimpleNamespace:
    try:
        requests_module = import_module("google.auth.transport.requests")
        credentials_module = import_module("google.oauth2.credentials")
        flow_module = import_module("google_auth_oauthlib.flow")
    except ImportError as exc:  # pragma: no cover - dependency controlled at install time
        raise TubeDeskError(
            "OAuth requires the google-auth, google-auth-oauthlib and requests packages."
        ) from exc
    return SimpleNamespace(
        Request=cast(Any, requests_module).Request,
        Credentials=cast(Any, credentials_module).Credentials,
        InstalledAppFlow=cast(Any, flow_module).InstalledAppFlow,
    )
