from __future__ import annotations

import locale as locale_module
from pathlib import Path
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DATA_DIR = Path("~/.tubedesk")
DEFAULT_BACKUP_FILE_NAME = "videos_backup.json"
DEFAULT_LOCALE = "en_US"
YOUTUBE_SCOPE = "https://www.googleapis.com/auth/youtube"
_DATA_DIR_RELATIVE_DEFAULTS: tuple[tuple[str, Path], ...] = (
    ("credentials_path", Path("credentials.json")),
    ("token_path", Path("token.json")),
    ("thumbnail_cache_dir", Path("cache") / "thumbnails"),
    ("log_dir", Path("logs")),
)
_PATH_FIELDS: tuple[str, ...] = (
    "data_dir",
    "backup_path",
    *(field_name for field_name, _ in _DATA_DIR_RELATIVE_DEFAULTS),
)


def _default_in_data_dir(relative_path: Path) -> Path:
    return DEFAULT_DATA_DIR / relative_path


def _data_dir_default_note(relative_path: Path) -> str:
    return (
        f"Defaults to `${{TUBEDESK_DATA_DIR}}/{relative_path.as_posix()}` "
        "when not explicitly set."
    )


def _resolve_path(value: str | Path) -> Path:
    return Path(value).expanduser().resolve()


def _normalize_optional_text(value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        return None
    normalized = value.strip()
    if normalized:
        return normalized
    return None


class AppSettings(BaseSettings):
    """
    Canonical runtime configuration.

    Every option is read from `TUBEDESK_*` environment variables (or a local
    `.env` file) and falls back to the defaults below.
    """

    model_config = SettingsConfigDict(
        env_prefix="TUBEDESK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Local state.
    data_dir: Path = Field(
        default=DEFAULT_DATA_DIR,
        description="Per-user directory for OAuth artifacts, the thumbnail cache and logs.",
    )
    credentials_path: Path = Field(
        default=_default_in_data_dir(Path("credentials.json")),
        description=(
            "OAuth installed-app client secret JSON. "
            f"{_data_dir_default_note(Path('credentials.json'))}"
        ),
    )
    token_path: Path = Field(
        default=_default_in_data_dir(Path("token.json")),
        description=f"Persisted OAuth token JSON. {_data_dir_default_note(Path('token.json'))}",
    )
    thumbnail_cache_dir: Path = Field(
        default=_default_in_data_dir(Path("cache") / "thumbnails"),
        description=(
            "Flat directory of cached thumbnails. "
            f"{_data_dir_default_note(Path('cache') / 'thumbnails')}"
        ),
    )
    backup_path: Path = Field(
        default=Path(DEFAULT_BACKUP_FILE_NAME),
        description="Default catalog snapshot file, relative to the working directory.",
    )

    # OAuth flow.
    oauth_scopes: tuple[str, ...] = Field(
        default=(YOUTUBE_SCOPE,),
        description="Scopes requested during authorization.",
    )
    oauth_port_base: int = Field(
        default=5000,
        ge=1,
        le=65_535,
        description="First local port probed for the OAuth callback listener.",
    )
    oauth_port_attempts: int = Field(
        default=100,
        ge=1,
        description="How many sequential ports are probed before giving up.",
    )
    oauth_callback_host: str = Field(
        default="localhost",
        description="Host name used in the redirect URI and bound by the callback listener.",
    )
    oauth_callback_timeout_seconds: float = Field(
        default=300.0,
        gt=0,
        description="Maximum time to wait for the browser to hit the callback endpoint.",
    )

    # Catalog.
    locale: str | None = Field(
        default=None,
        description=(
            "Locale used for category names and as region fallback, e.g. `en_US`. "
            "Derived from the process locale when unset."
        ),
    )
    max_results: int = Field(
        default=200,
        ge=1,
        description="Default number of uploads fetched per listing.",
    )
    http_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for token validation and thumbnail downloads.",
    )

    # Logging.
    log_dir: Path = Field(
        default=_default_in_data_dir(Path("logs")),
        description=f"Directory for log files. {_data_dir_default_note(Path('logs'))}",
    )
    log_level: str = Field(
        default="INFO",
        description="Console log level.",
    )

    @field_validator("oauth_callback_host", mode="before")
    @classmethod
    def _normalize_callback_host(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("TUBEDESK_OAUTH_CALLBACK_HOST must be a string.")
        normalized = value.strip()
        if not normalized:
            raise ValueError("TUBEDESK_OAUTH_CALLBACK_HOST must not be empty.")
        return normalized

    @field_validator("locale", mode="before")
    @classmethod
    def _normalize_locale(cls, value: Any) -> str | None:
        return _normalize_optional_text(value)

    @field_validator(*_PATH_FIELDS, mode="before")
    @classmethod
    def _normalize_paths(cls, value: Any) -> Any:
        if value is None:
            return None
        return _resolve_path(value)

    def resolved_locale(self) -> str:
        if self.locale is not None:
            return self.locale
        system_locale, _encoding = locale_module.getlocale()
        if not system_locale or system_locale in {"C", "POSIX"}:
            return DEFAULT_LOCALE
        return system_locale


def _apply_path_defaults(settings: AppSettings) -> AppSettings:
    updates: dict[str, Path] = {}
    for field_name, relative_default in _DATA_DIR_RELATIVE_DEFAULTS:
        if field_name in settings.model_fields_set:
            continue
        updates[field_name] = settings.data_dir / relative_default
    if not updates:
        return settings
    return settings.model_copy(update=updates)


def _resolve_path_fields(settings: AppSettings) -> AppSettings:
    resolved_updates = {
        field_name: _resolve_path(getattr(settings, field_name))
        for field_name in _PATH_FIELDS
    }
    return settings.model_copy(update=resolved_updates)


def load_settings() -> AppSettings:
    settings = AppSettings()
    settings = _apply_path_defaults(settings)
    return _resolve_path_fields(settings)
