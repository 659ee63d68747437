from __future__ import annotations

from functools import lru_cache

from tubedesk.config import AppSettings, load_settings
from tubedesk.repositories.catalog_repository import CatalogRepository
from tubedesk.services.credential_store import CredentialStore
from tubedesk.services.local_auth_server import LocalAuthServer
from tubedesk.services.thumbnail_cache import ThumbnailCache
from tubedesk.services.token_manager import TokenManager


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    return load_settings()


@lru_cache(maxsize=1)
def get_credential_store() -> CredentialStore:
    settings = get_settings()
    return CredentialStore(settings.credentials_path, settings.token_path)


@lru_cache(maxsize=1)
def get_token_manager() -> TokenManager:
    settings = get_settings()
    return TokenManager(
        get_credential_store(),
        LocalAuthServer(
            host=settings.oauth_callback_host,
            timeout_seconds=settings.oauth_callback_timeout_seconds,
        ),
        scopes=settings.oauth_scopes,
        port_base=settings.oauth_port_base,
        port_attempts=settings.oauth_port_attempts,
        http_timeout_seconds=settings.http_timeout_seconds,
    )


@lru_cache(maxsize=1)
def get_thumbnail_cache() -> ThumbnailCache:
    settings = get_settings()
    return ThumbnailCache(
        settings.thumbnail_cache_dir,
        timeout_seconds=settings.http_timeout_seconds,
    )


@lru_cache(maxsize=1)
def get_catalog_repository() -> CatalogRepository:
    return CatalogRepository()


def reset_cached_dependencies() -> None:
    get_catalog_repository.cache_clear()
    get_thumbnail_cache.cache_clear()
    get_token_manager.cache_clear()
    get_credential_store.cache_clear()
    get_settings.cache_clear()
