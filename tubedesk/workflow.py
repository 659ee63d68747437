from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from tubedesk.config import AppSettings
from tubedesk.models.catalog import VideoRecord
from tubedesk.services.thumbnail_cache import ThumbnailCache
from tubedesk.services.token_manager import AuthSession, TokenManager
from tubedesk.services.video_catalog_service import VideoCatalogService

LOGGER = logging.getLogger("tubedesk.workflow")

ServiceFactory = Callable[[AuthSession, ThumbnailCache, str], VideoCatalogService]


@dataclass(frozen=True)
class CatalogLoadOutcome:
    success: bool
    error: str | None = None
    videos: list[VideoRecord] = field(default_factory=list)
    service: VideoCatalogService | None = None


def _default_service_factory(
    session: AuthSession,
    thumbnail_cache: ThumbnailCache,
    locale: str,
) -> VideoCatalogService:
    return VideoCatalogService.from_session(session, thumbnail_cache, locale=locale)


async def open_catalog_service(
    token_manager: TokenManager,
    thumbnail_cache: ThumbnailCache,
    settings: AppSettings,
    *,
    service_factory: ServiceFactory = _default_service_factory,
) -> CatalogLoadOutcome:
    auth_result = await token_manager.authenticate()
    if not auth_result.success or auth_result.session is None:
        return CatalogLoadOutcome(
            success=False,
            error=auth_result.error or "Authentication failed.",
        )

    try:
        service = service_factory(auth_result.session, thumbnail_cache, settings.resolved_locale())
    except Exception as exc:
        LOGGER.error("workflow youtube_client_build_failed", exc_info=True)
        return CatalogLoadOutcome(success=False, error=f"Failed to build YouTube client: {exc}")
    return CatalogLoadOutcome(success=True, service=service)


async def load_channel_catalog(
    token_manager: TokenManager,
    thumbnail_cache: ThumbnailCache,
    settings: AppSettings,
    *,
    channel_id: str | None = None,
    max_results: int | None = None,
    service_factory: ServiceFactory = _default_service_factory,
) -> CatalogLoadOutcome:
    opened = await open_catalog_service(
        token_manager,
        thumbnail_cache,
        settings,
        service_factory=service_factory,
    )
    if opened.service is None:
        return opened

    videos = await opened.service.list_channel_videos(
        channel_id=channel_id,
        max_results=settings.max_results if max_results is None else max_results,
    )
    LOGGER.info("workflow catalog_loaded videos=%s", len(videos))
    return CatalogLoadOutcome(success=True, videos=videos, service=opened.service)
