from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any, cast

from tubedesk.models.catalog import (
    BatchUpdateResult,
    BatchUpdateResults,
    BatchUpdateSummary,
    FailedUpdate,
    ProcessingProgress,
    Thumbnail,
    UpdatedVideo,
    VideoCategory,
    VideoRecord,
    VideoStatistics,
    VideoUpdate,
    dedupe_videos,
)
from tubedesk.services.errors import RemoteAPIError, as_remote_error
from tubedesk.services.thumbnail_cache import ThumbnailCache
from tubedesk.services.token_manager import AuthSession

LOGGER = logging.getLogger("tubedesk.catalog")

API_PAGE_SIZE = 50
API_BATCH_SIZE = 50
DEFAULT_MAX_RESULTS = 200
DEFAULT_REGION_CODE = "US"
THUMBNAIL_PREFERENCE: tuple[str, ...] = ("medium", "high", "default", "standard")
VIDEO_DETAIL_PARTS = "snippet,contentDetails,status,statistics,processingDetails"
MISSING_FIELDS_ERROR = "Missing required fields"
UNKNOWN_VIDEO_ID = "unknown"


@dataclass(frozen=True)
class ChannelInfo:
    id: str
    name: str
    thumbnail: str | None = None
    country: str | None = None


@dataclass(frozen=True)
class _PlaylistEntry:
    video_id: str
    snippet: dict[str, Any]
    status: dict[str, Any]


class VideoCatalogService:
    """Uploads listing and metadata edits for one authenticated session.

    Every remote call is issued sequentially, one request in flight at a time,
    to stay inside the Data API quota and keep failures attributable per item.
    """

    def __init__(
        self,
        youtube: Any,
        thumbnail_cache: ThumbnailCache,
        *,
        locale: str = "en_US",
        page_size: int = API_PAGE_SIZE,
        batch_size: int = API_BATCH_SIZE,
    ) -> None:
        self._youtube = youtube
        self._thumbnail_cache = thumbnail_cache
        self._locale = locale
        self._page_size = max(1, min(API_PAGE_SIZE, page_size))
        self._batch_size = max(1, min(API_BATCH_SIZE, batch_size))
        self._videos: list[VideoRecord] = []
        self._categories: dict[str, VideoCategory] = {}

    @classmethod
    def from_session(
        cls,
        session: AuthSession,
        thumbnail_cache: ThumbnailCache,
        *,
        locale: str = "en_US",
    ) -> VideoCatalogService:
        return cls(session.build_youtube_client(), thumbnail_cache, locale=locale)

    def get_videos(self) -> list[VideoRecord]:
        return self._videos

    def replace_catalog(self, videos: Iterable[VideoRecord]) -> None:
        self._videos = dedupe_videos(videos)

    async def list_channel_videos(
        self,
        channel_id: str | None = None,
        max_results: int = DEFAULT_MAX_RESULTS,
    ) -> list[VideoRecord]:
        if max_results <= 0:
            return []

        try:
            uploads_playlist_id = await self._resolve_uploads_playlist_id(channel_id)
        except Exception:
            LOGGER.error(
                "catalog uploads_playlist_lookup_failed channel_id=%s",
                channel_id,
                exc_info=True,
            )
            return []
        if uploads_playlist_id is None:
            LOGGER.info("catalog channel_without_uploads channel_id=%s", channel_id)
            return []

        entries = await self._list_playlist_entries(uploads_playlist_id, max_results)
        self._thumbnail_cache.reset_registry()
        videos = await self._fetch_video_records(entries)
        self._videos = videos
        LOGGER.info(
            "catalog listed playlist_id=%s playlist_items=%s videos=%s",
            uploads_playlist_id,
            len(entries),
            len(videos),
        )
        return videos

    async def update_video(
        self,
        video_id: str,
        title: str,
        description: str,
        privacy_status: str | None,
        category_id: str | None,
    ) -> bool:
        try:
            await self._send_update(video_id, title, description, privacy_status, category_id)
        except Exception as exc:
            LOGGER.warning("catalog update_failed video_id=%s error=%s", video_id, exc)
            return False
        return True

    async def update_videos_batch(self, updates: Sequence[VideoUpdate]) -> BatchUpdateResult:
        results = BatchUpdateResults()

        for update in updates:
            video_id = update.video_id
            if not video_id or update.title is None or update.description is None:
                results.failed.append(
                    FailedUpdate(video_id=video_id or UNKNOWN_VIDEO_ID, error=MISSING_FIELDS_ERROR)
                )
                continue

            try:
                await self._send_update(
                    video_id,
                    update.title,
                    update.description,
                    update.privacy_status,
                    update.category_id,
                )
            except Exception as exc:
                LOGGER.warning("catalog batch_update_failed video_id=%s error=%s", video_id, exc)
                results.failed.append(FailedUpdate(video_id=video_id, error=str(exc)))
                continue

            results.successful.append(UpdatedVideo(video_id=video_id, title=update.title))

        summary = BatchUpdateSummary(
            total=len(updates),
            successful=len(results.successful),
            failed=len(results.failed),
        )
        LOGGER.info(
            "catalog batch_update_done total=%s successful=%s failed=%s",
            summary.total,
            summary.successful,
            summary.failed,
        )
        return BatchUpdateResult(
            success=summary.successful > 0,
            results=results,
            summary=summary,
        )

    async def get_video_categories(self) -> dict[str, VideoCategory]:
        if self._categories:
            return self._categories

        try:
            channel = await self.get_channel_info()
            region_code = _region_code(channel.country if channel else None, self._locale)
            response = await self._execute(
                self._youtube.videoCategories().list(
                    part="snippet",
                    regionCode=region_code,
                    hl=self._locale.replace("-", "_") or "en_US",
                )
            )
        except Exception:
            LOGGER.error("catalog categories_fetch_failed", exc_info=True)
            return {}

        categories: dict[str, VideoCategory] = {}
        for item in _as_list(response.get("items")):
            item_dict = _as_dict(item)
            snippet = _as_dict(item_dict.get("snippet"))
            category_id = _coerce_nonempty_string(item_dict.get("id"))
            if category_id is None or snippet.get("assignable") is not True:
                continue
            categories[category_id] = VideoCategory(
                id=category_id,
                title=str(snippet.get("title") or category_id),
            )

        self._categories = categories
        return categories

    async def get_channel_info(self) -> ChannelInfo | None:
        try:
            response = await self._execute(
                self._youtube.channels().list(part="snippet,brandingSettings", mine=True)
            )
        except Exception:
            LOGGER.error("catalog channel_info_fetch_failed", exc_info=True)
            return None

        items = _as_list(response.get("items"))
        if not items:
            return None

        channel = _as_dict(items[0])
        snippet = _as_dict(channel.get("snippet"))
        thumbnails = _as_dict(snippet.get("thumbnails"))
        branding = _as_dict(_as_dict(channel.get("brandingSettings")).get("channel"))
        thumbnail = _coerce_nonempty_string(
            _as_dict(thumbnails.get("default")).get("url")
        ) or _coerce_nonempty_string(_as_dict(thumbnails.get("medium")).get("url"))
        return ChannelInfo(
            id=str(channel.get("id") or ""),
            name=str(snippet.get("title") or ""),
            thumbnail=thumbnail,
            country=_coerce_nonempty_string(branding.get("country")),
        )

    async def _resolve_uploads_playlist_id(self, channel_id: str | None) -> str | None:
        query_kwargs: dict[str, object] = {"part": "contentDetails"}
        if channel_id:
            query_kwargs["id"] = channel_id
        else:
            query_kwargs["mine"] = True

        response = await self._execute(self._youtube.channels().list(**query_kwargs))
        items = _as_list(response.get("items"))
        if not items:
            return None

        content_details = _as_dict(_as_dict(items[0]).get("contentDetails"))
        related = _as_dict(content_details.get("relatedPlaylists"))
        return _coerce_nonempty_string(related.get("uploads"))

    async def _list_playlist_entries(
        self,
        playlist_id: str,
        max_results: int,
    ) -> list[_PlaylistEntry]:
        raw_items: list[dict[str, Any]] = []
        next_page_token: str | None = None

        while len(raw_items) < max_results:
            query_kwargs: dict[str, object] = {
                "part": "snippet,status",
                "playlistId": playlist_id,
                "maxResults": min(self._page_size, max_results - len(raw_items)),
            }
            if next_page_token is not None:
                query_kwargs["pageToken"] = next_page_token

            try:
                response = await self._execute(self._youtube.playlistItems().list(**query_kwargs))
            except Exception:
                LOGGER.error(
                    "catalog playlist_page_failed playlist_id=%s gathered=%s",
                    playlist_id,
                    len(raw_items),
                    exc_info=True,
                )
                break

            page_items = [_as_dict(item) for item in _as_list(response.get("items"))]
            raw_items.extend(page_items[: max_results - len(raw_items)])

            raw_next = response.get("nextPageToken")
            next_page_token = raw_next if isinstance(raw_next, str) and raw_next.strip() else None
            if next_page_token is None:
                break

        entries: list[_PlaylistEntry] = []
        seen: set[str] = set()
        for item in raw_items:
            snippet = _as_dict(item.get("snippet"))
            video_id = _coerce_nonempty_string(_as_dict(snippet.get("resourceId")).get("videoId"))
            if video_id is None or video_id in seen:
                continue
            seen.add(video_id)
            entries.append(
                _PlaylistEntry(
                    video_id=video_id,
                    snippet=snippet,
                    status=_as_dict(item.get("status")),
                )
            )
        return entries

    async def _fetch_video_records(self, entries: list[_PlaylistEntry]) -> list[VideoRecord]:
        entries_by_id = {entry.video_id: entry for entry in entries}
        video_ids = list(entries_by_id)
        videos: list[VideoRecord] = []
        returned_ids: set[str] = set()
        failed_ids: set[str] = set()

        for start in range(0, len(video_ids), self._batch_size):
            batch_ids = video_ids[start : start + self._batch_size]
            try:
                response = await self._execute(
                    self._youtube.videos().list(part=VIDEO_DETAIL_PARTS, id=",".join(batch_ids))
                )
            except Exception:
                LOGGER.error(
                    "catalog video_details_batch_failed first_id=%s size=%s",
                    batch_ids[0],
                    len(batch_ids),
                    exc_info=True,
                )
                failed_ids.update(batch_ids)
                continue

            for item in _as_list(response.get("items")):
                item_dict = _as_dict(item)
                video_id = _coerce_nonempty_string(item_dict.get("id"))
                if video_id is None or video_id not in entries_by_id or video_id in returned_ids:
                    LOGGER.info("catalog video_not_in_playlist video_id=%s", video_id)
                    continue
                returned_ids.add(video_id)
                try:
                    videos.append(self._normalize_video(video_id, item_dict))
                except Exception:
                    LOGGER.warning(
                        "catalog video_normalize_failed video_id=%s", video_id, exc_info=True
                    )

        for video_id in video_ids:
            if video_id not in returned_ids and video_id not in failed_ids:
                LOGGER.info("catalog video_details_missing video_id=%s", video_id)

        return videos

    def _normalize_video(self, video_id: str, item: dict[str, Any]) -> VideoRecord:
        snippet = _as_dict(item.get("snippet"))
        status = _as_dict(item.get("status"))
        content_details = _as_dict(item.get("contentDetails"))
        statistics = _as_dict(item.get("statistics"))
        processing = _as_dict(item.get("processingDetails"))

        thumbnails: dict[str, Thumbnail] = {}
        for size_label, payload in _as_dict(snippet.get("thumbnails")).items():
            thumbnail = self._thumbnail_cache.register(video_id, size_label, _as_dict(payload))
            if thumbnail is not None:
                thumbnails[size_label] = thumbnail

        raw_progress = processing.get("processingProgress")
        progress = None
        if isinstance(raw_progress, dict):
            progress_dict = _as_dict(raw_progress)
            progress = ProcessingProgress(
                parts_total=_coerce_int(progress_dict.get("partsTotal")),
                parts_processed=_coerce_int(progress_dict.get("partsProcessed")),
                time_left_ms=_coerce_int(progress_dict.get("timeLeftMs")),
            )

        return VideoRecord(
            id=video_id,
            title=str(snippet.get("title") or ""),
            description=str(snippet.get("description") or ""),
            thumbnail_url=select_thumbnail_url(thumbnails),
            thumbnails=thumbnails,
            published_at=str(snippet.get("publishedAt") or ""),
            privacy_status=_coerce_nonempty_string(status.get("privacyStatus")) or "unknown",
            category_id=_coerce_nonempty_string(snippet.get("categoryId")),
            duration=_coerce_nonempty_string(content_details.get("duration")),
            upload_status=_coerce_nonempty_string(status.get("uploadStatus")),
            processing_status=_coerce_nonempty_string(processing.get("processingStatus")),
            processing_progress=progress,
            statistics=VideoStatistics(
                view_count=_count_string(statistics.get("viewCount")),
                like_count=_count_string(statistics.get("likeCount")),
                dislike_count=_count_string(statistics.get("dislikeCount")),
                comment_count=_count_string(statistics.get("commentCount")),
            ),
        )

    async def _send_update(
        self,
        video_id: str,
        title: str,
        description: str,
        privacy_status: str | None,
        category_id: str | None,
    ) -> None:
        category_id = category_id or await self._current_category_id(video_id)
        parts = ["snippet"]
        snippet: dict[str, object] = {
            "title": title,
            "description": description,
            "categoryId": category_id,
        }
        body: dict[str, object] = {"id": video_id, "snippet": snippet}
        if privacy_status:
            parts.append("status")
            body["status"] = {"privacyStatus": privacy_status}

        try:
            await self._execute(self._youtube.videos().update(part=",".join(parts), body=body))
        except Exception as exc:
            raise as_remote_error(exc) from exc

        record = self._find_video(video_id)
        if record is not None:
            record.title = title
            record.description = description
            record.category_id = category_id
            if privacy_status:
                record.privacy_status = privacy_status

    async def _current_category_id(self, video_id: str) -> str:
        # videos.update rejects a snippet without categoryId.
        record = self._find_video(video_id)
        if record is not None and record.category_id:
            return record.category_id

        try:
            response = await self._execute(self._youtube.videos().list(part="snippet", id=video_id))
        except Exception as exc:
            raise as_remote_error(exc) from exc
        for item in _as_list(response.get("items")):
            item_dict = _as_dict(item)
            if item_dict.get("id") != video_id:
                continue
            category_id = _coerce_nonempty_string(_as_dict(item_dict.get("snippet")).get("categoryId"))
            if category_id is not None:
                return category_id
        raise RemoteAPIError(f"Cannot determine the current category of video {video_id}.")

    def _find_video(self, video_id: str) -> VideoRecord | None:
        for video in self._videos:
            if video.id == video_id:
                return video
        return None

    async def _execute(self, request: Any) -> dict[str, Any]:
        response = await asyncio.to_thread(request.execute)
        if response is None:
            return {}
        if not isinstance(response, dict):
            raise RemoteAPIError(f"Unexpected YouTube API response type: {type(response).__name__}")
        return _as_dict(response)


def select_thumbnail_url(thumbnails: dict[str, Thumbnail]) -> str:
    for size_label in THUMBNAIL_PREFERENCE:
        thumbnail = thumbnails.get(size_label)
        if thumbnail is not None:
            return thumbnail.url
    return ""


def _region_code(channel_country: str | None, locale: str) -> str:
    if channel_country:
        return channel_country
    normalized = locale.replace("_", "-")
    parts = normalized.split("-")
    if len(parts) > 1 and parts[1]:
        return parts[1].upper()
    return DEFAULT_REGION_CODE


def _count_string(raw_value: object) -> str:
    if isinstance(raw_value, str) and raw_value.strip():
        return raw_value
    if isinstance(raw_value, int) and not isinstance(raw_value, bool):
        return str(raw_value)
    return "0"


def _coerce_nonempty_string(raw_value: object) -> str | None:
    if isinstance(raw_value, str) and raw_value.strip():
        return raw_value
    return None


def _coerce_int(raw_value: object) -> int | None:
    if isinstance(raw_value, bool):
        return int(raw_value)
    if isinstance(raw_value, int):
        return raw_value
    if isinstance(raw_value, float):
        return int(raw_value)
    if isinstance(raw_value, str):
        try:
            return int(raw_value)
        except ValueError:
            return None
    return None


def _as_dict(value: Any) -> dict[str, Any]:
    if isinstance(value, dict):
        raw_dict = cast(dict[object, object], value)
        converted: dict[str, Any] = {}
        for key, item in raw_dict.items():
            if isinstance(key, str):
                converted[key] = item
        return converted
    return {}


def _as_list(value: Any) -> list[Any]:
    if isinstance(value, list):
        raw_list = cast(list[Any], value)
        return list(raw_list)
    return []
