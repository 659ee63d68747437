from __future__ import annotations

from collections.abc import Iterable

from pydantic import BaseModel, ConfigDict, Field

CACHE_URL_SCHEME = "cache://"


class Thumbnail(BaseModel):
    model_config = ConfigDict(extra="ignore")

    url: str
    width: int = 0
    height: int = 0


class ProcessingProgress(BaseModel):
    model_config = ConfigDict(extra="ignore")

    parts_total: int | None = None
    parts_processed: int | None = None
    time_left_ms: int | None = None


class VideoStatistics(BaseModel):
    model_config = ConfigDict(extra="ignore")

    view_count: str = "0"
    like_count: str = "0"
    dislike_count: str = "0"
    comment_count: str = "0"


class VideoRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    title: str = ""
    description: str = ""
    thumbnail_url: str = ""
    thumbnails: dict[str, Thumbnail] = Field(default_factory=dict)
    published_at: str = ""
    privacy_status: str = "unknown"
    category_id: str | None = None
    duration: str | None = None
    upload_status: str | None = None
    processing_status: str | None = None
    processing_progress: ProcessingProgress | None = None
    statistics: VideoStatistics | None = None


def dedupe_videos(videos: Iterable[VideoRecord]) -> list[VideoRecord]:
    """Keep the first record for each video id, preserving order."""
    deduped: list[VideoRecord] = []
    seen: set[str] = set()
    for video in videos:
        if video.id in seen:
            continue
        seen.add(video.id)
        deduped.append(video)
    return deduped


class VideoUpdate(BaseModel):
    """One entry of a batch edit. Title and description are validated by the service."""

    model_config = ConfigDict(extra="ignore")

    video_id: str | None = None
    title: str | None = None
    description: str | None = None
    privacy_status: str | None = None
    category_id: str | None = None


class UpdatedVideo(BaseModel):
    video_id: str
    title: str


class FailedUpdate(BaseModel):
    video_id: str
    error: str


class BatchUpdateResults(BaseModel):
    successful: list[UpdatedVideo] = Field(default_factory=list)
    failed: list[FailedUpdate] = Field(default_factory=list)


class BatchUpdateSummary(BaseModel):
    total: int
    successful: int
    failed: int


class BatchUpdateResult(BaseModel):
    # `success` is true when at least one update went through; see `summary` for counts.
    success: bool
    results: BatchUpdateResults
    summary: BatchUpdateSummary

    @property
    def all_succeeded(self) -> bool:
        return self.summary.total > 0 and self.summary.failed == 0


class VideoCategory(BaseModel):
    id: str
    title: str
