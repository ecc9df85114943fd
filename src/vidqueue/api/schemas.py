"""Request and response schemas for the vidqueue API.

Field names are camelCase on the wire (``downloadType``, ``fileName``).
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from vidqueue.jobs.models import DownloadStats, DownloadType, Job, JobStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ------------------------------------------------------------------
# Requests
# ------------------------------------------------------------------


class CreateDownloadRequest(CamelModel):
    url: str = Field(..., min_length=1, description="Source URL")
    download_type: DownloadType = Field(DownloadType.VIDEO, description="video or audio")
    title: str | None = None
    duration: str | None = None
    quality: str | None = None
    file_size: str | None = None

    def details(self) -> dict[str, str]:
        return {
            k: v
            for k, v in self.model_dump(include={"title", "duration", "quality", "file_size"}).items()
            if v
        }


# ------------------------------------------------------------------
# Responses
# ------------------------------------------------------------------


class DownloadResponse(CamelModel):
    id: str
    url: str
    download_type: DownloadType
    status: JobStatus
    progress: int = 0
    title: str | None = None
    duration: str | None = None
    quality: str | None = None
    file_size: str | None = None
    download_speed: str | None = None
    file_name: str | None = None
    error_message: str | None = None
    platform: str | None = None
    created_at: datetime

    @classmethod
    def from_job(cls, job: Job) -> DownloadResponse:
        return cls(
            id=job.id,
            url=job.url,
            download_type=job.download_type,
            status=job.status,
            progress=job.progress,
            title=job.title,
            duration=job.duration,
            quality=job.quality,
            file_size=job.file_size,
            download_speed=job.download_speed,
            file_name=job.file_name,
            error_message=job.error_message,
            platform=job.platform,
            created_at=job.created_at,
        )


class MessageResponse(BaseModel):
    message: str


class BulkStartResponse(MessageResponse):
    started: int


class StatsResponse(CamelModel):
    pending: int
    downloading: int
    ready: int
    failed: int
    total: int
    total_size_mb: float

    @classmethod
    def from_stats(cls, stats: DownloadStats) -> StatsResponse:
        return cls(
            pending=stats.pending,
            downloading=stats.downloading,
            ready=stats.ready,
            failed=stats.failed,
            total=stats.total,
            total_size_mb=stats.total_size_mb,
        )
