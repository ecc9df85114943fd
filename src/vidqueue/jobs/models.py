"""Job domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

ERROR_MESSAGE_LIMIT = 200


class JobStatus(str, Enum):
    """Status of a download job."""

    PENDING = "pending"
    DOWNLOADING = "downloading"
    READY = "ready"
    FAILED = "failed"


class DownloadType(str, Enum):
    """What to extract from the source URL."""

    VIDEO = "video"
    AUDIO = "audio"


@dataclass
class Job:
    """A tracked request to fetch one media resource."""

    url: str
    download_type: DownloadType = DownloadType.VIDEO
    id: str = field(default_factory=lambda: str(uuid4()))
    status: JobStatus = JobStatus.PENDING
    progress: int = 0
    title: str | None = None
    duration: str | None = None
    quality: str | None = None
    file_size: str | None = None
    download_speed: str | None = None
    file_name: str | None = None
    error_message: str | None = None
    platform: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def truncate_error(message: str, limit: int = ERROR_MESSAGE_LIMIT) -> str:
    """Trim tool output stored on a job to a bounded length."""
    return message.strip()[:limit]


@dataclass
class DownloadStats:
    """Aggregate counters over the job list."""

    pending: int = 0
    downloading: int = 0
    ready: int = 0
    failed: int = 0
    total_size_mb: float = 0.0

    @property
    def total(self) -> int:
        return self.pending + self.downloading + self.ready + self.failed
