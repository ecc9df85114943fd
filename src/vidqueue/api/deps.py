"""FastAPI dependencies."""

from __future__ import annotations

from vidqueue.config import Settings
from vidqueue.jobs.manager import JobManager
from vidqueue.jobs.store import InMemoryJobStore
from vidqueue.services.extractor import YtDlpInvoker
from vidqueue.services.url_classifier import UrlClassifier

_job_manager: JobManager | None = None


def build_job_manager(settings: Settings) -> JobManager:
    """Wire a JobManager from settings."""
    invoker = YtDlpInvoker(
        executable=settings.ytdlp_path,
        video_max_height=settings.video_max_height,
        fallback_height=settings.video_fallback_height,
        audio_format=settings.audio_format,
        audio_quality=settings.audio_quality,
    )
    return JobManager(
        store=InMemoryJobStore(),
        invoker=invoker,
        download_dir=settings.download_dir,
        classifier=UrlClassifier(settings.supported_domains),
        max_concurrent=settings.max_concurrent_downloads,
        stderr_policy=settings.stderr_policy,
        probe_metadata=settings.probe_metadata,
    )


def init_job_manager(settings: Settings) -> JobManager:
    """Initialize the global JobManager (called at app startup)."""
    global _job_manager
    _job_manager = build_job_manager(settings)
    return _job_manager


def get_job_manager() -> JobManager:
    """Dependency that provides the JobManager instance."""
    if _job_manager is None:
        raise RuntimeError("JobManager not initialized - call init_job_manager() first")
    return _job_manager


async def shutdown_job_manager() -> None:
    global _job_manager
    if _job_manager is not None:
        await _job_manager.shutdown()
        _job_manager = None
