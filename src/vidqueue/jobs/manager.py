"""Job manager: drives downloads through their lifecycle."""

from __future__ import annotations

import asyncio
import contextlib
import dataclasses
import glob
import logging
import re
from functools import partial
from pathlib import Path
from typing import Any

from vidqueue.errors import (
    ExtractionFailure,
    NotFoundError,
    StateConflictError,
    StorageFailure,
    ValidationError,
)
from vidqueue.jobs.models import (
    DownloadStats,
    DownloadType,
    Job,
    JobStatus,
    truncate_error,
)
from vidqueue.jobs.store import JobStore
from vidqueue.services.extractor import ErrorChunk, Exited, OutputChunk
from vidqueue.services.interfaces import IExtractionInvoker
from vidqueue.services.output_parser import OutputParser
from vidqueue.services.url_classifier import UrlClassifier

logger = logging.getLogger(__name__)

DESCRIPTIVE_FIELDS = frozenset({"title", "duration", "quality", "file_size"})
STARTABLE = frozenset({JobStatus.PENDING, JobStatus.FAILED})
TEMP_SUFFIXES = frozenset({".part", ".ytdl", ".temp", ".tmp"})
STDERR_POLICIES = ("fatal", "classify")

_FORMAT_FRAGMENT_RE = re.compile(r"\.f\d+\.")
_SIZE_RE = re.compile(r"([\d.]+)\s*(KiB|MiB|GiB|TiB|KB|MB|GB|TB)", re.IGNORECASE)
_MB_FACTORS = {
    "kib": 1 / 1024, "mib": 1.0, "gib": 1024.0, "tib": 1024.0 ** 2,
    "kb": 1 / 1024, "mb": 1.0, "gb": 1024.0, "tb": 1024.0 ** 2,
}


class JobManager:
    """Manages download jobs and their yt-dlp processes.

    Job records live in an injected ``JobStore``. Each started job runs as
    its own asyncio task that consumes the ordered event stream of its
    extraction process; only that task and ``delete_job`` write to the
    record while it is downloading. ``max_concurrent`` caps running
    processes with a semaphore; left as None, every start launches at once.
    """

    def __init__(
        self,
        store: JobStore,
        invoker: IExtractionInvoker,
        download_dir: Path,
        classifier: UrlClassifier | None = None,
        max_concurrent: int | None = None,
        stderr_policy: str = "fatal",
        probe_metadata: bool = False,
    ) -> None:
        if stderr_policy not in STDERR_POLICIES:
            raise ValueError(f"stderr_policy must be one of {STDERR_POLICIES}")
        self.download_dir = Path(download_dir)
        self._store = store
        self._invoker = invoker
        self._classifier = classifier or UrlClassifier()
        self._semaphore = asyncio.Semaphore(max_concurrent) if max_concurrent else None
        self._stderr_policy = stderr_policy
        self._probe_metadata = probe_metadata
        self._tasks: dict[str, asyncio.Task] = {}

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_job(self, job_id: str) -> Job:
        """Get a job by ID.

        Raises:
            NotFoundError: If no such job exists.
        """
        job = self._store.get(job_id)
        if job is None:
            raise NotFoundError("Download item not found")
        return job

    def list_jobs(self) -> list[Job]:
        """List all jobs, most recent first."""
        try:
            return self._store.list_all()
        except StorageFailure:
            raise
        except Exception as e:
            logger.exception("Failed to list jobs")
            raise StorageFailure("Failed to fetch downloads") from e

    def stats(self) -> DownloadStats:
        """Count jobs per status and sum the known file sizes."""
        stats = DownloadStats()
        total_mb = 0.0
        for job in self.list_jobs():
            field_name = job.status.value
            setattr(stats, field_name, getattr(stats, field_name) + 1)
            total_mb += size_in_megabytes(job.file_size) or 0.0
        stats.total_size_mb = round(total_mb, 1)
        return stats

    def is_running(self, job_id: str) -> bool:
        task = self._tasks.get(job_id)
        return task is not None and not task.done()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create_job(
        self,
        url: str,
        download_type: DownloadType | str = DownloadType.VIDEO,
        **details: Any,
    ) -> Job:
        """Validate ``url`` and store a new pending job.

        Args:
            url: Source URL; must belong to a supported platform.
            download_type: "video" or "audio".
            **details: Optional descriptive fields (title, duration,
                quality, file_size) known up front.

        Raises:
            ValidationError: Unsupported URL, type or field.
        """
        platform = self._classifier.validate(url)
        try:
            kind = DownloadType(download_type)
        except ValueError as e:
            raise ValidationError(f"Invalid download type: {download_type!r}") from e
        unknown = set(details) - DESCRIPTIVE_FIELDS
        if unknown:
            raise ValidationError(f"Unsupported fields: {sorted(unknown)}")

        job = self._store.create(
            url=url.strip(),
            download_type=kind,
            status=JobStatus.PENDING,
            progress=0,
            platform=platform,
            **{k: v for k, v in details.items() if v},
        )
        logger.info("Queued %s download %s (%s)", kind.value, job.id, platform)
        return job

    def start_job(self, job_id: str) -> Job:
        """Move a pending or failed job to downloading and launch it.

        Returns as soon as the run is scheduled; the outcome is recorded on
        the job.

        Raises:
            NotFoundError: Unknown job.
            StateConflictError: Job is downloading or already ready.
        """
        job = self.get_job(job_id)
        if job.status not in STARTABLE:
            raise StateConflictError(f"Download already processed (status: {job.status.value})")
        if self.is_running(job_id):
            raise StateConflictError("Previous run is still stopping")

        job = self._store.update(
            job_id,
            status=JobStatus.DOWNLOADING,
            progress=0,
            error_message=None,
            download_speed=None,
            file_name=None,
        )
        if job is None:
            raise NotFoundError("Download item not found")

        task = asyncio.create_task(self._run_download(job), name=f"download-{job_id}")
        self._tasks[job_id] = task
        task.add_done_callback(partial(self._task_done, job_id))
        logger.info("Started download %s", job_id)
        return job

    async def start_all_pending(self) -> int:
        """Start every pending job concurrently.

        A failed start is logged and does not affect the others.

        Returns:
            Number of jobs whose start was initiated.
        """
        pending = [j for j in self.list_jobs() if j.status == JobStatus.PENDING]

        async def start_one(job_id: str) -> Job:
            return self.start_job(job_id)

        results = await asyncio.gather(
            *(start_one(j.id) for j in pending), return_exceptions=True
        )
        started = 0
        for job, result in zip(pending, results):
            if isinstance(result, BaseException):
                logger.warning("Bulk start skipped %s: %s", job.id, result)
            else:
                started += 1
        logger.info("Bulk start: %d of %d pending downloads started", started, len(pending))
        return started

    async def delete_job(self, job_id: str) -> None:
        """Stop any running download, then remove the record and its files.

        Raises:
            NotFoundError: Unknown job.
        """
        job = self.get_job(job_id)
        interrupted = False
        task = self._tasks.pop(job_id, None)
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            interrupted = True

        self._store.delete(job_id)
        await asyncio.to_thread(self._remove_files, job, interrupted)
        logger.info("Deleted download %s", job_id)

    async def wait_for(self, job_id: str) -> Job:
        """Wait until the job's current run (if any) has finished."""
        task = self._tasks.get(job_id)
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
        return self.get_job(job_id)

    async def shutdown(self) -> None:
        """Cancel all running downloads and stop their processes."""
        tasks = [t for t in self._tasks.values() if not t.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            logger.info("Stopping %d running download(s)", len(tasks))
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def find_artifact(self, job_id: str) -> Path | None:
        """Return the finished file named after ``job_id``, if any."""
        if not self.download_dir.is_dir():
            return None
        candidates = [
            p for p in self.download_dir.glob(f"{glob.escape(job_id)}*")
            if p.is_file() and p.suffix.lower() not in TEMP_SUFFIXES
        ]
        if not candidates:
            return None
        # Merged output wins over leftover per-format streams (<id>.f137.mp4).
        candidates.sort(key=lambda p: (bool(_FORMAT_FRAGMENT_RE.search(p.name)), p.name))
        return candidates[0]

    def artifact_path(self, file_name: str) -> Path:
        """Resolve a served file name inside the download directory.

        Raises:
            NotFoundError: Name escapes the directory or file is missing.
        """
        name = Path(file_name).name
        if name != file_name or name in ("", ".", ".."):
            raise NotFoundError("File not found")
        path = self.download_dir / name
        if not path.is_file():
            raise NotFoundError("File not found")
        return path

    def _remove_files(self, job: Job, interrupted: bool) -> None:
        targets: list[Path] = []
        if job.file_name:
            targets.append(self.download_dir / job.file_name)
        if interrupted and self.download_dir.is_dir():
            targets.extend(self.download_dir.glob(f"{glob.escape(job.id)}.*"))
        for path in targets:
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                logger.error("Error deleting file %s: %s", path.name, e)

    # ------------------------------------------------------------------
    # Download run
    # ------------------------------------------------------------------

    async def _run_download(self, job: Job) -> None:
        """Execute one run, honouring the concurrency cap."""
        try:
            async with self._semaphore or contextlib.nullcontext():
                await self._execute(job)
        except asyncio.CancelledError:
            logger.info("Download %s cancelled", job.id)
            raise
        except Exception as e:
            logger.exception("Download %s failed", job.id)
            self._fail(job.id, f"Unexpected error: {e}")

    async def _execute(self, job: Job) -> None:
        if self._probe_metadata:
            await self._probe(job)

        template = self.download_dir / f"{job.id}.%(ext)s"
        process = await self._invoker.start(job.url, job.download_type, template)
        parser = OutputParser()
        stop = False
        try:
            async for event in process.events():
                current = self._active(job.id)
                if current is None:
                    stop = True
                elif isinstance(event, OutputChunk):
                    logger.debug("[%s] %s", job.id, event.text.rstrip())
                    self._apply(job.id, parser.feed(event.text, dataclasses.asdict(current)).fields())
                elif isinstance(event, ErrorChunk):
                    stop = self._on_stderr(job.id, event.text)
                elif isinstance(event, Exited):
                    self._apply(job.id, parser.flush(dataclasses.asdict(current)).fields())
                    await self._finish(job.id, event)
                if stop:
                    break
            if stop:
                await process.kill()
        except asyncio.CancelledError:
            await process.kill()
            raise

    async def _probe(self, job: Job) -> None:
        try:
            metadata = await self._invoker.probe(job.url)
        except ExtractionFailure as e:
            # The download itself reports the real failure.
            logger.warning("Metadata probe for %s failed: %s", job.id, e)
            return
        if self._active(job.id) is not None:
            self._apply(job.id, metadata.fields())

    def _on_stderr(self, job_id: str, text: str) -> bool:
        """Handle stderr output; True when it failed the job."""
        logger.warning("[%s] yt-dlp stderr: %s", job_id, text.strip())
        if self._stderr_policy == "fatal":
            message = text
        else:
            errors = [ln.strip() for ln in text.splitlines() if ln.strip().startswith("ERROR:")]
            if not errors:
                return False
            message = errors[0]
        self._fail(job_id, message)
        return True

    async def _finish(self, job_id: str, exited: Exited) -> None:
        if exited.returncode is None:
            self._fail(job_id, exited.error or "Failed to launch extractor")
            return
        if not exited.ok:
            self._fail(job_id, f"Download failed with code {exited.returncode}")
            return

        artifact = await asyncio.to_thread(self.find_artifact, job_id)
        if self._active(job_id) is None:
            return
        if artifact is None:
            self._fail(job_id, "File not found after download")
            return
        self._store.update(
            job_id,
            status=JobStatus.READY,
            progress=100,
            file_name=artifact.name,
        )
        logger.info("Download %s ready: %s", job_id, artifact.name)

    def _active(self, job_id: str) -> Job | None:
        """The job record, if it still exists and is downloading."""
        job = self._store.get(job_id)
        if job is None or job.status != JobStatus.DOWNLOADING:
            return None
        return job

    def _apply(self, job_id: str, changes: dict[str, Any]) -> None:
        if changes:
            self._store.update(job_id, **changes)

    def _fail(self, job_id: str, message: str) -> None:
        if self._active(job_id) is None:
            return
        error = truncate_error(message) or "Download failed"
        self._store.update(job_id, status=JobStatus.FAILED, error_message=error)
        logger.info("Download %s failed: %s", job_id, error)

    def _task_done(self, job_id: str, task: asyncio.Task) -> None:
        if self._tasks.get(job_id) is task:
            del self._tasks[job_id]
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Download task %s crashed: %r", job_id, exc)


def size_in_megabytes(text: str | None) -> float | None:
    """Convert "4.8 MB" or "10.00MiB" style sizes to megabytes."""
    if not text:
        return None
    match = _SIZE_RE.search(text)
    if match is None:
        return None
    try:
        value = float(match.group(1))
    except ValueError:
        return None
    return value * _MB_FACTORS[match.group(2).lower()]
