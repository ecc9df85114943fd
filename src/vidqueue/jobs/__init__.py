"""Download job records and storage.

The lifecycle controller lives in ``vidqueue.jobs.manager``.
"""

from vidqueue.jobs.models import DownloadStats, DownloadType, Job, JobStatus
from vidqueue.jobs.store import InMemoryJobStore, JobStore

__all__ = [
    "DownloadStats",
    "DownloadType",
    "InMemoryJobStore",
    "Job",
    "JobStatus",
    "JobStore",
]
