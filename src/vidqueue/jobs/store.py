"""Job persistence.

The lifecycle controller only talks to the ``JobStore`` protocol, so the
in-memory implementation can be swapped for a database-backed one.
"""

from __future__ import annotations

import dataclasses
from datetime import datetime, timezone
from typing import Any, Protocol

from vidqueue.jobs.models import Job

IMMUTABLE_FIELDS = frozenset({"id", "url", "download_type", "created_at"})
_JOB_FIELDS = frozenset(f.name for f in dataclasses.fields(Job))


class JobStore(Protocol):
    """Interface for job record storage."""

    def create(self, **fields: Any) -> Job:
        """Create a record, assigning id and creation timestamp."""
        ...

    def get(self, job_id: str) -> Job | None:
        ...

    def list_all(self) -> list[Job]:
        """Return all jobs, newest first."""
        ...

    def update(self, job_id: str, **changes: Any) -> Job | None:
        """Shallow-merge ``changes`` into the record; None if unknown."""
        ...

    def delete(self, job_id: str) -> bool:
        ...


class InMemoryJobStore:
    """Dict-backed job store.

    Every method runs without awaiting, so on a single event loop each call
    is atomic with respect to one record. Concurrent writers to the same id
    are last-write-wins.
    """

    def __init__(self) -> None:
        self._jobs: dict[str, Job] = {}

    def create(self, **fields: Any) -> Job:
        fields.pop("id", None)
        fields.pop("created_at", None)
        _check_field_names(fields)
        job = Job(**fields)
        job.created_at = datetime.now(timezone.utc)
        self._jobs[job.id] = job
        return dataclasses.replace(job)

    def get(self, job_id: str) -> Job | None:
        job = self._jobs.get(job_id)
        return dataclasses.replace(job) if job is not None else None

    def list_all(self) -> list[Job]:
        # Reversed insertion order breaks timestamp ties.
        jobs = sorted(
            reversed(list(self._jobs.values())),
            key=lambda j: j.created_at,
            reverse=True,
        )
        return [dataclasses.replace(j) for j in jobs]

    def update(self, job_id: str, **changes: Any) -> Job | None:
        job = self._jobs.get(job_id)
        if job is None:
            return None
        _check_field_names(changes)
        frozen = IMMUTABLE_FIELDS.intersection(changes)
        if frozen:
            raise ValueError(f"Immutable job fields: {sorted(frozen)}")
        updated = dataclasses.replace(job, **changes)
        self._jobs[job_id] = updated
        return dataclasses.replace(updated)

    def delete(self, job_id: str) -> bool:
        return self._jobs.pop(job_id, None) is not None


def _check_field_names(fields: dict[str, Any]) -> None:
    unknown = set(fields) - _JOB_FIELDS
    if unknown:
        raise ValueError(f"Unknown job fields: {sorted(unknown)}")
