"""Tests for the in-memory job store."""

import pytest

from vidqueue.jobs.models import DownloadType, JobStatus
from vidqueue.jobs.store import InMemoryJobStore

URL = "https://fb.watch/abc/"


@pytest.fixture
def store() -> InMemoryJobStore:
    return InMemoryJobStore()


class TestCreate:
    def test_defaults(self, store: InMemoryJobStore) -> None:
        job = store.create(url=URL)
        assert job.status == JobStatus.PENDING
        assert job.progress == 0
        assert job.download_type == DownloadType.VIDEO
        assert job.title is None
        assert job.file_name is None
        assert job.id

    def test_ids_are_unique_and_assigned(self, store: InMemoryJobStore) -> None:
        a = store.create(url=URL, id="chosen")
        b = store.create(url=URL)
        assert a.id != "chosen"
        assert a.id != b.id

    def test_unknown_field_rejected(self, store: InMemoryJobStore) -> None:
        with pytest.raises(ValueError):
            store.create(url=URL, colour="red")


class TestQueries:
    def test_get_missing(self, store: InMemoryJobStore) -> None:
        assert store.get("nope") is None

    def test_list_newest_first(self, store: InMemoryJobStore) -> None:
        first = store.create(url=URL)
        second = store.create(url=URL)
        third = store.create(url=URL)
        assert [j.id for j in store.list_all()] == [third.id, second.id, first.id]

    def test_returned_jobs_are_copies(self, store: InMemoryJobStore) -> None:
        job = store.create(url=URL)
        job.title = "mutated"
        assert store.get(job.id).title is None


class TestUpdate:
    def test_shallow_merge(self, store: InMemoryJobStore) -> None:
        job = store.create(url=URL, title="Keep me")
        updated = store.update(job.id, progress=40, download_speed="1MiB/s")
        assert updated.progress == 40
        assert updated.download_speed == "1MiB/s"
        assert updated.title == "Keep me"
        assert store.get(job.id).progress == 40

    def test_update_missing(self, store: InMemoryJobStore) -> None:
        assert store.update("nope", progress=1) is None

    def test_immutable_fields(self, store: InMemoryJobStore) -> None:
        job = store.create(url=URL)
        with pytest.raises(ValueError):
            store.update(job.id, url="https://youtu.be/other")
        with pytest.raises(ValueError):
            store.update(job.id, id="other")

    def test_update_keeps_list_order(self, store: InMemoryJobStore) -> None:
        first = store.create(url=URL)
        second = store.create(url=URL)
        store.update(first.id, progress=5)
        assert [j.id for j in store.list_all()] == [second.id, first.id]


class TestDelete:
    def test_delete(self, store: InMemoryJobStore) -> None:
        job = store.create(url=URL)
        assert store.delete(job.id) is True
        assert store.get(job.id) is None
        assert store.delete(job.id) is False
        assert store.list_all() == []
