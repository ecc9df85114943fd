"""Shared fixtures: scripted extraction runs instead of a real yt-dlp."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

import pytest

from vidqueue.jobs.manager import JobManager
from vidqueue.jobs.models import DownloadType
from vidqueue.jobs.store import InMemoryJobStore
from vidqueue.services.output_parser import ParsedUpdate


def artifact_writer(template: Path, ext: str = "mp4") -> Callable[[], None]:
    """Step that writes the file yt-dlp would produce for ``template``."""

    def write() -> None:
        Path(str(template).replace("%(ext)s", ext)).write_bytes(b"media")

    return write


class ScriptedProcess:
    """Yields scripted events; callable steps run for their side effect."""

    def __init__(self, steps: Iterable[Any], hang: bool = False) -> None:
        self._steps = list(steps)
        self._hang = hang
        self.killed = False

    async def events(self):
        for step in self._steps:
            await asyncio.sleep(0)
            if callable(step):
                step()
                continue
            yield step
        if self._hang:
            await asyncio.Event().wait()

    async def kill(self) -> None:
        self.killed = True


class FakeInvoker:
    """Records starts and replays a script per launch."""

    def __init__(
        self,
        script: Callable[[str, Path], Iterable[Any]] | None = None,
        hang: bool = False,
        probe_result: ParsedUpdate | Exception | None = None,
        probe_hang: bool = False,
    ) -> None:
        self.script = script or (lambda url, template: [])
        self.hang = hang
        self.probe_result = probe_result
        self.probe_hang = probe_hang
        self.started: list[tuple[str, DownloadType, Path]] = []
        self.processes: list[ScriptedProcess] = []
        self.probes: list[ScriptedProcess] = []

    async def start(self, url, download_type, output_template) -> ScriptedProcess:
        template = Path(output_template)
        self.started.append((url, download_type, template))
        process = ScriptedProcess(self.script(url, template), hang=self.hang)
        self.processes.append(process)
        return process

    async def probe(self, url: str) -> ParsedUpdate:
        if self.probe_hang:
            process = ScriptedProcess([], hang=True)
            self.probes.append(process)
            try:
                async for _ in process.events():
                    pass
            finally:
                await process.kill()
        if isinstance(self.probe_result, Exception):
            raise self.probe_result
        return self.probe_result or ParsedUpdate()


@pytest.fixture
def download_dir(tmp_path: Path) -> Path:
    path = tmp_path / "downloads"
    path.mkdir()
    return path


@pytest.fixture
def make_manager(download_dir: Path):
    def factory(invoker: FakeInvoker, **kwargs) -> JobManager:
        return JobManager(
            store=InMemoryJobStore(),
            invoker=invoker,
            download_dir=download_dir,
            **kwargs,
        )

    return factory
