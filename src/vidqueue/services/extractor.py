"""yt-dlp process management."""

from __future__ import annotations

import asyncio
import codecs
import logging
import os
import signal
import subprocess
import sys
from collections.abc import AsyncIterator
from dataclasses import dataclass
from pathlib import Path

from vidqueue.errors import ExtractionFailure
from vidqueue.jobs.models import DownloadType
from vidqueue.services.output_parser import ParsedUpdate, parse_metadata_json

logger = logging.getLogger(__name__)

CHUNK_SIZE = 4096
KILL_TIMEOUT_S = 5.0

# Printed before the download starts, one value per line, in this order.
PRINT_FIELDS = ("title", "duration_string", "filesize_approx", "height")


@dataclass(frozen=True)
class OutputChunk:
    text: str


@dataclass(frozen=True)
class ErrorChunk:
    text: str


@dataclass(frozen=True)
class Exited:
    """Terminal event. ``returncode`` is None when the tool never launched."""

    returncode: int | None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.returncode == 0


ExtractionEvent = OutputChunk | ErrorChunk | Exited


class ExtractionProcess:
    """Handle on one running extraction.

    stdout and stderr are pumped by separate reader tasks into a single
    queue, so ``events()`` yields chunks in arrival order followed by exactly
    one ``Exited`` once both streams are drained.
    """

    def __init__(
        self,
        process: asyncio.subprocess.Process | None,
        launch_error: str | None = None,
    ) -> None:
        self._process = process
        self._queue: asyncio.Queue[ExtractionEvent] = asyncio.Queue()
        self._tasks: list[asyncio.Task] = []
        if process is None:
            self._queue.put_nowait(Exited(returncode=None, error=launch_error))
            return
        assert process.stdout is not None and process.stderr is not None
        readers = [
            asyncio.create_task(self._pump(process.stdout, OutputChunk)),
            asyncio.create_task(self._pump(process.stderr, ErrorChunk)),
        ]
        self._tasks = [*readers, asyncio.create_task(self._wait(readers))]

    async def events(self) -> AsyncIterator[ExtractionEvent]:
        while True:
            event = await self._queue.get()
            yield event
            if isinstance(event, Exited):
                return

    async def kill(self) -> None:
        """Terminate the process group if it is still running."""
        process = self._process
        if process is not None and process.returncode is None:
            logger.info("Terminating extractor (PID: %s)", process.pid)
            try:
                if sys.platform == "win32":
                    process.terminate()
                else:
                    os.killpg(os.getpgid(process.pid), signal.SIGTERM)
                await asyncio.wait_for(process.wait(), timeout=KILL_TIMEOUT_S)
            except (asyncio.TimeoutError, ProcessLookupError, OSError) as e:
                logger.warning("Graceful stop of PID %s failed: %s; killing", process.pid, e)
                try:
                    process.kill()
                except (ProcessLookupError, OSError):
                    pass  # already gone
        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def _pump(self, stream: asyncio.StreamReader, event_type: type) -> None:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            data = await stream.read(CHUNK_SIZE)
            if not data:
                break
            text = decoder.decode(data)
            if text:
                await self._queue.put(event_type(text))
        tail = decoder.decode(b"", final=True)
        if tail:
            await self._queue.put(event_type(tail))

    async def _wait(self, readers: list[asyncio.Task]) -> None:
        assert self._process is not None
        await asyncio.gather(*readers, return_exceptions=True)
        returncode = await self._process.wait()
        await self._queue.put(Exited(returncode=returncode))


class YtDlpInvoker:
    """Builds yt-dlp command lines and launches them."""

    def __init__(
        self,
        executable: str = "yt-dlp",
        video_max_height: int = 1080,
        fallback_height: int = 720,
        audio_format: str = "mp3",
        audio_quality: str = "192K",
    ) -> None:
        self.executable = executable
        self.video_max_height = video_max_height
        self.fallback_height = fallback_height
        self.audio_format = audio_format
        self.audio_quality = audio_quality

    def format_selector(self) -> str:
        """Video format chain: <=max height, then <=fallback height, then best."""
        parts = []
        for height in (self.video_max_height, self.fallback_height):
            parts.append(f"bestvideo[height<={height}]+bestaudio")
            parts.append(f"best[height<={height}]")
        parts.append("best")
        return "/".join(parts)

    def build_command(
        self,
        url: str,
        download_type: DownloadType,
        output_template: str | Path,
    ) -> list[str]:
        """Build the full yt-dlp command for one download."""
        command = [
            self.executable,
            "--newline",
            "--no-warnings",
            "--no-playlist",
            "--no-simulate",
            "--progress",
        ]
        for name in PRINT_FIELDS:
            command.extend(["--print", name])
        command.extend(["--output", str(output_template)])

        if DownloadType(download_type) == DownloadType.AUDIO:
            command.extend([
                "-f", "bestaudio/best",
                "--extract-audio",
                "--audio-format", self.audio_format,
                "--audio-quality", self.audio_quality,
            ])
        else:
            command.extend([
                "-f", self.format_selector(),
                "--merge-output-format", "mp4",
            ])
        command.extend(["--", url])
        return command

    async def start(
        self,
        url: str,
        download_type: DownloadType,
        output_template: str | Path,
    ) -> ExtractionProcess:
        """Launch a download; output arrives through the handle's events."""
        return await self.spawn(self.build_command(url, download_type, output_template))

    async def spawn(self, command: list[str]) -> ExtractionProcess:
        """Launch ``command``; a launch failure becomes an ``Exited`` event."""
        kwargs: dict = {}
        if sys.platform == "win32":
            kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP
        else:
            kwargs["start_new_session"] = True

        logger.debug("Running: %s", " ".join(command))
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                **kwargs,
            )
        except FileNotFoundError:
            return ExtractionProcess(None, launch_error=f"{command[0]} executable not found")
        except OSError as e:
            return ExtractionProcess(None, launch_error=f"Failed to launch {command[0]}: {e}")
        return ExtractionProcess(process)

    async def probe(self, url: str) -> ParsedUpdate:
        """Fetch title/duration/resolution without downloading.

        Raises:
            ExtractionFailure: If yt-dlp fails or prints no usable JSON.
        """
        command = [
            self.executable,
            "--dump-single-json",
            "--skip-download",
            "--no-warnings",
            "--no-playlist",
            "--",
            url,
        ]
        process = await self.spawn(command)
        stdout: list[str] = []
        stderr: list[str] = []
        exited = Exited(returncode=None)
        try:
            async for event in process.events():
                if isinstance(event, OutputChunk):
                    stdout.append(event.text)
                elif isinstance(event, ErrorChunk):
                    stderr.append(event.text)
                else:
                    exited = event
        finally:
            # Runs on cancellation too.
            await process.kill()

        if exited.returncode is None:
            raise ExtractionFailure(exited.error or f"Failed to launch {self.executable}")
        if not exited.ok:
            message = "".join(stderr).strip()
            raise ExtractionFailure(f"yt-dlp metadata probe failed: {message}")
        try:
            return parse_metadata_json("".join(stdout))
        except ValueError as e:
            raise ExtractionFailure(f"Unreadable metadata from yt-dlp: {e}") from e
