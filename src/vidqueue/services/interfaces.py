"""Service interfaces (Protocols) for vidqueue.

These protocols define the contracts that service implementations must follow.
The job manager depends only on them, so tests can script extraction runs
without a real yt-dlp binary.
"""

from collections.abc import AsyncIterator
from pathlib import Path
from typing import Protocol

from vidqueue.jobs.models import DownloadType
from vidqueue.services.extractor import ExtractionEvent
from vidqueue.services.output_parser import ParsedUpdate


class IExtractionProcess(Protocol):
    """A running extraction."""

    def events(self) -> AsyncIterator[ExtractionEvent]:
        """Yield output/error chunks in order, ending with one Exited event."""
        ...

    async def kill(self) -> None:
        """Stop the process if it is still running."""
        ...


class IExtractionInvoker(Protocol):
    """Interface for the external media-extraction tool."""

    async def start(
        self,
        url: str,
        download_type: DownloadType,
        output_template: str | Path,
    ) -> IExtractionProcess:
        """Launch a download.

        Args:
            url: Source URL
            download_type: Video or audio extraction
            output_template: yt-dlp output template (path with ``%(ext)s``)

        Returns:
            Handle whose events drive the job lifecycle
        """
        ...

    async def probe(self, url: str) -> ParsedUpdate:
        """Fetch metadata without downloading.

        Args:
            url: Source URL

        Returns:
            ParsedUpdate with title, duration, quality and size when known
        """
        ...
