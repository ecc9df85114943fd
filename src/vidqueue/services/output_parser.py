"""Parser for yt-dlp's streamed text output.

yt-dlp is invoked with ``--print`` for title, duration_string,
filesize_approx and height, so the first four lines of stdout carry that
metadata in order. A blank line is an empty value and a title may itself
start with a bracket (``[4K] Drone Footage``); only lines tagged by a known
yt-dlp component are skipped. Everything after is tool chatter, mostly
``[download]`` progress lines such as::

    [download]  42.5% of ~ 10.00MiB at 1.20MiB/s ETA 00:05

Chunk boundaries do not follow line boundaries. Complete lines are parsed
as they arrive and a trailing partial line is carried into the next chunk.
A carried fragment is parsed provisionally for progress fields only, and
is promoted to a complete line when the next chunk opens with a yt-dlp
tool tag such as ``[download]``.
"""

from __future__ import annotations

import dataclasses
import json
import math
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

_PERCENT_RE = re.compile(r"(\d+(?:\.\d+)?)%")
_SPEED_RE = re.compile(r"\d+(?:\.\d+)?[A-Za-z]+/s")
_SIZE_RE = re.compile(r"\d+(?:\.\d+)?[KMGT]iB(?!/s)")
_LINE_SPLIT_RE = re.compile(r"\r\n|\r|\n")

_METADATA_SLOTS = ("title", "duration", "file_size", "quality")
_MISSING_VALUES = {"", "NA", "N/A", "None", "null"}
_TOOL_LINE_RE = re.compile(
    r"^\[(?:download|info|debug|generic|youtube|facebook|instagram|"
    r"Merger|ExtractAudio|Fixup\w*|Video\w*|Metadata|MoveFiles)(?::[^\]]*)?\]",
    re.IGNORECASE,
)


@dataclass
class ParsedUpdate:
    """Fields recovered from one chunk of output. None means "no news"."""

    progress: int | None = None
    download_speed: str | None = None
    file_size: str | None = None
    title: str | None = None
    duration: str | None = None
    quality: str | None = None

    def fields(self) -> dict[str, Any]:
        """Non-empty fields, keyed by job field name."""
        return {
            f.name: getattr(self, f.name)
            for f in dataclasses.fields(self)
            if getattr(self, f.name) not in (None, "")
        }

    def merge(self, other: ParsedUpdate) -> None:
        """Fill fields still unset here from ``other`` (first match wins)."""
        for name, value in other.fields().items():
            if getattr(self, name) is None:
                setattr(self, name, value)

    def without_known(self, known: Mapping[str, Any] | None) -> ParsedUpdate:
        """Drop fields whose value equals the already-known one."""
        if not known:
            return self
        kept = {k: v for k, v in self.fields().items() if known.get(k) != v}
        return ParsedUpdate(**kept)

    def __bool__(self) -> bool:
        return bool(self.fields())


class OutputParser:
    """Stateful line parser; use one instance per extraction run."""

    def __init__(self) -> None:
        self._fragment = ""
        self._metadata_seen = 0
        self._after_cr = False

    @property
    def pending_fragment(self) -> str:
        return self._fragment

    def feed(self, chunk: str, known: Mapping[str, Any] | None = None) -> ParsedUpdate:
        """Parse one chunk of stdout text.

        Args:
            chunk: Raw text as read from the process, possibly mid-line.
            known: Current job fields; values equal to these are omitted.

        Returns:
            ParsedUpdate with the first match per field within this chunk.
        """
        # A "\r\n" split across chunks is one line break, not a blank line.
        if self._after_cr and chunk.startswith("\n"):
            chunk = chunk[1:]
        self._after_cr = chunk.endswith("\r")
        if self._fragment and _TOOL_LINE_RE.match(chunk):
            self._fragment += "\n"
        pieces = _LINE_SPLIT_RE.split(self._fragment + chunk)
        self._fragment = pieces.pop()

        update = ParsedUpdate()
        for line in pieces:
            update.merge(self._parse_line(line))
        if self._fragment and self._is_progress(self._fragment.strip()):
            update.merge(_parse_progress_line(self._fragment, partial=True))
        return update.without_known(known)

    def flush(self, known: Mapping[str, Any] | None = None) -> ParsedUpdate:
        """Parse the carried partial line at end of stream."""
        fragment, self._fragment = self._fragment, ""
        if not fragment:
            return ParsedUpdate()
        return self._parse_line(fragment).without_known(known)

    def _is_progress(self, line: str) -> bool:
        # Untagged lines are metadata until all slots are filled, even with a "%".
        if not _TOOL_LINE_RE.match(line) and self._metadata_seen < len(_METADATA_SLOTS):
            return False
        return _PERCENT_RE.search(line) is not None

    def _parse_line(self, raw: str) -> ParsedUpdate:
        line = raw.strip()
        if self._is_progress(line):
            return _parse_progress_line(line)
        if _TOOL_LINE_RE.match(line) or self._metadata_seen >= len(_METADATA_SLOTS):
            return ParsedUpdate()

        slot = _METADATA_SLOTS[self._metadata_seen]
        self._metadata_seen += 1
        if line in _MISSING_VALUES:
            return ParsedUpdate()
        if slot == "file_size":
            return ParsedUpdate(file_size=_parse_byte_count(line))
        if slot == "quality":
            return ParsedUpdate(quality=_parse_height(line))
        return ParsedUpdate(**{slot: line})


def _parse_progress_line(line: str, partial: bool = False) -> ParsedUpdate:
    percent = _PERCENT_RE.search(line)
    if percent is None:
        return ParsedUpdate()
    update = ParsedUpdate(progress=round_percent(float(percent.group(1))))
    speed = _SPEED_RE.search(line)
    if speed:
        update.download_speed = speed.group(0)
    size = _SIZE_RE.search(line)
    # A size token touching the end of a fragment may be a cut-off speed.
    if size and not (partial and size.end() == len(line)):
        update.file_size = size.group(0)
    return update


def round_percent(value: float) -> int:
    """Round half up and clamp to 0..100."""
    return max(0, min(100, int(math.floor(value + 0.5))))


def format_megabytes(n_bytes: float) -> str:
    return f"{n_bytes / (1024 * 1024):.1f} MB"


def format_duration(seconds: float) -> str:
    """Render seconds like yt-dlp's duration_string (``0:45``, ``1:02:05``)."""
    total = int(round(seconds))
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def _parse_byte_count(text: str) -> str | None:
    try:
        n_bytes = float(text)
    except ValueError:
        return None
    if n_bytes <= 0 or math.isnan(n_bytes) or math.isinf(n_bytes):
        return None
    return format_megabytes(n_bytes)


def _parse_height(text: Any) -> str | None:
    value = str(text).strip().lower()
    if value.endswith("p"):
        value = value[:-1]
    try:
        height = int(float(value))
    except ValueError:
        return None
    return f"{height}p" if height > 0 else None


def parse_metadata_json(text: str) -> ParsedUpdate:
    """Parse the single JSON object printed by ``--dump-single-json``.

    Raises:
        ValueError: If the text is not a JSON object.
    """
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError("metadata dump is not a JSON object")

    update = ParsedUpdate()
    title = data.get("title")
    if isinstance(title, str) and title.strip():
        update.title = title.strip()

    duration = data.get("duration_string")
    if isinstance(duration, str) and duration.strip():
        update.duration = duration.strip()
    elif isinstance(data.get("duration"), (int, float)):
        update.duration = format_duration(data["duration"])

    size = data.get("filesize") or data.get("filesize_approx")
    if isinstance(size, (int, float)):
        update.file_size = _parse_byte_count(str(size))

    if data.get("height") is not None:
        update.quality = _parse_height(data["height"])
    return update
