"""vidqueue command-line interface with subcommands.

Usage:
    vidqueue-cli serve [--host 0.0.0.0] [--port 8000]
    vidqueue-cli fetch <url> [--audio] [-d downloads]
    vidqueue-cli probe <url>
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from vidqueue.api.deps import build_job_manager
from vidqueue.config import settings
from vidqueue.errors import ExtractionFailure, ValidationError
from vidqueue.jobs.models import DownloadType, JobStatus
from vidqueue.services.extractor import YtDlpInvoker

POLL_INTERVAL_S = 0.5


def render_progress(progress: int, status: str, width: int = 30) -> str:
    filled = int(width * progress / 100)
    bar = "=" * filled + "-" * (width - filled)
    return f"\r  [{bar}] {progress:3d}% {status}"


# --- fetch subcommand ---

async def cmd_fetch(args: argparse.Namespace) -> int:
    """Download one URL in-process and report progress."""
    if args.output_dir:
        settings.download_dir = Path(args.output_dir)
    settings.ensure_directories()
    manager = build_job_manager(settings)

    download_type = DownloadType.AUDIO if args.audio else DownloadType.VIDEO
    try:
        job = manager.create_job(args.url, download_type)
    except ValidationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"Downloading {download_type.value}: {job.url}")
    manager.start_job(job.id)
    try:
        while True:
            job = manager.get_job(job.id)
            status = job.download_speed or ""
            print(render_progress(job.progress, status), end="", flush=True)
            if job.status in (JobStatus.READY, JobStatus.FAILED):
                break
            await asyncio.sleep(POLL_INTERVAL_S)
    finally:
        await manager.shutdown()
    print()  # newline after progress bar

    if job.status == JobStatus.FAILED:
        print(f"Failed: {job.error_message}", file=sys.stderr)
        return 1

    if job.title:
        print(f"  Title:    {job.title}")
    if job.duration:
        print(f"  Duration: {job.duration}")
    if job.quality:
        print(f"  Quality:  {job.quality}")
    print(f"Saved: {manager.download_dir / job.file_name}")
    return 0


# --- probe subcommand ---

async def cmd_probe(args: argparse.Namespace) -> int:
    """Print metadata for a URL without downloading."""
    invoker = YtDlpInvoker(executable=settings.ytdlp_path)
    try:
        metadata = await invoker.probe(args.url)
    except ExtractionFailure as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print(json.dumps(metadata.fields(), ensure_ascii=False, indent=2))
    return 0


# --- Main CLI ---

def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="vidqueue-cli",
        description="vidqueue - social media video/audio downloader",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Show debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # --- serve ---
    p_serve = subparsers.add_parser("serve", help="Run the HTTP API")
    p_serve.add_argument("--host", default=settings.host, help=f"Bind address (default: {settings.host})")
    p_serve.add_argument("--port", type=int, default=settings.port, help=f"Port (default: {settings.port})")

    # --- fetch ---
    p_fetch = subparsers.add_parser("fetch", help="Download a single URL")
    p_fetch.add_argument("url", type=str, help="Facebook, Instagram or YouTube URL")
    p_fetch.add_argument("--audio", action="store_true", help="Extract audio only")
    p_fetch.add_argument("-d", "--output-dir", type=str, help="Output directory")

    # --- probe ---
    p_probe = subparsers.add_parser("probe", help="Show metadata without downloading")
    p_probe.add_argument("url", type=str, help="Source URL")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    # Dispatch
    if args.command == "serve":
        import uvicorn

        uvicorn.run("vidqueue.main:app", host=args.host, port=args.port)
    elif args.command == "fetch":
        sys.exit(asyncio.run(cmd_fetch(args)))
    elif args.command == "probe":
        sys.exit(asyncio.run(cmd_probe(args)))


if __name__ == "__main__":
    main()
