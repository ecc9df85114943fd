"""Health check endpoint."""

import shutil

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from vidqueue import __version__
from vidqueue.api.deps import get_job_manager
from vidqueue.config import settings
from vidqueue.jobs.manager import JobManager

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    extractor_available: bool
    active_downloads: int


@router.get("/health", response_model=HealthResponse)
async def health_check(mgr: JobManager = Depends(get_job_manager)) -> HealthResponse:
    """Return the health status of the application."""
    return HealthResponse(
        status="healthy",
        version=__version__,
        extractor_available=shutil.which(settings.ytdlp_path) is not None,
        active_downloads=mgr.stats().downloading,
    )
