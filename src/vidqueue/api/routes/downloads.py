"""Download queue endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from vidqueue.api.deps import get_job_manager
from vidqueue.api.schemas import (
    BulkStartResponse,
    CreateDownloadRequest,
    DownloadResponse,
    MessageResponse,
    StatsResponse,
)
from vidqueue.errors import (
    NotFoundError,
    StateConflictError,
    StorageFailure,
    ValidationError,
)
from vidqueue.jobs.manager import JobManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/downloads", tags=["downloads"])


# ------------------------------------------------------------------
# GET - query jobs
# ------------------------------------------------------------------


@router.get("", response_model=list[DownloadResponse])
async def list_downloads(
    mgr: JobManager = Depends(get_job_manager),
) -> list[DownloadResponse]:
    try:
        jobs = mgr.list_jobs()
    except StorageFailure:
        raise HTTPException(status_code=500, detail="Failed to fetch downloads")
    return [DownloadResponse.from_job(j) for j in jobs]


@router.get("/stats", response_model=StatsResponse)
async def download_stats(
    mgr: JobManager = Depends(get_job_manager),
) -> StatsResponse:
    try:
        return StatsResponse.from_stats(mgr.stats())
    except StorageFailure:
        raise HTTPException(status_code=500, detail="Failed to fetch downloads")


@router.get("/{job_id}", response_model=DownloadResponse)
async def get_download(
    job_id: str,
    mgr: JobManager = Depends(get_job_manager),
) -> DownloadResponse:
    try:
        return DownloadResponse.from_job(mgr.get_job(job_id))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


# ------------------------------------------------------------------
# POST - create and start jobs
# ------------------------------------------------------------------


@router.post("", response_model=DownloadResponse)
async def create_download(
    req: CreateDownloadRequest,
    mgr: JobManager = Depends(get_job_manager),
) -> DownloadResponse:
    try:
        job = mgr.create_job(req.url, req.download_type, **req.details())
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return DownloadResponse.from_job(job)


@router.post("/bulk", response_model=BulkStartResponse)
async def start_all_downloads(
    mgr: JobManager = Depends(get_job_manager),
) -> BulkStartResponse:
    try:
        started = await mgr.start_all_pending()
    except StorageFailure:
        raise HTTPException(status_code=500, detail="Failed to start bulk download")
    return BulkStartResponse(message=f"Started {started} downloads", started=started)


@router.post("/{job_id}/start", response_model=MessageResponse)
async def start_download(
    job_id: str,
    mgr: JobManager = Depends(get_job_manager),
) -> MessageResponse:
    try:
        mgr.start_job(job_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StateConflictError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return MessageResponse(message="Download started")


# ------------------------------------------------------------------
# DELETE
# ------------------------------------------------------------------


@router.delete("/{job_id}", response_model=MessageResponse)
async def delete_download(
    job_id: str,
    mgr: JobManager = Depends(get_job_manager),
) -> MessageResponse:
    try:
        await mgr.delete_job(job_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return MessageResponse(message="Download item deleted")
