"""Serving finished downloads."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse

from vidqueue.api.deps import get_job_manager
from vidqueue.errors import NotFoundError
from vidqueue.jobs.manager import JobManager

router = APIRouter(tags=["files"])


@router.get("/downloads/{filename}")
async def download_file(
    filename: str,
    mgr: JobManager = Depends(get_job_manager),
) -> FileResponse:
    try:
        path = mgr.artifact_path(filename)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="File not found")
    return FileResponse(path=path, filename=path.name)
