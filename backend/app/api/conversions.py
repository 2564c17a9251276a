"""
API endpoints for MySQL to MariaDB conversion jobs.

Upload a dump, trigger the analysis, poll the job, then download the converted
file (or inspect its diff).
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from fastapi.responses import Response

from ..config import config
from ..models.job import AnalyzeResponse, JobCreatedResponse, JobDetailsResponse, JobDiffResponse, JobStatus
from ..services.conversion import ConversionEngine
from ..services.conversion_job_service import (
    ConversionJobService,
    JobAnalysisError,
    JobConflictError,
    JobNotFoundError,
    JobNotReadyError,
)
from ..services.upload_service import SqlUploadService, UploadError, UploadLimits, UploadTooLargeError

logger = logging.getLogger(__name__)

router = APIRouter()

_service: Optional[ConversionJobService] = None


def get_conversion_job_service() -> ConversionJobService:
    """Get the process-wide job service, built from the current configuration."""
    global _service
    if _service is None:
        _service = ConversionJobService(
            engine=ConversionEngine(config.get_conversion_options()),
            upload_service=SqlUploadService(limits=UploadLimits(max_upload_bytes=config.get_max_upload_bytes())),
        )
    return _service


@router.post("", response_model=JobCreatedResponse)
async def create_conversion_job(
    file: UploadFile = File(...),
    service: ConversionJobService = Depends(get_conversion_job_service),
):
    """Upload a MySQL dump and create a pending conversion job."""
    content = await file.read()
    try:
        job = service.create_job(file.filename or "", content)
    except UploadTooLargeError as e:
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=str(e))
    except UploadError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return JobCreatedResponse(job_id=job.id, file_name=job.file_name, file_size=job.file_size)


@router.post("/{job_id}/analyze", response_model=AnalyzeResponse)
async def analyze_conversion_job(
    job_id: str,
    service: ConversionJobService = Depends(get_conversion_job_service),
):
    """Run the conversion engine on a job and persist its issues and stats."""
    try:
        stats = await service.analyze(job_id)
    except JobNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except JobConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except JobAnalysisError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    return AnalyzeResponse(status=JobStatus.COMPLETED, stats=stats)


@router.get("/{job_id}", response_model=JobDetailsResponse)
async def get_conversion_job(
    job_id: str,
    service: ConversionJobService = Depends(get_conversion_job_service),
):
    """Get a job with its issues and stats."""
    try:
        return service.get_details(job_id)
    except JobNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("/{job_id}/download")
async def download_converted_sql(
    job_id: str,
    service: ConversionJobService = Depends(get_conversion_job_service),
):
    """Download the converted dump as an attachment."""
    try:
        file_name, content = service.get_download(job_id)
    except (JobNotFoundError, JobNotReadyError) as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    return Response(
        content=content,
        media_type="application/sql",
        headers={"Content-Disposition": f'attachment; filename="{file_name}"'},
    )


@router.get("/{job_id}/diff", response_model=JobDiffResponse)
async def get_conversion_diff(
    job_id: str,
    service: ConversionJobService = Depends(get_conversion_job_service),
):
    """Unified diff between the uploaded and the converted dump."""
    try:
        return service.get_diff(job_id)
    except JobNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except JobNotReadyError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
