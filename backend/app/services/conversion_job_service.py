"""
Conversion job orchestration.

Ties uploads, the job store and the conversion engine together:
pending → analyzing → completed | failed.
"""

import asyncio
import difflib
import logging
import time
from datetime import datetime
from typing import Optional, Tuple

from ..models.job import ConversionJob, JobDetailsResponse, JobDiffResponse, JobStats, JobStatus
from .conversion import ConversionEngine
from .job_store import ConversionJobStore, get_job_store
from .upload_service import SqlUploadService, converted_file_name

logger = logging.getLogger(__name__)


class JobNotFoundError(LookupError):
    """Raised when a job id is unknown."""


class JobConflictError(RuntimeError):
    """Raised when a job is already being analyzed."""


class JobNotReadyError(RuntimeError):
    """Raised when a job has no converted content yet."""


class JobAnalysisError(RuntimeError):
    """Raised when the conversion of a job failed unexpectedly (the job is marked failed)."""


class ConversionJobService:
    """Service for creating, analyzing and serving conversion jobs."""

    def __init__(
        self,
        store: Optional[ConversionJobStore] = None,
        engine: Optional[ConversionEngine] = None,
        upload_service: Optional[SqlUploadService] = None,
    ):
        self.store = store or get_job_store()
        self.engine = engine or ConversionEngine()
        self.upload_service = upload_service or SqlUploadService()

    def create_job(self, file_name: str, payload: bytes) -> ConversionJob:
        """Validate an uploaded dump and store it as a pending job. Raises UploadError."""
        safe_name, sql_text = self.upload_service.read_upload(file_name, payload)
        return self.store.create_job(file_name=safe_name, file_size=len(payload), original_content=sql_text)

    def _require_job(self, job_id: str) -> ConversionJob:
        job = self.store.get_job(job_id)
        if job is None:
            raise JobNotFoundError(f"Conversion job {job_id} not found")
        return job

    async def analyze(self, job_id: str) -> JobStats:
        """
        Run the engine once over the job's original content and persist the result.

        The engine runs in a worker thread so large dumps do not block the event loop.
        """
        self._require_job(job_id)
        job = self.store.begin_analysis(job_id)
        if job is None:
            raise JobConflictError(f"Conversion job {job_id} is already being analyzed")

        logger.info(f"🔄 Analyzing job {job_id} ({job.file_name}, {job.file_size} bytes)")
        try:
            loop = asyncio.get_running_loop()
            started = time.perf_counter()
            result = await loop.run_in_executor(None, self.engine.convert, job.original_content)
            elapsed_ms = int((time.perf_counter() - started) * 1000)

            stats = JobStats(**result.stats.model_dump(), conversion_time_ms=elapsed_ms)
            self.store.replace_issues(job_id, result.issues)
            self.store.set_stats(job_id, stats)
            self.store.update_job(
                job_id,
                status=JobStatus.COMPLETED,
                converted_content=result.converted_sql,
                completed_at=datetime.now(),
            )
        except Exception as e:
            logger.error(f"❌ Analysis of job {job_id} failed: {e}")
            self.store.replace_issues(job_id, [])
            self.store.set_stats(job_id, None)
            self.store.update_job(
                job_id,
                status=JobStatus.FAILED,
                converted_content=None,
                completed_at=datetime.now(),
                error_message=str(e),
            )
            raise JobAnalysisError(f"Failed to analyze conversion job {job_id}") from e

        logger.info(
            f"✅ Job {job_id} completed in {elapsed_ms} ms: {stats.total_issues} issues, "
            f"{stats.errors_count} errors, {stats.warnings_count} warnings"
        )
        return stats

    def get_details(self, job_id: str) -> JobDetailsResponse:
        job = self._require_job(job_id)
        return JobDetailsResponse(
            job=job,
            issues=self.store.get_issues(job_id),
            stats=self.store.get_stats(job_id),
        )

    def get_download(self, job_id: str) -> Tuple[str, str]:
        """
        Get the converted dump of a job.

        Returns:
            (download_file_name, converted_sql)
        """
        job = self._require_job(job_id)
        if job.converted_content is None:
            raise JobNotReadyError(f"Converted file for job {job_id} not found")
        return converted_file_name(job.file_name), job.converted_content

    def get_diff(self, job_id: str, context_lines: int = 3) -> JobDiffResponse:
        """Unified diff between the original and the converted dump."""
        job = self._require_job(job_id)
        if job.converted_content is None:
            raise JobNotReadyError(f"Conversion job {job_id} has not been converted yet")

        diff_lines = list(
            difflib.unified_diff(
                job.original_content.splitlines(keepends=True),
                job.converted_content.splitlines(keepends=True),
                fromfile=job.file_name,
                tofile=converted_file_name(job.file_name),
                n=context_lines,
            )
        )
        # The first two lines are the `---` / `+++` file headers.
        changed = sum(1 for line in diff_lines[2:] if line[:1] in "+-")
        return JobDiffResponse(job_id=job_id, diff="".join(diff_lines), changed_lines=changed)
