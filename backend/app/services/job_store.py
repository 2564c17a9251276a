"""
In-memory store for conversion jobs, their issues and their stats.

A single lock guards all state. `begin_analysis` is the only way into the
`analyzing` state and refuses a job that is already there, so at most one
analysis writes to a job at a time.
"""

import logging
import threading
from typing import Dict, Iterable, List, Optional

from ..models.conversion import ConversionIssue
from ..models.job import ConversionJob, JobStats, JobStatus

logger = logging.getLogger(__name__)


class ConversionJobStore:
    """Thread-safe in-memory job store keyed by job id."""

    _instance: Optional["ConversionJobStore"] = None
    _instance_lock = threading.Lock()

    def __new__(cls) -> "ConversionJobStore":
        """Singleton pattern for the job store."""
        if cls._instance is None:
            with cls._instance_lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self._lock = threading.Lock()
        self._jobs: Dict[str, ConversionJob] = {}
        self._issues: Dict[str, List[ConversionIssue]] = {}
        self._stats: Dict[str, JobStats] = {}
        self._initialized = True

    def create_job(self, file_name: str, file_size: int, original_content: str) -> ConversionJob:
        job = ConversionJob(file_name=file_name, file_size=file_size, original_content=original_content)
        with self._lock:
            self._jobs[job.id] = job
        logger.info(f"📥 Created conversion job {job.id} for {file_name} ({file_size} bytes)")
        return job.model_copy()

    def get_job(self, job_id: str) -> Optional[ConversionJob]:
        with self._lock:
            job = self._jobs.get(job_id)
            return job.model_copy() if job else None

    def update_job(self, job_id: str, **changes) -> Optional[ConversionJob]:
        """Apply field changes to a job. Returns the updated job, or None if unknown."""
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return None
            updated = job.model_copy(update=changes)
            self._jobs[job_id] = updated
            return updated.model_copy()

    def begin_analysis(self, job_id: str) -> Optional[ConversionJob]:
        """
        Atomically move a job to `analyzing`.

        Returns None if the job is unknown or already being analyzed.
        """
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.status == JobStatus.ANALYZING:
                return None
            updated = job.model_copy(
                update={
                    "status": JobStatus.ANALYZING,
                    "converted_content": None,
                    "completed_at": None,
                    "error_message": None,
                }
            )
            self._jobs[job_id] = updated
            return updated.model_copy()

    def replace_issues(self, job_id: str, issues: Iterable[ConversionIssue]) -> None:
        with self._lock:
            self._issues[job_id] = list(issues)

    def get_issues(self, job_id: str) -> List[ConversionIssue]:
        with self._lock:
            return list(self._issues.get(job_id, []))

    def set_stats(self, job_id: str, stats: Optional[JobStats]) -> None:
        with self._lock:
            if stats is None:
                self._stats.pop(job_id, None)
            else:
                self._stats[job_id] = stats

    def get_stats(self, job_id: str) -> Optional[JobStats]:
        with self._lock:
            return self._stats.get(job_id)

    def delete_job(self, job_id: str) -> bool:
        with self._lock:
            self._issues.pop(job_id, None)
            self._stats.pop(job_id, None)
            removed = self._jobs.pop(job_id, None) is not None
        if removed:
            logger.info(f"🗑️ Deleted conversion job {job_id}")
        return removed

    def clear(self) -> None:
        """Drop every job (used by tests and on shutdown)."""
        with self._lock:
            self._jobs.clear()
            self._issues.clear()
            self._stats.clear()


# Singleton accessor
def get_job_store() -> ConversionJobStore:
    """Get the global ConversionJobStore instance."""
    return ConversionJobStore()
