"""
Conversion job models.

A job wraps one uploaded dump through its lifecycle:
pending → analyzing → completed | failed.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from .conversion import ConversionIssue, ConversionStats


class JobStatus(str, Enum):
    """Lifecycle state of a conversion job."""

    PENDING = "pending"
    ANALYZING = "analyzing"
    COMPLETED = "completed"
    FAILED = "failed"


class ConversionJob(BaseModel):
    """A stored conversion job."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    file_name: str
    file_size: int
    original_content: str
    converted_content: Optional[str] = None
    status: JobStatus = JobStatus.PENDING
    created_at: datetime = Field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None
    error_message: Optional[str] = None


class JobStats(ConversionStats):
    """Conversion stats as persisted for a job, including the measured duration."""

    conversion_time_ms: int = 0


class JobCreatedResponse(BaseModel):
    """Response model for an accepted upload."""

    job_id: str
    file_name: str
    file_size: int


class AnalyzeResponse(BaseModel):
    """Response model for a finished analysis run."""

    status: JobStatus
    stats: JobStats


class JobDetailsResponse(BaseModel):
    """Response model for job polling."""

    job: ConversionJob
    issues: List[ConversionIssue] = Field(default_factory=list)
    stats: Optional[JobStats] = None


class JobDiffResponse(BaseModel):
    """Unified diff between the original and converted dump."""

    job_id: str
    diff: str
    changed_lines: int
