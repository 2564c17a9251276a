"""Data models for the MySQL to MariaDB converter."""

from .conversion import ConversionIssue, ConversionResult, ConversionStats, IssueCategory, IssueType
from .job import ConversionJob, JobStats, JobStatus

__all__ = [
    "ConversionIssue",
    "ConversionResult",
    "ConversionStats",
    "IssueCategory",
    "IssueType",
    "ConversionJob",
    "JobStats",
    "JobStatus",
]
