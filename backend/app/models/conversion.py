"""
Conversion models (MySQL → MariaDB 10.3 rewrite results).

These models are the contract between the conversion engine and everything that
consumes it (job store, HTTP API, CLI). They are intentionally small and frozen:
an issue is appended once and never mutated afterwards.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class IssueType(str, Enum):
    """Severity tier of a conversion issue (not a success/failure flag)."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class IssueCategory(str, Enum):
    """Why a rule fired."""

    SYNTAX = "syntax"
    COMPATIBILITY = "compatibility"
    OPTIMIZATION = "optimization"


class ConversionIssue(BaseModel):
    """A single change applied (or incompatibility detected) by the engine."""

    model_config = ConfigDict(frozen=True)

    issue_type: IssueType
    category: IssueCategory
    description: str

    # 1-based line in the *original* text (first occurrence of the matched snippet)
    line_number: Optional[int] = None

    original_text: Optional[str] = None
    converted_text: Optional[str] = None
    auto_fixed: bool = False

    # Stable machine-readable identity of the rule that produced the issue (e.g. MDB101)
    rule_id: Optional[str] = None


class ConversionStats(BaseModel):
    """Aggregate counters over one conversion run."""

    model_config = ConfigDict(frozen=True)

    total_issues: int = 0
    auto_fixed: int = 0
    warnings_count: int = 0
    errors_count: int = 0
    # Counts `info` issues, whatever their category.
    optimizations_count: int = 0

    @classmethod
    def from_issues(cls, issues: Iterable[ConversionIssue]) -> "ConversionStats":
        issues = list(issues)
        return cls(
            total_issues=len(issues),
            auto_fixed=sum(1 for i in issues if i.auto_fixed),
            warnings_count=sum(1 for i in issues if i.issue_type == IssueType.WARNING),
            errors_count=sum(1 for i in issues if i.issue_type == IssueType.ERROR),
            optimizations_count=sum(1 for i in issues if i.issue_type == IssueType.INFO),
        )


class ConversionResult(BaseModel):
    """The engine's sole output."""

    model_config = ConfigDict(frozen=True)

    converted_sql: str
    issues: List[ConversionIssue] = Field(default_factory=list)
    stats: ConversionStats = Field(default_factory=ConversionStats)

    @property
    def has_errors(self) -> bool:
        return self.stats.errors_count > 0
