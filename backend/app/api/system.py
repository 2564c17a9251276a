"""
System information API endpoints.
"""

from fastapi import APIRouter
from pydantic import BaseModel

from .._version import __version__, __release_date__
from ..config import config
from ..services.conversion import DEFAULT_RULES

router = APIRouter()


class VersionResponse(BaseModel):
    """Response model for version information."""
    version: str
    release_date: str


class LimitsResponse(BaseModel):
    """Response model for the active upload and conversion settings."""
    max_upload_mb: int
    ddl_context_window: int
    wide_varchar_threshold: int
    rule_count: int


@router.get("/version", response_model=VersionResponse)
async def get_version():
    """
    Get the current converter version and release date.

    Returns:
        VersionResponse: Current version information including release date
    """
    return VersionResponse(version=__version__, release_date=__release_date__)


@router.get("/limits", response_model=LimitsResponse)
async def get_limits():
    """Get the upload ceiling and engine tunables in effect."""
    options = config.get_conversion_options()
    return LimitsResponse(
        max_upload_mb=config.get_max_upload_mb(),
        ddl_context_window=options.ddl_context_window,
        wide_varchar_threshold=options.wide_varchar_threshold,
        rule_count=len(DEFAULT_RULES),
    )
