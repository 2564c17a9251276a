from __future__ import annotations

import pytest

from backend.app.services.job_store import ConversionJobStore


@pytest.fixture
def job_store():
    """A fresh ConversionJobStore (the singleton is reset around each test)."""
    ConversionJobStore._instance = None
    store = ConversionJobStore()
    yield store
    ConversionJobStore._instance = None
