"""
FastAPI main application for the MariaDB converter.

This application provides a REST API for uploading MySQL dumps, converting them to
MariaDB 10.3 compatible SQL and downloading the result with its issue report.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import time
import traceback
import logging

from .api import conversions, system
from .config import config
from .services.conversion import DEFAULT_RULES
from ._version import __version__

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    options = config.get_conversion_options()
    logger.info(
        f"🚀 MariaDB converter {__version__}: {len(DEFAULT_RULES)} rules, "
        f"upload limit {config.get_max_upload_mb()} MB, "
        f"DDL window {options.ddl_context_window}, wide VARCHAR > {options.wide_varchar_threshold}"
    )
    yield


app = FastAPI(
    title="MariaDB Converter API",
    description="API for converting MySQL dumps to MariaDB 10.3 compatible SQL",
    version=__version__,
    lifespan=lifespan,
)

@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info(f"🌐 {request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.0f} ms)")
    return response

# Anything the routers did not map to an HTTPException ends up here
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"🚨 Unhandled error in {request.method} {request.url.path}: {exc}")
    logger.error(f"🚨 Stack trace:\n{traceback.format_exc()}")

    return JSONResponse(
        status_code=500,
        content={
            "detail": f"{type(exc).__name__}: {exc}",
            "error_type": type(exc).__name__,
            "request_method": request.method,
            "request_url": str(request.url),
        },
    )

# Browsers reject credentials with a wildcard origin
cors_origins = config.get_cors_origins()
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials="*" not in cors_origins,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

app.include_router(conversions.router, prefix="/api/convert", tags=["conversions"])
app.include_router(system.router, prefix="/api/system", tags=["system"])

@app.get("/")
async def root():
    """Service banner with version info."""
    return {"message": "MariaDB Converter API", "status": "running", "version": __version__}

@app.get("/health")
async def health_check():
    return {"status": "healthy", "version": __version__}
