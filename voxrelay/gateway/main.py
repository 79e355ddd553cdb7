"""FastAPI gateway application entry point."""

from contextlib import asynccontextmanager
from pathlib import Path

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from fastapi.staticfiles import StaticFiles

import voxrelay
import voxrelay.logging
import voxrelay.metrics
from voxrelay.config import get_settings, warn_if_missing_api_keys
from voxrelay.gateway.api import router as api_router
from voxrelay.gateway.middleware import CorrelationIdMiddleware, setup_exception_handlers

# Configure structured logging
voxrelay.logging.configure("gateway")
logger = structlog.get_logger()

# Configure Prometheus metrics
voxrelay.metrics.configure_metrics("gateway")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager.

    Secrets are read once here; sessions hold no process-wide state, so
    shutdown has nothing to release beyond what each connection closes.
    """
    settings = get_settings()
    warn_if_missing_api_keys(settings)
    logger.info(
        "gateway_started",
        deepgram_url=settings.deepgram_url,
        keepalive_interval_seconds=settings.keepalive_interval_seconds,
    )

    yield

    logger.info("gateway_stopped")


app = FastAPI(
    title="voxrelay",
    description="Live audio relay to a hosted speech transcription service",
    version=voxrelay.__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "PUT", "POST", "DELETE"],
    allow_headers=["Content-Type"],
)

app.add_middleware(CorrelationIdMiddleware)

setup_exception_handlers(app)

app.include_router(api_router)


@app.get("/health", tags=["system"])
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/metrics", tags=["system"], include_in_schema=False)
async def metrics_endpoint():
    """Prometheus metrics endpoint."""
    if not voxrelay.metrics.is_metrics_enabled():
        return Response(content="Metrics disabled", status_code=404)

    from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


# Project checkout root; holds public/ when running from source
PROJECT_ROOT = Path(__file__).resolve().parents[2]


def resolve_static_dir(static_dir: str) -> Path | None:
    """Locate the static directory.

    Relative paths are tried against the working directory first, then the
    project root. Returns None (and logs a warning) when neither exists.
    """
    path = Path(static_dir)
    candidates = [path] if path.is_absolute() else [path, PROJECT_ROOT / path]
    for candidate in candidates:
        if candidate.is_dir():
            return candidate.resolve()
    logger.warning(
        "static_dir_missing",
        static_dir=static_dir,
        searched=[str(c) for c in candidates],
    )
    return None


# Static page and assets. Mounted last so API routes take precedence.
_static_dir = resolve_static_dir(get_settings().static_dir)
if _static_dir is not None:
    logger.info("serving_static_files", directory=str(_static_dir))
    app.mount("/", StaticFiles(directory=_static_dir, html=True), name="static")
