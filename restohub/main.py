"""FastAPI application wiring for RestoHub.

This module bootstraps the HTTP API used by the restaurant dashboard:

- Configures logging, the uniform error envelope, CORS for first-party
  dashboard origins, Prometheus metrics and rate limiting.
- Mounts the reservation, KPI, floor view and notification preference
  routers and exposes health and version endpoints.
"""

import os

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi.middleware import SlowAPIMiddleware

from .__version__ import __build_date__, __commit_sha__, __version__
from .app_logging import init_logging
from .errors import install_error_handlers
from .rate_limit import limiter
from .routers import kpis, notification_preferences, reservations, tables

load_dotenv()

DEFAULT_CORS_ORIGINS = "http://localhost:5173,http://localhost:3000"
CORS_ALLOWED_HEADERS = [
    "authorization",
    "content-type",
    "accept",
    "accept-language",
    "x-request-id",
    "x-idempotency-key",
    "x-tenant-id",
]


def _cors_origins() -> list[str]:
    raw = os.getenv("CORS_ALLOWED_ORIGINS", DEFAULT_CORS_ORIGINS)
    return [o.strip() for o in raw.split(",") if o.strip()]


app = FastAPI(title="RestoHub", version=__version__)
init_logging(app)
install_error_handlers(app)
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_origin_regex=os.getenv("CORS_ALLOWED_ORIGIN_REGEX") or None,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
    allow_headers=CORS_ALLOWED_HEADERS,
    expose_headers=["x-request-id"],
    max_age=86400,
)
app.include_router(reservations.router)
app.include_router(kpis.router)
app.include_router(tables.router)
app.include_router(notification_preferences.router)

# Expose Prometheus metrics
Instrumentator().instrument(app).expose(
    app, include_in_schema=False, endpoint="/api/metrics"
)


@app.get("/api/health")
async def health():
    """Liveness/readiness check with a minimal JSON body."""
    return {"status": "ok"}


@app.get("/api/version")
async def version():
    """Return version information for the application."""
    return {
        "version": __version__,
        "build_date": __build_date__,
        "commit_sha": __commit_sha__,
    }
