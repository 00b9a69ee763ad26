"""Prometheus metrics configuration."""

from __future__ import annotations

import structlog
from fastapi import FastAPI
from prometheus_client import Counter, Gauge, Histogram
from prometheus_fastapi_instrumentator import Instrumentator

logger = structlog.get_logger("longbox.metrics")

app_info = Gauge(
    "app_info",
    "Application information",
    ["version"],
)

# Identification pipeline
files_identified_total = Counter(
    "files_identified_total",
    "Total number of files run through identification",
    ["status"],  # Success, Warning, Error, Cancelled
)
identification_duration_seconds = Histogram(
    "identification_duration_seconds",
    "Time spent identifying a single file",
    buckets=(0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)
lookup_failures_total = Counter(
    "lookup_failures_total",
    "Reference lookups that failed or timed out",
    ["source"],  # gcd, comicvine
)

# Organizer
organize_operations_total = Counter(
    "organize_operations_total",
    "Organizer copy/move operations",
    ["mode", "outcome"],  # mode: copy, move, revert; outcome: success, failure
)


def setup_metrics(app: FastAPI, app_version: str) -> None:
    """Setup Prometheus metrics using prometheus-fastapi-instrumentator.

    Args:
        app: FastAPI application instance
        app_version: Application version
    """
    if getattr(app.state, "_metrics_initialized", False):
        logger.debug("Metrics already initialized for this app instance, skipping")
        return

    instrumentator = Instrumentator(
        should_group_status_codes=False,
        should_ignore_untemplated=True,
        should_instrument_requests_inprogress=True,
        excluded_handlers=["/metrics", "/docs", "/openapi.json", "/redoc"],
    )
    instrumentator.instrument(app).expose(app, endpoint="/metrics")

    app.state._metrics_initialized = True
    app_info.labels(version=app_version).set(1)

    logger.info("Metrics initialized", version=app_version)
