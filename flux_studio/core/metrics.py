"""
Prometheus Metrics for Observability

Tracks pipeline stage latency, provider API calls and batch outcomes.
Exposes /api/v1/metrics for Prometheus scraping.
"""

import time
from contextlib import contextmanager

from prometheus_client import (
    Counter,
    Histogram,
    Gauge,
    Info,
    generate_latest,
    CONTENT_TYPE_LATEST,
    REGISTRY
)

# =============================================================================
# Metrics Definitions
# =============================================================================

# Pipeline Latency - Per Stage
pipeline_latency_seconds = Histogram(
    "flux_studio_stage_latency_seconds",
    "Time spent in each pipeline stage",
    labelnames=["stage", "status"],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0]
)

# Provider API Calls
provider_api_calls_total = Counter(
    "flux_studio_provider_api_calls_total",
    "Total number of calls to external providers",
    labelnames=["provider", "operation", "status"]
)

# Status fetches per poll
poll_attempts = Histogram(
    "flux_studio_poll_attempts",
    "Status fetches issued per job poll",
    labelnames=["outcome"],
    buckets=[1, 2, 3, 5, 10, 20, 30, 45, 60]
)

# Item outcomes
items_total = Counter(
    "flux_studio_items_total",
    "Work items finished per run",
    labelnames=["profile", "status"]
)

# Active runs
active_runs_gauge = Gauge(
    "flux_studio_active_runs",
    "Number of batch runs currently in progress"
)

# API Request Metrics
http_requests_total = Counter(
    "flux_studio_http_requests_total",
    "Total HTTP requests",
    labelnames=["method", "endpoint", "status"]
)

http_request_duration_seconds = Histogram(
    "flux_studio_http_request_duration_seconds",
    "HTTP request duration",
    labelnames=["method", "endpoint"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
)

# Application Info
app_info = Info(
    "flux_studio_app",
    "Application information"
)


# =============================================================================
# Helper Functions
# =============================================================================

def set_app_info(version: str, environment: str):
    """Set application info metric."""
    app_info.info({
        "version": version,
        "environment": environment
    })


@contextmanager
def track_stage_latency(stage: str):
    """
    Context manager to track stage latency.

    Usage:
        with track_stage_latency("upload"):
            # do work
    """
    start = time.time()
    status = "success"
    try:
        yield
    except Exception:
        status = "error"
        raise
    finally:
        duration = time.time() - start
        pipeline_latency_seconds.labels(stage=stage, status=status).observe(duration)


def record_provider_call(provider: str, operation: str, status: str):
    """Record a call to an external provider."""
    provider_api_calls_total.labels(
        provider=provider,
        operation=operation,
        status=status
    ).inc()


def record_poll(outcome: str, attempts: int):
    """Record how many status fetches a poll took."""
    poll_attempts.labels(outcome=outcome).observe(attempts)


def record_item_outcome(profile: str, status: str):
    """Record an item reaching a run-final status."""
    items_total.labels(profile=profile, status=status).inc()


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest(REGISTRY)


def get_metrics_content_type() -> str:
    """Get the content type for Prometheus metrics."""
    return CONTENT_TYPE_LATEST
