"""
Metrics Endpoint

GET /api/v1/metrics - Prometheus metrics endpoint
"""

from fastapi import APIRouter, Response

from flux_studio.core.metrics import get_metrics, get_metrics_content_type

router = APIRouter()


@router.get("/metrics")
async def metrics():
    """
    Prometheus metrics endpoint.

    Exposes:
    - flux_studio_stage_latency_seconds (per stage)
    - flux_studio_provider_api_calls_total
    - flux_studio_poll_attempts
    - flux_studio_items_total
    - flux_studio_active_runs
    - flux_studio_http_requests_total
    """
    return Response(
        content=get_metrics(),
        media_type=get_metrics_content_type()
    )
