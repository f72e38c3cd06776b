# backend/mentorship/routes/prometheus.py
"""
Prometheus metrics endpoint.

Public, unauthenticated scrape target exposing the dedicated registry.
"""

from fastapi import APIRouter, Response

from ..monitoring.prometheus_metrics import prometheus_metrics

router = APIRouter(tags=["monitoring"])


@router.get("/metrics/prometheus", include_in_schema=False)
async def prometheus_metrics_endpoint() -> Response:
    return Response(content=prometheus_metrics.get_metrics(), media_type=prometheus_metrics.get_content_type())
