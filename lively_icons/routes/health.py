# lively_icons/routes/health.py
"""
Health and metrics endpoints.

``router`` is mounted under /api/health; ``metrics_router`` exposes the
Prometheus scrape endpoint at the application root.
"""

from datetime import datetime, timezone
import logging

from fastapi import APIRouter, Response

from ..core.config import settings
from ..core.constants import API_VERSION
from ..middleware.prometheus_middleware import METRICS_PATH
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..schemas.health import HealthResponse

logger = logging.getLogger(__name__)

SERVICE_NAME = "lively-icons-api"

router = APIRouter(tags=["health"])
metrics_router = APIRouter(tags=["monitoring"])


@router.get("", response_model=HealthResponse)
def health_check(response: Response) -> HealthResponse:
    """Liveness check; touches no external dependency."""
    response.headers["Cache-Control"] = "no-store"
    return HealthResponse(
        status="healthy",
        service=SERVICE_NAME,
        version=API_VERSION,
        environment=settings.environment,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


@metrics_router.get(METRICS_PATH, include_in_schema=False)
def prometheus_scrape() -> Response:
    """Public Prometheus scrape endpoint."""
    return Response(prometheus_metrics.get_metrics(), media_type=prometheus_metrics.get_content_type())
