"""Health check endpoints."""

from fastapi import APIRouter, Depends

from cabinsight.api.services.state import get_settings
from cabinsight.core.config.settings import CabinSettings
from cabinsight.services.results_client import ResultsClient

router = APIRouter()


@router.get("/health")
def health() -> dict[str, str]:
    """Liveness check; does not touch the session engine."""

    return {"status": "ok"}


@router.get("/health/backend")
def backend_health(settings: CabinSettings = Depends(get_settings)) -> dict[str, str]:
    """Report whether the results-logging backend answers its health check."""

    client = ResultsClient(settings.backend_base_url, timeout_s=settings.backend_timeout_s)
    try:
        reachable = client.check_health()
    finally:
        client.close()
    return {"status": "ok" if reachable else "unreachable", "url": client.base_url}
