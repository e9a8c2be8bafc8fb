"""Health probes and on-demand poll trigger."""

from fastapi import APIRouter, HTTPException, Request, status
from pydantic import BaseModel

from forecast_ingest.errors import ForecastIngestError
from forecast_ingest.scheduler import PollingScheduler
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="api")

router = APIRouter()


class HealthResponse(BaseModel):
    """Probe payload."""
    status: str
    cycles: int | None = None
    last_error: str | None = None


def _scheduler(request: Request) -> PollingScheduler:
    return request.app.state.scheduler


@router.get("/liveness", response_model=HealthResponse)
def liveness() -> HealthResponse:
    return HealthResponse(status="ok")


@router.get("/readiness", response_model=HealthResponse)
def readiness(request: Request) -> HealthResponse:
    """Ready until the poller has stopped on a fatal cycle failure."""
    poller_status = _scheduler(request).status
    if poller_status.failed:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=poller_status.last_error or "poller failed",
        )
    return HealthResponse(status="ok", cycles=poller_status.cycles, last_error=poller_status.last_error)


@router.api_route("/forecast/run", methods=["GET", "POST"], response_model=HealthResponse)
async def run_forecast(request: Request) -> HealthResponse:
    """Run one fetch-then-write cycle now."""
    scheduler = _scheduler(request)
    try:
        await scheduler.run_once()
    except ForecastIngestError as exc:
        logger.warning("On-demand forecast run failed: %s", exc)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
    return HealthResponse(status="ok", cycles=scheduler.status.cycles)
