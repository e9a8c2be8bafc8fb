"""FastAPI application factory for the health listener."""

from fastapi import FastAPI

from forecast_ingest.api import router
from forecast_ingest.scheduler import PollingScheduler


def create_app(scheduler: PollingScheduler) -> FastAPI:
    """Build the app serving probes for `scheduler`."""
    app = FastAPI(title="Forecast Ingest")
    app.state.scheduler = scheduler
    app.include_router(router)
    return app
