"""Factory for building the forecast client at startup."""

from __future__ import annotations

import requests

from forecast_ingest import config
from forecast_ingest.data_sources.yr_client import YrClient
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="data_sources/factory")


def build_forecast_client(settings: config.Settings, session: requests.Session | None = None) -> YrClient:
    """Instantiate the MET Norway client with a shared requests session."""
    logger.info(
        "Using MET Norway locationforecast source",
        extra={"base_url": settings.yr_url, "user_agent": settings.yr_user_agent},
    )
    return YrClient(
        base_url=settings.yr_url,
        user_agent=settings.yr_user_agent,
        transport=session if session is not None else requests.Session(),
        timeout=settings.yr_timeout_seconds,
    )
