"""Remote forecast sources."""

from .base import ForecastSource, HTTPTransport
from .factory import build_forecast_client
from .yr_client import DEFAULT_BASE_URL, DEFAULT_USER_AGENT, YrClient, decode_forecast

__all__ = [
    "build_forecast_client",
    "decode_forecast",
    "DEFAULT_BASE_URL",
    "DEFAULT_USER_AGENT",
    "ForecastSource",
    "HTTPTransport",
    "YrClient",
]
