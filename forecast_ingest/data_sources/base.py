"""Interfaces for the remote forecast source and its HTTP transport."""

from __future__ import annotations

from typing import Any, Protocol

import requests

from forecast_ingest.models import Forecast, Position


class HTTPTransport(Protocol):
    """Anything that sends one prepared request and returns one response.

    `requests.Session` satisfies this protocol as-is; tests substitute a fake.
    """

    def send(self, request: requests.PreparedRequest, **kwargs: Any) -> requests.Response:
        """Send `request` and return the response (raising on transport failure)."""
        ...


class ForecastSource(Protocol):
    """Interface used by the scheduler to obtain a fresh forecast."""

    def fetch(self, position: Position) -> Forecast:
        """Return the decoded forecast for `position`."""
        ...
