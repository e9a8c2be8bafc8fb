"""Client for the MET Norway locationforecast 2.0 `complete` endpoint."""
from __future__ import annotations

import json
import logging
from typing import Optional, Tuple

import requests
from pydantic import ValidationError

from forecast_ingest.data_sources.base import HTTPTransport
from forecast_ingest.errors import DecodeError, StatusError, TransportError
from forecast_ingest.models import Forecast, Position
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="yr_client")

DEFAULT_BASE_URL = "https://api.met.no/weatherapi/locationforecast/2.0"
DEFAULT_USER_AGENT = "yr-go"
DEFAULT_TIMEOUT = 10.0
COMPLETE_PATH = "complete"

_DRAIN_CHUNK_SIZE = 8192
_JSON_DECODER = json.JSONDecoder()


def decode_forecast(body: bytes) -> Forecast:
    """Decode a response body into a Forecast.

    An empty (or whitespace-only) body and a bare `null` document both yield
    the zero-value `Forecast()`. Only the first JSON value is read; anything
    after it is ignored.
    """
    try:
        text = body.decode("utf-8").lstrip() if body else ""
    except UnicodeDecodeError as exc:
        raise DecodeError(f"failed to decode forecast: {exc}") from exc
    if not text:
        return Forecast()

    try:
        document, _ = _JSON_DECODER.raw_decode(text)
    except ValueError as exc:
        raise DecodeError(f"failed to decode forecast: {exc}") from exc
    if document is None:
        return Forecast()

    try:
        return Forecast.model_validate(document)
    except ValidationError as exc:
        raise DecodeError(f"failed to decode forecast: {exc}") from exc


def _drain(response: requests.Response) -> None:
    """Consume the rest of the body so the connection can be reused."""
    try:
        for _ in response.iter_content(chunk_size=_DRAIN_CHUNK_SIZE):
            pass
    except (requests.RequestException, RuntimeError) as exc:
        # RuntimeError: content already consumed by someone else.
        logger.debug("Failed to drain response body: %s", exc)


class YrClient:
    """Issues one GET per fetch and classifies the outcome.

    No retries and no caching; the caller decides what to do with failures.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: Optional[HTTPTransport] = None,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        logger: Optional[logging.LoggerAdapter] = None,
    ) -> None:
        self.base_url = str(base_url).rstrip("/")
        self.user_agent = user_agent
        self.transport = transport if transport is not None else requests.Session()
        self.timeout = timeout
        self._logger = logger or get_tagged_logger(__name__, tag="yr_client")

    @property
    def url(self) -> str:
        return f"{self.base_url}/{COMPLETE_PATH}"

    def build_request(self, position: Position) -> requests.PreparedRequest:
        """Build the GET request for `position` (lat/lon to 4 decimals, integer altitude)."""
        params = {
            "lat": f"{position.latitude:.4f}",
            "lon": f"{position.longitude:.4f}",
            "altitude": f"{position.altitude:.0f}",
        }
        request = requests.Request(
            "GET",
            self.url,
            params=params,
            headers={"User-Agent": self.user_agent},
        )
        return request.prepare()

    def request_forecast(self, position: Position) -> Tuple[int, Optional[Forecast]]:
        """
        Issue the request and return `(status_code, forecast)`.

        A non-200 status is returned as-is with `forecast=None` and the body is
        not decoded. Transport and decode failures raise. The response body
        is drained and closed on every path.
        """
        request = self.build_request(position)
        self._logger.debug("Requesting forecast: %s", request.url)

        try:
            response = self.transport.send(request, timeout=self.timeout, stream=True)
        except requests.RequestException as exc:
            raise TransportError(f"failed to reach {self.url}: {exc}") from exc
        if response is None:
            raise TransportError(f"no response received from {self.url}")

        try:
            self._logger.debug("Forecast response status: %s", response.status_code)
            if response.status_code != 200:
                self._logger.warning(
                    "Forecast request returned non-200 status",
                    extra={"status_code": response.status_code, "url": self.url},
                )
                _drain(response)
                return response.status_code, None

            try:
                body = response.content
            except requests.RequestException as exc:
                raise TransportError(f"failed to read forecast body from {self.url}: {exc}") from exc
            return response.status_code, decode_forecast(body)
        finally:
            response.close()

    def fetch(self, position: Position) -> Forecast:
        """Return the decoded forecast for `position`, raising StatusError on non-200."""
        status_code, forecast = self.request_forecast(position)
        if status_code != 200 or forecast is None:
            raise StatusError(status_code, url=self.url)
        return forecast

    def close(self) -> None:
        """Close the underlying transport if it supports closing."""
        close = getattr(self.transport, "close", None)
        if callable(close):
            close()
