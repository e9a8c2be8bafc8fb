"""Transform a decoded forecast into time-series points and write them."""
from __future__ import annotations

import logging
from typing import Callable, Iterator, Optional

from forecast_ingest.errors import InsufficientDataError, SinkWriteError
from forecast_ingest.models import Forecast, TimeSeriesPoint
from forecast_ingest.sinks.base import PointSink
from utils.logging_utils import get_tagged_logger

DEFAULT_HORIZON = 24
DEFAULT_MEASUREMENT = "forecast"
FIELD_PREFIX = "Temperature_"


def temperature_points(
    forecast: Forecast,
    horizon: int = DEFAULT_HORIZON,
    measurement: str = DEFAULT_MEASUREMENT,
) -> Iterator[TimeSeriesPoint]:
    """
    Yield one point per leading sample, up to `horizon`.

    The field name carries the slot ordinal ("Temperature_0", "Temperature_1",
    ...) rather than the wall-clock hour, so each slot is a separate series.
    Downstream dashboards query by these names; keep them stable.
    """
    for index, sample in enumerate(forecast.timeseries[:horizon]):
        yield TimeSeriesPoint(
            measurement=measurement,
            fields={f"{FIELD_PREFIX}{index}": sample.details.air_temperature},
            time=sample.time,
        )


class TimeSeriesWriter:
    """Writes the first `horizon` samples of a forecast, one point at a time."""

    def __init__(
        self,
        sink: PointSink,
        *,
        horizon: int = DEFAULT_HORIZON,
        measurement: str = DEFAULT_MEASUREMENT,
        logger: Optional[logging.LoggerAdapter] = None,
    ) -> None:
        if horizon <= 0:
            raise ValueError(f"horizon must be positive, got {horizon}")
        self.sink = sink
        self.horizon = horizon
        self.measurement = measurement
        self._logger = logger or get_tagged_logger(__name__, tag="writer")

    def write(self, forecast: Forecast, should_stop: Optional[Callable[[], bool]] = None) -> int:
        """
        Persist the forecast horizon and return the number of points written.

        Raises InsufficientDataError (before writing anything) when the
        forecast is shorter than the horizon, and SinkWriteError on the first
        failed write. Points already written are left in place.
        `should_stop` is checked before each point; once it returns True the
        remaining points are skipped.
        """
        available = len(forecast.timeseries)
        if available < self.horizon:
            raise InsufficientDataError(required=self.horizon, available=available)

        for index, point in enumerate(temperature_points(forecast, self.horizon, self.measurement)):
            if should_stop is not None and should_stop():
                self._logger.info("Write stopped after %d of %d points", index, self.horizon)
                return index
            try:
                self.sink.write_point(point)
            except SinkWriteError:
                raise
            except Exception as exc:
                raise SinkWriteError(index, f"failed to write point {index} at {point.time.isoformat()}: {exc}") from exc

        self._logger.debug("Wrote %d forecast points", self.horizon)
        return self.horizon
