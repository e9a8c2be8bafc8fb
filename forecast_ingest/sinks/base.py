"""Write contract for time-series sinks."""

from typing import Protocol

from forecast_ingest.models import TimeSeriesPoint


class PointSink(Protocol):
    """Anything that can persist a single time-series point synchronously."""

    def write_point(self, point: TimeSeriesPoint) -> None:
        """Write one point, raising on failure."""
        ...
