"""Error taxonomy for the fetch-transform-store pipeline."""

from __future__ import annotations


class ForecastIngestError(RuntimeError):
    """Base class for every failure a poll cycle can produce."""


class TransportError(ForecastIngestError):
    """The remote forecast API could not be reached (no response obtained)."""


class StatusError(ForecastIngestError):
    """The remote forecast API answered with a status other than 200."""

    def __init__(self, status_code: int, url: str | None = None) -> None:
        self.status_code = status_code
        self.url = url
        target = f" from {url}" if url else ""
        super().__init__(f"unexpected status {status_code}{target}")


class DecodeError(ForecastIngestError):
    """A 200 response carried a body that is not a valid forecast document."""


class InsufficientDataError(ForecastIngestError):
    """The forecast has fewer samples than the writer's horizon."""

    def __init__(self, required: int, available: int) -> None:
        self.required = required
        self.available = available
        super().__init__(
            f"forecast has {available} samples, at least {required} are required"
        )


class SinkWriteError(ForecastIngestError):
    """Writing a point to the time-series sink failed."""

    def __init__(self, index: int, message: str | None = None) -> None:
        self.index = index
        super().__init__(message or f"failed to write point {index}")
