"""Fixed-interval polling loop driving the fetch-then-write cycle."""
from __future__ import annotations

import asyncio
import datetime as dt
import logging
import threading
from dataclasses import dataclass
from typing import Optional, Protocol, Union

from forecast_ingest.data_sources.base import ForecastSource
from forecast_ingest.models import Position
from forecast_ingest.writer import TimeSeriesWriter
from utils.logging_utils import get_tagged_logger


class CycleFailurePolicy(Protocol):
    """Decides what a failed poll cycle means for the polling loop."""

    def on_failure(self, exc: BaseException) -> None:
        """Re-raise to stop polling, or return to keep going."""
        ...


class FailFast:
    """Stop polling on the first failed cycle and surface the error."""

    def on_failure(self, exc: BaseException) -> None:
        raise exc


class LogAndContinue:
    """Log the failed cycle and keep polling on the next tick."""

    def __init__(self, logger: Optional[logging.LoggerAdapter] = None) -> None:
        self._logger = logger or get_tagged_logger(__name__, tag="scheduler")

    def on_failure(self, exc: BaseException) -> None:
        self._logger.error("Poll cycle failed, waiting for next tick: %s", exc)


FAILURE_POLICIES = {
    "fail_fast": FailFast,
    "continue": LogAndContinue,
}


def build_failure_policy(name: str) -> CycleFailurePolicy:
    """Return the failure policy registered under `name`."""
    try:
        return FAILURE_POLICIES[name]()
    except KeyError:
        raise ValueError(f"Unknown cycle failure policy '{name}'") from None


@dataclass
class PollerStatus:
    """Observable state of the poller, used by the readiness probe."""
    running: bool = False
    failed: bool = False
    cycles: int = 0
    last_success: Optional[dt.datetime] = None
    last_error: Optional[str] = None


class PollingScheduler:
    """
    Run one cycle immediately, then one per interval, until stopped.

    Cycles are strictly sequential: the loop awaits each cycle before
    waiting for the next tick, and on-demand `run_once` calls share the same
    lock. What a failed cycle means is up to the failure policy; the default
    `FailFast` ends `run` with that error.
    """

    def __init__(
        self,
        client: ForecastSource,
        writer: TimeSeriesWriter,
        position: Position,
        interval: Union[float, dt.timedelta],
        *,
        failure_policy: Optional[CycleFailurePolicy] = None,
        logger: Optional[logging.LoggerAdapter] = None,
    ) -> None:
        seconds = interval.total_seconds() if isinstance(interval, dt.timedelta) else float(interval)
        if seconds <= 0:
            raise ValueError(f"poll interval must be positive, got {interval!r}")
        self.client = client
        self.writer = writer
        self.position = position
        self.interval = seconds
        self.failure_policy = failure_policy or FailFast()
        self.status = PollerStatus()
        self._logger = logger or get_tagged_logger(__name__, tag="scheduler")
        self._lock = asyncio.Lock()
        # Held by the worker thread for the whole cycle, so an abandoned cycle
        # still blocks the next one until its thread returns.
        self._cycle_lock = threading.Lock()

    def _cycle(self, abandoned: threading.Event) -> None:
        with self._cycle_lock:
            if abandoned.is_set():
                return
            forecast = self.client.fetch(self.position)
            if abandoned.is_set():
                self._logger.info("Poll cycle abandoned after fetch; skipping write")
                return
            self.writer.write(forecast, should_stop=abandoned.is_set)

    async def run_once(self) -> None:
        """Run a single fetch-then-write cycle, never overlapping another one."""
        async with self._lock:
            self._logger.debug("Starting poll cycle", extra={"position": self.position})
            abandoned = threading.Event()
            try:
                await asyncio.to_thread(self._cycle, abandoned)
            except asyncio.CancelledError:
                abandoned.set()
                raise
            except Exception as exc:
                self.status.last_error = str(exc)
                raise
            self.status.cycles += 1
            self.status.last_success = dt.datetime.now(dt.timezone.utc)
            self.status.last_error = None
            self._logger.info("Poll cycle %d completed", self.status.cycles)

    async def _run_cycle_until(self, stop: asyncio.Event) -> bool:
        """Run one cycle raced against `stop`. Return False if stop won."""
        cycle = asyncio.ensure_future(self.run_once())
        stopper = asyncio.ensure_future(stop.wait())
        try:
            done, _ = await asyncio.wait({cycle, stopper}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stopper.cancel()
            if not cycle.done():
                cycle.cancel()

        if cycle not in done:
            self._logger.info("Stop requested during poll cycle; abandoning it")
            return False

        exc = cycle.exception()
        if exc is not None:
            try:
                self.failure_policy.on_failure(exc)
            except BaseException:
                self.status.failed = True
                raise
        return True

    async def run(self, stop: asyncio.Event) -> None:
        """
        Poll until `stop` is set.

        Returns None when stopped. Raises whatever the failure policy
        re-raises (by default, the first cycle error).
        """
        loop = asyncio.get_running_loop()
        self.status.running = True
        self._logger.info(
            "Starting poller",
            extra={"position": self.position, "interval_seconds": self.interval},
        )
        try:
            next_tick = loop.time()
            while not stop.is_set():
                if not await self._run_cycle_until(stop):
                    return

                next_tick += self.interval
                now = loop.time()
                # An overrunning cycle gets one immediate catch-up tick, not a burst.
                if next_tick < now:
                    next_tick = now
                try:
                    await asyncio.wait_for(stop.wait(), timeout=next_tick - now)
                except asyncio.TimeoutError:
                    continue
        finally:
            self.status.running = False
            self._logger.info("Poller stopped", extra={"cycles": self.status.cycles})
