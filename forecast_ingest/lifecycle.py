"""Process wiring: build the pipeline, run poller and health listener, shut down."""
from __future__ import annotations

import asyncio
import contextlib
import signal

import requests
import uvicorn
from pydantic import ValidationError

from forecast_ingest.config import Settings, load_settings
from forecast_ingest.data_sources import build_forecast_client
from forecast_ingest.main import create_app
from forecast_ingest.scheduler import PollingScheduler, build_failure_policy
from forecast_ingest.sinks import InfluxSink
from forecast_ingest.supervisor import TaskSupervisor
from forecast_ingest.writer import TimeSeriesWriter
from utils.logging_utils import get_tagged_logger, setup_logging

logger = get_tagged_logger(__name__, tag="lifecycle")

JOB_NAME = "forecast"


async def _serve_until_exit(server: uvicorn.Server) -> None:
    try:
        await server.serve()
    except SystemExit as exc:
        # uvicorn exits the process when it cannot bind; keep that inside the task.
        raise RuntimeError(f"health listener exited during startup (status {exc.code})") from exc


async def serve_health(server: uvicorn.Server, stop: asyncio.Event) -> None:
    """Serve probes until `stop` is set, then let uvicorn drain connections."""
    serving = asyncio.create_task(_serve_until_exit(server))
    stopper = asyncio.create_task(stop.wait())
    try:
        done, _ = await asyncio.wait({serving, stopper}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        serving.cancel()
        raise
    finally:
        stopper.cancel()

    if serving not in done:
        logger.info("Shutting down health listener")
        server.should_exit = True
    await serving


def install_signal_handlers(supervisor: TaskSupervisor) -> None:
    """Route SIGINT/SIGTERM to a cooperative shutdown."""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, supervisor.shutdown)
        except (NotImplementedError, RuntimeError, ValueError):
            logger.debug("Signal handlers not supported here; relying on KeyboardInterrupt")


async def serve(settings: Settings) -> None:
    """Run the poller and the health listener until shutdown or a fatal failure."""
    with contextlib.ExitStack() as resources:
        client = build_forecast_client(settings, requests.Session())
        resources.callback(client.close)
        sink = InfluxSink.from_settings(settings)
        resources.callback(sink.close)

        writer = TimeSeriesWriter(sink, horizon=settings.forecast_horizon)
        scheduler = PollingScheduler(
            client,
            writer,
            settings.position(),
            settings.poll_interval_seconds,
            failure_policy=build_failure_policy(settings.cycle_failure_policy),
        )

        host, port = settings.listen_host_port()
        server = uvicorn.Server(
            uvicorn.Config(
                create_app(scheduler),
                host=host,
                port=port,
                log_config=None,
                timeout_graceful_shutdown=int(settings.shutdown_timeout_seconds),
            )
        )

        supervisor = TaskSupervisor(shutdown_timeout=settings.shutdown_timeout_seconds)
        supervisor.add("poller", scheduler.run)
        supervisor.add("health", lambda stop: serve_health(server, stop))
        install_signal_handlers(supervisor)

        logger.info("Listening on %s:%d", host, port)
        await supervisor.run()


def main() -> int:
    """Entrypoint; returns the process exit code."""
    try:
        settings = load_settings()
    except ValidationError as exc:
        setup_logging(level="INFO", job_name=JOB_NAME)
        logger.error("Failed to load configuration: %s", exc)
        return 2

    setup_logging(level=settings.log_level, job_name=JOB_NAME)
    logger.info("Starting forecast ingest")
    logger.debug("Loaded settings: %s", settings.masked_dump())

    try:
        asyncio.run(serve(settings))
    except KeyboardInterrupt:
        logger.info("Interrupted")
    except Exception as exc:
        logger.exception("Forecast ingest stopped after a fatal error: %s", exc)
        return 1

    logger.info("Closed server successfully")
    return 0
