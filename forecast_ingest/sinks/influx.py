"""InfluxDB 2.x sink using the blocking write API."""

from __future__ import annotations

from influxdb_client import InfluxDBClient, Point, WritePrecision
from influxdb_client.client.write_api import SYNCHRONOUS, WriteApi

from forecast_ingest import config
from forecast_ingest.models import TimeSeriesPoint
from utils.logging_utils import get_tagged_logger, mask_url

logger = get_tagged_logger(__name__, tag="sinks/influx")


def to_influx_point(point: TimeSeriesPoint) -> Point:
    """Convert a sink-independent point into an influxdb_client Point."""
    record = Point(point.measurement)
    for key, value in point.tags.items():
        record = record.tag(key, value)
    for key, value in point.fields.items():
        record = record.field(key, value)
    return record.time(point.time, WritePrecision.NS)


class InfluxSink:
    """Writes points one at a time into a single org/bucket."""

    def __init__(self, client: InfluxDBClient, org: str, bucket: str, write_api: WriteApi | None = None) -> None:
        self.client = client
        self.org = org
        self.bucket = bucket
        self.write_api = write_api if write_api is not None else client.write_api(write_options=SYNCHRONOUS)

    @classmethod
    def from_settings(cls, settings: config.Settings) -> "InfluxSink":
        """Create the InfluxDB client from settings and bind the sink to it."""
        logger.info(
            "Using InfluxDB sink",
            extra={"url": mask_url(settings.influx_url), "bucket": settings.influx_bucket},
        )
        client = InfluxDBClient(url=settings.influx_url, token=settings.influx_token, org=settings.influx_org)
        return cls(client, org=settings.influx_org, bucket=settings.influx_bucket)

    def write_point(self, point: TimeSeriesPoint) -> None:
        self.write_api.write(bucket=self.bucket, org=self.org, record=to_influx_point(point))

    def close(self) -> None:
        self.write_api.close()
        self.client.close()
