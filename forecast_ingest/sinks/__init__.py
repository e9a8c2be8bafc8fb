"""Time-series sinks."""

from .base import PointSink
from .influx import InfluxSink

__all__ = ["InfluxSink", "PointSink"]
