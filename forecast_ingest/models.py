"""Value types for positions, decoded forecasts and time-series points.

`Forecast` mirrors the MET Norway locationforecast 2.0 `complete` document.
Every field has a default so an empty response body decodes to `Forecast()`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

# Zero timestamp for samples that arrive without one.
ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class Position:
    """Fixed geographic position polled by the scheduler."""
    latitude: float
    longitude: float
    altitude: float


class _DocumentModel(BaseModel):
    """Base for the decoded document: an explicit JSON null keeps the field default."""

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None}
        return data


class WeatherDetails(_DocumentModel):
    """Instant meteorological values for one forecast sample."""
    air_pressure_at_sea_level: float = 0.0
    air_temperature: float = 0.0
    air_temperature_percentile_10: float = 0.0
    air_temperature_percentile_90: float = 0.0
    cloud_area_fraction: float = 0.0
    cloud_area_fraction_high: float = 0.0
    cloud_area_fraction_low: float = 0.0
    cloud_area_fraction_medium: float = 0.0
    dew_point_temperature: float = 0.0
    fog_area_fraction: float = 0.0
    relative_humidity: float = 0.0
    ultraviolet_index_clear_sky: float = 0.0
    wind_from_direction: float = 0.0
    wind_speed: float = 0.0
    wind_speed_of_gust: float = 0.0
    wind_speed_percentile_10: float = 0.0
    wind_speed_percentile_90: float = 0.0


class InstantData(_DocumentModel):
    details: WeatherDetails = Field(default_factory=WeatherDetails)


class SampleData(_DocumentModel):
    instant: InstantData = Field(default_factory=InstantData)


class Sample(_DocumentModel):
    """One timestamped entry of `properties.timeseries`."""
    time: datetime = ZERO_TIME
    data: SampleData = Field(default_factory=SampleData)

    @property
    def details(self) -> WeatherDetails:
        return self.data.instant.details


class Meta(_DocumentModel):
    updated_at: Optional[datetime] = None
    units: Dict[str, str] = Field(default_factory=dict)


class Properties(_DocumentModel):
    meta: Meta = Field(default_factory=Meta)
    timeseries: List[Sample] = Field(default_factory=list)

    @field_validator("timeseries", mode="before")
    @classmethod
    def _null_samples_are_empty(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [{} if item is None else item for item in value]
        return value


class Geometry(_DocumentModel):
    type: str = ""
    coordinates: List[float] = Field(default_factory=list)


class Forecast(_DocumentModel):
    """Decoded forecast document. Samples keep the order the API returned."""
    type: str = ""
    geometry: Geometry = Field(default_factory=Geometry)
    properties: Properties = Field(default_factory=Properties)

    @property
    def timeseries(self) -> List[Sample]:
        return self.properties.timeseries


@dataclass(frozen=True)
class TimeSeriesPoint:
    """Sink-independent point: measurement, tags, fields and timestamp."""
    measurement: str
    fields: Dict[str, Any]
    time: datetime
    tags: Dict[str, str] = field(default_factory=dict)
