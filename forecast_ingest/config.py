"""Service configuration pulled from environment variables via pydantic."""
from typing import Literal, Tuple

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from forecast_ingest.data_sources.yr_client import DEFAULT_BASE_URL, DEFAULT_TIMEOUT, DEFAULT_USER_AGENT
from forecast_ingest.models import Position
from utils.logging_utils import mask_secret, mask_url


class Settings(BaseSettings):
    """Environment-driven configuration for the forecast ingest service."""
    model_config = SettingsConfigDict(env_prefix="", extra="ignore", frozen=True)

    # remote forecast API
    yr_url: str = DEFAULT_BASE_URL
    yr_user_agent: str = DEFAULT_USER_AGENT
    yr_timeout_seconds: float = Field(default=DEFAULT_TIMEOUT, gt=0)

    # time-series sink
    influx_url: str
    influx_token: str
    influx_org: str
    influx_bucket: str

    # polled position
    position_latitude: float
    position_longitude: float
    position_altitude: float

    poll_interval_seconds: float = Field(default=3600.0, gt=0)
    forecast_horizon: int = Field(default=24, gt=0)
    cycle_failure_policy: Literal["fail_fast", "continue"] = "fail_fast"

    http_address: str
    shutdown_timeout_seconds: float = Field(default=5.0, gt=0)
    log_level: str = "INFO"

    @field_validator("yr_url", mode="after")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize base URLs to avoid double slashes."""
        return str(v).rstrip("/")

    @field_validator("log_level", mode="after")
    @classmethod
    def upper_log_level(cls, v: str) -> str:
        return v.upper()

    @field_validator("http_address", mode="after")
    @classmethod
    def check_http_address(cls, v: str) -> str:
        """Require `host:port` or `:port`."""
        _, sep, port = v.rpartition(":")
        if not sep or not port.isdigit():
            raise ValueError(f"http_address must look like 'host:port' or ':port', got {v!r}")
        return v

    def position(self) -> Position:
        return Position(
            latitude=self.position_latitude,
            longitude=self.position_longitude,
            altitude=self.position_altitude,
        )

    def listen_host_port(self) -> Tuple[str, int]:
        """Split `http_address`; an empty host listens on all interfaces."""
        host, _, port = self.http_address.rpartition(":")
        return host or "0.0.0.0", int(port)

    def masked_dump(self) -> dict:
        """Settings as a dict with credentials masked, for logging."""
        data = self.model_dump()
        data["influx_token"] = mask_secret(self.influx_token)
        data["influx_url"] = mask_url(self.influx_url)
        return data


def load_settings(**overrides) -> Settings:
    """Load settings from the environment, with explicit overrides taking precedence."""
    return Settings(**overrides)
