import logging
from typing import Any, Optional, Tuple

from pydantic import AliasChoices, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from snowgauge.core.errors import ConfigError
from snowgauge.core.models.filter_type import FilterType

logger = logging.getLogger(__name__)

MIN_BATCH_SIZE = 10


class GaugeSettings(BaseSettings):
    """Service configuration, read from environment variables (and CLI flags at the entry point)."""

    model_config = SettingsConfigDict(
        case_sensitive=False,
        cli_kebab_case=True,
        cli_implicit_flags=True,
    )

    # Serial port name
    port: str = "/dev/ttyS0"
    # Turn on debugging output
    debug: bool = False
    # Address to listen on for streaming clients
    listen_addr: str = "0.0.0.0:7669"
    # Log every distance received
    log_distance: bool = Field(default=False, validation_alias=AliasChoices("log_distance", "log"))
    # Generate synthetic readings instead of opening the serial port
    simulator: bool = False
    # Starting distance for the simulator (mm)
    simulator_base_distance: float = Field(default=1000.0, allow_inf_nan=False)
    # Station name attached to every reading
    station_name: str = "snowgauge"
    # Fraction trimmed from each end of a batch (0.0-0.5)
    trim_percentage: float = 0.15
    # Number of readings collected before averaging
    batch_size: int = 30
    # none, exponential, trimmed-mean or both
    filter_type: FilterType = FilterType.BOTH
    # Filter initialization period (number of readings)
    filter_init_period: int = 40
    # Maximum change per reading in mm
    filter_rate_limit: float = Field(default=1.0, allow_inf_nan=False)
    # Smoothing factor (0.0-1.0, higher = more responsive)
    filter_alpha: float = Field(default=0.2, allow_inf_nan=False)

    @field_validator("trim_percentage")
    @classmethod
    def _check_trim_percentage(cls, value: float) -> float:
        if not 0.0 <= value <= 0.5:
            raise ValueError(f"trim-percentage must be between 0.0 and 0.5, got {value}")
        return value

    @field_validator("batch_size")
    @classmethod
    def _check_batch_size(cls, value: int) -> int:
        if value < MIN_BATCH_SIZE:
            raise ValueError(f"batch-size must be at least {MIN_BATCH_SIZE}, got {value}")
        return value

    @field_validator("filter_rate_limit")
    @classmethod
    def _check_rate_limit(cls, value: float) -> float:
        if value < 0.0:
            raise ValueError(f"filter-rate-limit must not be negative, got {value}")
        return value

    @field_validator("filter_type", mode="before")
    @classmethod
    def _parse_filter_type(cls, value: Any) -> Any:
        if isinstance(value, str):
            return FilterType.parse(value)
        return value

    @field_validator("listen_addr")
    @classmethod
    def _check_listen_addr(cls, value: str) -> str:
        parse_listen_addr(value)
        return value

    def listen_host_port(self) -> Tuple[str, int]:
        return parse_listen_addr(self.listen_addr)

    def filter_params(self) -> Optional[Tuple[int, float, float]]:
        """(init_period, rate_limit, alpha) when the exponential stage is enabled."""
        if not self.filter_type.uses_exponential:
            return None
        return self.filter_init_period, self.filter_rate_limit, self.filter_alpha

    def describe(self):
        """Log the effective configuration."""
        logger.info("Configuration:")
        logger.info(f"  Station name: {self.station_name}")
        logger.info(f"  Source: {'simulator' if self.simulator else self.port}")
        logger.info(f"  Filter type: {self.filter_type}")
        if self.filter_type.uses_exponential:
            logger.info("  Exponential filter (per-reading):")
            logger.info(f"    - Initialization period: {self.filter_init_period} readings")
            logger.info(f"    - Rate limit: {self.filter_rate_limit} mm/reading")
            logger.info(f"    - Alpha (smoothing): {self.filter_alpha}")
        if self.filter_type.uses_trimmed_mean:
            logger.info("  Trimmed mean (batch):")
            logger.info(f"    - Trim percentage: {self.trim_percentage * 100.0}% from each end")
        if self.filter_type == FilterType.NONE:
            logger.info("  No filtering applied - using raw readings")
        logger.info(f"  Batch size: {self.batch_size} readings")


def parse_listen_addr(listen_addr: str) -> Tuple[str, int]:
    host, sep, port = listen_addr.rpartition(":")
    if not sep or not host:
        raise ValueError(f"listen-addr must be host:port, got {listen_addr!r}")
    try:
        port_number = int(port)
    except ValueError:
        raise ValueError(f"listen-addr port must be a number, got {port!r}")
    if not 0 <= port_number <= 65535:
        raise ValueError(f"listen-addr port out of range: {port_number}")
    return host.strip("[]"), port_number


def load_settings(cli_args: Optional[list[str]] = None, **overrides: Any) -> GaugeSettings:
    """
    Build and validate the settings.
    cli_args, when given, are parsed as command line flags on top of the environment.
    Raises ConfigError listing every rejected value.
    """
    try:
        if cli_args is not None:
            return GaugeSettings(_cli_parse_args=cli_args, **overrides)
        return GaugeSettings(**overrides)
    except ValidationError as e:
        problems = []
        for error in e.errors():
            field = ".".join(str(part) for part in error["loc"]) or "settings"
            problems.append(f"{field}: {error['msg']}")
        for problem in problems:
            logger.error(f"Invalid configuration: {problem}")
        raise ConfigError(problems) from e
