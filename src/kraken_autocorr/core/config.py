from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from kraken_autocorr.core.enums import TimePeriod

MIN_PERIODS = 1
MAX_PERIODS = 740


class ConfigError(ValueError):
    """Raised when startup configuration is invalid."""


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    no_of_periods: int = 100
    time_period: TimePeriod = TimePeriod.HOUR
    autoc_lag: int = Field(default=15, ge=0)

    poll_seconds: float = Field(default=30.0, gt=0)
    kraken_base_url: str = "https://api.kraken.com"
    kraken_pair: str = "XBTUSD"
    request_timeout_seconds: float = Field(default=20.0, gt=0)
    fetch_retries: int = Field(default=2, ge=0)
    log_level: str = "INFO"

    @field_validator("no_of_periods")
    @classmethod
    def _check_no_of_periods(cls, value: int) -> int:
        if value < MIN_PERIODS or value > MAX_PERIODS:
            raise ValueError("NO_OF_PERIODS must be greater than 0 and less than 741")
        return value

    @field_validator("time_period", mode="before")
    @classmethod
    def _check_time_period(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip().lower()
            if value not in {period.value for period in TimePeriod}:
                raise ValueError("TIME_PERIOD must be one of: 'second', 'minute', 'hour', or 'day'")
        return value


def load_settings(env_file: Path | str | None = ".env", **overrides: Any) -> Settings:
    try:
        return Settings(_env_file=env_file, **overrides)
    except ValidationError as exc:
        problems = []
        for error in exc.errors():
            name = ".".join(str(part) for part in error["loc"]).upper()
            message = error["msg"].removeprefix("Value error, ")
            problems.append(f"{name}: {message}")
        raise ConfigError("; ".join(problems)) from exc
