"""Track weather model."""

from __future__ import annotations

from pydantic import field_validator

from trackside.ingestion.normalize import safe_float
from trackside.models._base import TracksideBaseModel


class WeatherData(TracksideBaseModel):
    """Weather conditions reported alongside a telemetry frame.

    All fields are ``None`` when the backend has no reading.
    """

    air_temp: float | None = None
    track_temp: float | None = None
    humidity: float | None = None
    pressure: float | None = None
    wind_speed: float | None = None
    wind_direction: float | None = None
    rain: float | None = None

    @field_validator("*", mode="before")
    @classmethod
    def _coerce_floats(cls, value: object) -> object:
        if isinstance(value, dict):
            return value
        return safe_float(value)
