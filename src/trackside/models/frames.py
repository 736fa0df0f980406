"""Telemetry frame models.

The telemetry endpoint returns one of three shapes, distinguished by the
``type`` field:

* ``connected`` - handshake marker telling whether the backend has data
* ``telemetry_frame`` - one snapshot of every vehicle (``type`` may be
  missing; a ``vehicles`` mapping is enough)
* ``telemetry_end`` - playback reached the end of the recording

:func:`decode_telemetry_frame` turns a raw payload into exactly one of
these, so the rest of the engine never inspects fields at runtime.
"""

from __future__ import annotations

import math
from typing import Annotated, Any, Literal

from pydantic import Field, TypeAdapter, ValidationError, field_validator, model_validator

from trackside.exceptions import MalformedFrameError
from trackside.ingestion.normalize import safe_float, safe_str
from trackside.models._base import TracksideBaseModel, is_sentinel
from trackside.models.weather import WeatherData

#: Named channels every vehicle sample may carry. Unknown numeric
#: channels are kept too (see :meth:`VehicleTelemetry.channels`).
KNOWN_CHANNELS: tuple[str, ...] = (
    "speed",
    "rpm",
    "gear",
    "throttle",
    "brake_front",
    "brake_rear",
    "steering",
    "lap",
    "lap_distance",
    "gps_lat",
    "gps_lon",
    "altitude",
    "acceleration_x",
    "acceleration_y",
)

_NON_CHANNEL_KEYS = frozenset({"raw", "extra_channels", "type", "timestamp", "vehicle_id", "vehicleId"})


class VehicleTelemetry(TracksideBaseModel):
    """One vehicle's sample inside a telemetry frame.

    Numeric fields are ``None`` when the value is absent or unparseable.
    Channels the backend adds beyond :data:`KNOWN_CHANNELS` are preserved
    in ``extra_channels``.
    """

    speed: float | None = None
    rpm: float | None = None
    gear: float | None = None
    throttle: float | None = None
    brake_front: float | None = None
    brake_rear: float | None = None
    steering: float | None = None
    lap: float | None = None
    lap_distance: float | None = None
    gps_lat: float | None = None
    gps_lon: float | None = None
    altitude: float | None = None
    acceleration_x: float | None = None
    acceleration_y: float | None = None
    extra_channels: dict[str, float] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _collect_extra_channels(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        extras: dict[str, float] = {}
        for key, value in values.items():
            if key in KNOWN_CHANNELS or key in _NON_CHANNEL_KEYS:
                continue
            parsed = safe_float(value)
            if parsed is not None:
                extras[key] = parsed
        if not extras:
            return values
        merged = dict(values)
        merged["extra_channels"] = {**extras, **dict(values.get("extra_channels") or {})}
        return merged

    @field_validator(*KNOWN_CHANNELS, mode="before")
    @classmethod
    def _coerce_floats(cls, value: Any) -> float | None:
        return safe_float(value)

    @property
    def has_fix(self) -> bool:
        """Whether the sample carries a usable GPS position."""
        return (
            self.gps_lat is not None
            and self.gps_lon is not None
            and math.isfinite(self.gps_lat)
            and math.isfinite(self.gps_lon)
        )

    def channels(self) -> dict[str, float]:
        """Flat mapping of every channel that has a value."""
        known = self.model_dump(include=set(KNOWN_CHANNELS), exclude_none=True)
        return {**self.extra_channels, **known}


class ConnectedFrame(TracksideBaseModel):
    """Handshake marker; ``has_data`` is false until the backend loaded a recording."""

    type: Literal["connected"] = "connected"
    has_data: bool = False


class TelemetryFrame(TracksideBaseModel):
    """A snapshot of every reporting vehicle."""

    type: Literal["telemetry_frame"] = "telemetry_frame"
    timestamp: str | None = None
    vehicles: dict[str, VehicleTelemetry] = Field(default_factory=dict)
    weather: WeatherData | None = None

    @field_validator("timestamp", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value: Any) -> str | None:
        return safe_str(value)

    @field_validator("vehicles", mode="before")
    @classmethod
    def _drop_empty_vehicles(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return value
        return {str(key): sample for key, sample in value.items() if not is_sentinel(sample)}


class TelemetryEndFrame(TracksideBaseModel):
    """Playback reached the end of the recording."""

    type: Literal["telemetry_end"] = "telemetry_end"


TelemetryMessage = Annotated[
    ConnectedFrame | TelemetryFrame | TelemetryEndFrame,
    Field(discriminator="type"),
]
"""Tagged union over every telemetry endpoint payload."""

_MESSAGE_ADAPTER: TypeAdapter[ConnectedFrame | TelemetryFrame | TelemetryEndFrame] = TypeAdapter(TelemetryMessage)


def decode_telemetry_frame(raw: Any) -> ConnectedFrame | TelemetryFrame | TelemetryEndFrame:
    """Decode a raw telemetry payload into its frame variant.

    Raises
    ------
    MalformedFrameError
        When the payload is not an object, carries an unknown ``type`` or
        fails validation.
    """
    if not isinstance(raw, dict):
        raise MalformedFrameError(f"telemetry payload must be an object, got {type(raw).__name__}", payload=raw)

    payload = dict(raw)
    if "type" not in payload and isinstance(payload.get("vehicles"), dict):
        payload["type"] = "telemetry_frame"

    try:
        return _MESSAGE_ADAPTER.validate_python(payload)
    except ValidationError as exc:
        raise MalformedFrameError(
            f"unrecognised telemetry payload (type={payload.get('type')!r}): {exc.error_count()} error(s)",
            payload=raw,
        ) from exc
