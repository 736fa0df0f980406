"""Engine configuration for trackside."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from trackside._constants import (
    BASE_URL,
    INTERPOLATION_GAIN,
    LAP_EVENTS_POLL_INTERVAL,
    LEADERBOARD_POLL_INTERVAL,
    READ_TIMEOUT,
    TELEMETRY_POLL_INTERVAL,
    TRANSIENT_LOG_COOLDOWN,
)
from trackside.exceptions import TracksideConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class TracksideConfig:
    """Engine configuration.

    Parameters
    ----------
    base_url : str
        Backend base URL, without trailing slash.
    telemetry_interval : float
        Seconds between two telemetry polls.
    leaderboard_interval : float
        Seconds between two leaderboard polls.
    lap_events_interval : float
        Seconds between two lap-event polls.
    read_timeout : float
        Upper bound in seconds for one polling GET. Control commands are
        never subject to it.
    transient_log_cooldown : float
        Minimum spacing in seconds between two "backend not ready"
        warnings emitted by the same poll source.
    geo_scale : float
        Multiplier applied to local-frame meters.
    reference_lat : float or None
        Explicit geodetic reference latitude. When set together with
        ``reference_lon`` it wins over the track centroid.
    reference_lon : float or None
        Explicit geodetic reference longitude.
    track_file : str or None
        Path to a track definition JSON file.
    interpolation_gain : float
        Render smoothing gain; higher values converge faster.
    immediate : bool
        Fire the first poll of every source without waiting one interval.
    """

    base_url: str = BASE_URL
    telemetry_interval: float = TELEMETRY_POLL_INTERVAL
    leaderboard_interval: float = LEADERBOARD_POLL_INTERVAL
    lap_events_interval: float = LAP_EVENTS_POLL_INTERVAL
    read_timeout: float = READ_TIMEOUT
    transient_log_cooldown: float = TRANSIENT_LOG_COOLDOWN
    geo_scale: float = 1.0
    reference_lat: float | None = None
    reference_lon: float | None = None
    track_file: str | None = None
    interpolation_gain: float = INTERPOLATION_GAIN
    immediate: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "base_url", self.base_url.strip().rstrip("/"))
        for name in (
            "telemetry_interval",
            "leaderboard_interval",
            "lap_events_interval",
            "read_timeout",
            "geo_scale",
            "interpolation_gain",
        ):
            value = getattr(self, name)
            if value <= 0:
                raise TracksideConfigError(f"{name} must be positive, got {value}")
        if self.transient_log_cooldown < 0:
            raise TracksideConfigError(
                f"transient_log_cooldown must not be negative, got {self.transient_log_cooldown}"
            )
        if (self.reference_lat is None) != (self.reference_lon is None):
            raise TracksideConfigError("reference_lat and reference_lon must be set together")

    @property
    def has_reference(self) -> bool:
        return self.reference_lat is not None and self.reference_lon is not None

    @classmethod
    def from_env(cls, **overrides: Any) -> TracksideConfig:
        """Create configuration from environment variables.

        Reads optional ``TRACKSIDE_*`` variables. Explicit keyword
        arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        TracksideConfig
            Populated configuration.
        """
        env = os.environ

        _ENV_STR_MAP = {
            "TRACKSIDE_BASE_URL": "base_url",
            "TRACKSIDE_TRACK_FILE": "track_file",
        }
        _ENV_FLOAT_MAP = {
            "TRACKSIDE_TELEMETRY_INTERVAL": "telemetry_interval",
            "TRACKSIDE_LEADERBOARD_INTERVAL": "leaderboard_interval",
            "TRACKSIDE_LAP_EVENTS_INTERVAL": "lap_events_interval",
            "TRACKSIDE_READ_TIMEOUT": "read_timeout",
            "TRACKSIDE_TRANSIENT_LOG_COOLDOWN": "transient_log_cooldown",
            "TRACKSIDE_GEO_SCALE": "geo_scale",
            "TRACKSIDE_REFERENCE_LAT": "reference_lat",
            "TRACKSIDE_REFERENCE_LON": "reference_lon",
            "TRACKSIDE_INTERPOLATION_GAIN": "interpolation_gain",
        }

        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None and val.strip():
                config_kwargs[field_name] = val.strip()

        for env_key, field_name in _ENV_FLOAT_MAP.items():
            val = env.get(env_key)
            if val is None or field_name in overrides:
                continue
            try:
                config_kwargs[field_name] = float(val)
            except ValueError as exc:
                raise TracksideConfigError(f"{env_key} must be a number, got {val!r}") from exc

        if "immediate" not in overrides:
            config_kwargs["immediate"] = _env_bool(env.get("TRACKSIDE_IMMEDIATE"), True)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
