"""Static track definition model."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from trackside.exceptions import TracksideConfigError


class TrackPoint(BaseModel):
    """One geodetic centerline point, in decimal degrees."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    latitude: float = Field(validation_alias=AliasChoices("latitude", "lat"), ge=-90.0, le=90.0)
    longitude: float = Field(validation_alias=AliasChoices("longitude", "lon", "lng"), ge=-180.0, le=180.0)


class TrackTurn(BaseModel):
    """Named corner, anchored to a centerline point index."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: int | str
    name: str
    point: int


class TrackDefinition(BaseModel):
    """Ordered centerline of a closed circuit.

    The last point implicitly connects back to the first one.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    name: str | None = None
    track_path: tuple[TrackPoint, ...] = Field(
        default=(),
        validation_alias=AliasChoices("track_path", "trackPath"),
    )
    turns: tuple[TrackTurn, ...] = ()

    @field_validator("turns", mode="before")
    @classmethod
    def _drop_invalid_turns(cls, value: Any) -> Any:
        if not isinstance(value, list | tuple):
            return ()
        return tuple(item for item in value if isinstance(item, dict) and "point" in item)

    @property
    def coordinates(self) -> list[tuple[float, float]]:
        """``(lat, lon)`` pairs in centerline order."""
        return [(point.latitude, point.longitude) for point in self.track_path]


def load_track_definition(path: str | Path) -> TrackDefinition:
    """Read a track definition JSON file.

    Raises
    ------
    TracksideConfigError
        When the file cannot be read or does not describe a track.
    """
    file_path = Path(path)
    try:
        data = json.loads(file_path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise TracksideConfigError(f"cannot read track file {file_path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise TracksideConfigError(f"track file {file_path} is not valid JSON: {exc}") from exc

    try:
        return TrackDefinition.model_validate(data)
    except ValidationError as exc:
        raise TracksideConfigError(f"track file {file_path} is not a track definition: {exc}") from exc
