"""Leaderboard models."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import Field, field_validator, model_validator

from trackside.ingestion.normalize import safe_float, safe_int, safe_str
from trackside.models._base import TracksideBaseModel

_logger = logging.getLogger(__name__)

LEADERBOARD_ENTRY_TYPE = "leaderboard_entry"


class LeaderboardEntry(TracksideBaseModel):
    """One vehicle's standing.

    Parameters
    ----------
    vehicle_id : str
        Key of the entry; one entry per vehicle is kept.
    position : int
        Overall position, 1 = leader.
    pic : int or None
        Position in class.
    laps : int or None
        Completed laps.
    best_lap_time : str or None
        Best lap time as formatted by the timing system.
    """

    vehicle_id: str
    position: int
    type: str = LEADERBOARD_ENTRY_TYPE
    class_type: str | None = None
    pic: int | None = None
    vehicle: str | None = None
    laps: int | None = None
    elapsed: str | None = None
    gap_first: str | None = None
    gap_previous: str | None = None
    best_lap_num: int | None = None
    best_lap_time: str | None = None
    best_lap_kph: float | None = None

    @field_validator("vehicle_id", mode="before")
    @classmethod
    def _coerce_vehicle_id(cls, value: Any) -> str:
        text = safe_str(value)
        if text is None:
            raise ValueError("vehicle_id must be non-empty")
        return text

    @field_validator("position", "pic", "laps", "best_lap_num", mode="before")
    @classmethod
    def _coerce_ints(cls, value: Any) -> int | None:
        return safe_int(value)

    @field_validator("best_lap_kph", mode="before")
    @classmethod
    def _coerce_kph(cls, value: Any) -> float | None:
        return safe_float(value)

    @field_validator("class_type", "vehicle", "elapsed", "gap_first", "gap_previous", "best_lap_time", mode="before")
    @classmethod
    def _coerce_strs(cls, value: Any) -> str | None:
        return safe_str(value)


class LeaderboardSnapshot(TracksideBaseModel):
    """Payload of the leaderboard endpoint.

    Accepts either ``{"leaderboard": [...]}`` or a single bare entry.
    Items tagged with another ``type`` or failing validation are skipped.
    """

    leaderboard: list[LeaderboardEntry] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _normalize_shapes(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        items = values.get("leaderboard")
        if items is None and values.get("type") == LEADERBOARD_ENTRY_TYPE:
            items = [values]
        if not isinstance(items, list):
            items = []

        entries: list[LeaderboardEntry] = []
        for item in items:
            if not isinstance(item, dict):
                continue
            if item.get("type", LEADERBOARD_ENTRY_TYPE) != LEADERBOARD_ENTRY_TYPE:
                continue
            try:
                entries.append(LeaderboardEntry.model_validate(item))
            except ValueError:
                _logger.debug("Skipping invalid leaderboard entry: %r", item, exc_info=True)
        merged = dict(values)
        merged["leaderboard"] = entries
        merged.setdefault("raw", values)
        return merged
