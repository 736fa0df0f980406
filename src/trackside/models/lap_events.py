"""Lap event models (endurance feed)."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import Field, field_validator, model_validator

from trackside.ingestion.normalize import safe_float, safe_int, safe_str
from trackside.models._base import TracksideBaseModel

_logger = logging.getLogger(__name__)

LAP_EVENT_TYPE = "lap_event"


class LapEvent(TracksideBaseModel):
    """A completed lap of one vehicle."""

    vehicle_id: str
    lap: int
    type: str = LAP_EVENT_TYPE
    lap_time: float | None = None
    sector_times: list[float | None] = Field(default_factory=list)
    top_speed: float | None = None
    flag: str | None = None
    pit: bool = False
    timestamp: str | None = None

    @field_validator("vehicle_id", mode="before")
    @classmethod
    def _coerce_vehicle_id(cls, value: Any) -> str:
        text = safe_str(value)
        if text is None:
            raise ValueError("vehicle_id must be non-empty")
        return text

    @field_validator("lap", mode="before")
    @classmethod
    def _coerce_lap(cls, value: Any) -> int | None:
        return safe_int(value)

    @field_validator("lap_time", "top_speed", mode="before")
    @classmethod
    def _coerce_floats(cls, value: Any) -> float | None:
        return safe_float(value)

    @field_validator("sector_times", mode="before")
    @classmethod
    def _coerce_sectors(cls, value: Any) -> list[float | None]:
        if not isinstance(value, list):
            return []
        return [safe_float(item) for item in value]

    @field_validator("flag", "timestamp", mode="before")
    @classmethod
    def _coerce_strs(cls, value: Any) -> str | None:
        return safe_str(value)


class LapEventBatch(TracksideBaseModel):
    """Payload of the lap-events endpoint.

    Accepts either ``{"events": [...]}`` or a single bare lap event.
    """

    events: list[LapEvent] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _normalize_shapes(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        items = values.get("events")
        if items is None and values.get("type") == LAP_EVENT_TYPE:
            items = [values]
        if not isinstance(items, list):
            items = []

        events: list[LapEvent] = []
        for item in items:
            if not isinstance(item, dict) or item.get("type", LAP_EVENT_TYPE) != LAP_EVENT_TYPE:
                continue
            try:
                events.append(LapEvent.model_validate(item))
            except ValueError:
                _logger.debug("Skipping invalid lap event: %r", item, exc_info=True)
        merged = dict(values)
        merged["events"] = events
        merged.setdefault("raw", values)
        return merged
