"""Lap events endpoint (endurance feed).

Endpoints:
  - /api/endurance (GET, recently completed laps)
"""

from __future__ import annotations

from trackside._api._common import get_model
from trackside._constants import LAP_EVENTS_ENDPOINT
from trackside._transport import Transport
from trackside.models.lap_events import LapEventBatch


async def fetch_lap_events(transport: Transport) -> LapEventBatch:
    """Fetch the latest lap events."""
    return await get_model(transport, LAP_EVENTS_ENDPOINT, LapEventBatch, list_key="events")
