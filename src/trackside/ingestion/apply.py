"""Frame application helpers.

This module centralizes how decoded frames turn into store mutations:

- geodetic fields go through the projector into the local frame
- the raw local point is snapped onto the track centerline
- the rest of the sample is sparse-merged into the vehicle entity

Every polled resource (telemetry, leaderboard, lap events) has one
``apply_*`` entry point here, so the engine never touches the store's
mutation API directly for frame data.
"""

from __future__ import annotations

import logging

from trackside.geo.projection import GeoProjector, LocalPoint
from trackside.geo.track import TrackLocation, TrackLocator
from trackside.models.frames import TelemetryFrame, VehicleTelemetry
from trackside.models.lap_events import LapEventBatch
from trackside.models.leaderboard import LeaderboardSnapshot
from trackside.state.store import TelemetryStore

_logger = logging.getLogger(__name__)


class FrameApplier:
    """Turns decoded frames into :class:`TelemetryStore` updates."""

    def __init__(self, store: TelemetryStore, projector: GeoProjector, locator: TrackLocator) -> None:
        self._store = store
        self._projector = projector
        self._locator = locator

    def _lock(self, sample: VehicleTelemetry) -> tuple[LocalPoint | None, TrackLocation | None]:
        lat, lon = sample.gps_lat, sample.gps_lon
        if not sample.has_fix or lat is None or lon is None:
            return None, None
        raw = self._projector.to_local(lat, lon, sample.altitude or 0.0)
        return raw, self._locator.locate(raw)

    def apply_telemetry(self, frame: TelemetryFrame) -> int:
        """Upsert every vehicle of *frame*; returns the number of vehicles applied."""
        for vehicle_id, sample in frame.vehicles.items():
            raw, location = self._lock(sample)
            self._store.upsert_vehicle(
                vehicle_id,
                sample.channels(),
                location,
                raw_position=raw,
                timestamp=frame.timestamp,
            )
        if frame.weather is not None:
            self._store.set_weather(frame.weather)
        return len(frame.vehicles)

    def apply_leaderboard(self, snapshot: LeaderboardSnapshot) -> int:
        for entry in snapshot.leaderboard:
            self._store.upsert_leaderboard(entry)
        return len(snapshot.leaderboard)

    def apply_lap_events(self, batch: LapEventBatch) -> int:
        for event in batch.events:
            self._store.add_lap_event(event)
        if batch.events:
            _logger.debug("Applied %d lap event(s)", len(batch.events))
        return len(batch.events)
