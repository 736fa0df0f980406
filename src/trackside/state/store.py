"""Reconciled, render-ready telemetry state.

This is the only component allowed to merge polled frames. Every mutation
builds a new :class:`TelemetrySnapshot` and swaps it in as a whole, so a
reader holding a snapshot never observes a partially-updated entity.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Callable, Mapping
from types import MappingProxyType
from typing import Any

from trackside.geo.projection import ORIGIN, LocalPoint
from trackside.geo.track import TrackLocation
from trackside.ingestion.normalize import prune_patch
from trackside.models.lap_events import LapEvent
from trackside.models.leaderboard import LeaderboardEntry
from trackside.models.weather import WeatherData

_logger = logging.getLogger(__name__)

SnapshotListener = Callable[["TelemetrySnapshot"], None]


def _frozen_mapping() -> Mapping[str, Any]:
    return MappingProxyType({})


@dataclasses.dataclass(frozen=True, slots=True)
class VehicleEntity:
    """One vehicle as seen by the renderer.

    Entities are created on the first frame mentioning a vehicle and are
    never removed during a session, even when the vehicle stops reporting.
    """

    id: str
    raw_position: LocalPoint = ORIGIN
    locked_position: LocalPoint = ORIGIN
    heading: float = 0.0
    progress: float | None = None
    telemetry: Mapping[str, Any] = dataclasses.field(default_factory=_frozen_mapping)
    last_update_timestamp: str | None = None


@dataclasses.dataclass(frozen=True, slots=True)
class TelemetrySnapshot:
    """Immutable view of the whole store at one point in time."""

    vehicles: Mapping[str, VehicleEntity] = dataclasses.field(default_factory=_frozen_mapping)
    selected_vehicle_id: str | None = None
    weather: WeatherData | None = None
    weather_enabled: bool = True
    is_playing: bool = False
    is_paused: bool = True
    playback_speed: float = 1.0
    lap_events: Mapping[str, tuple[LapEvent, ...]] = dataclasses.field(default_factory=_frozen_mapping)
    leaderboard: tuple[LeaderboardEntry, ...] = ()

    @property
    def selected_vehicle(self) -> VehicleEntity | None:
        if self.selected_vehicle_id is None:
            return None
        return self.vehicles.get(self.selected_vehicle_id)


class TelemetryStore:
    """Single owner of the render-ready state.

    Mutations happen only through the methods below; readers call
    :meth:`snapshot` or :meth:`subscribe`.
    """

    def __init__(self) -> None:
        self._snapshot = TelemetrySnapshot()
        self._listeners: list[SnapshotListener] = []
        # Set once a vehicle has ever been selected, manually or automatically.
        self._auto_select_consumed = False

    def snapshot(self) -> TelemetrySnapshot:
        return self._snapshot

    @property
    def auto_select_consumed(self) -> bool:
        return self._auto_select_consumed

    # ------------------------------------------------------------------
    # Subscription
    # ------------------------------------------------------------------

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Call *listener* with every new snapshot. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _commit(self, snapshot: TelemetrySnapshot) -> None:
        self._snapshot = snapshot
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                _logger.error("Snapshot listener failed", exc_info=True)

    def _replace(self, **changes: Any) -> None:
        self._commit(dataclasses.replace(self._snapshot, **changes))

    # ------------------------------------------------------------------
    # Vehicles
    # ------------------------------------------------------------------

    def upsert_vehicle(
        self,
        vehicle_id: str,
        telemetry: Mapping[str, Any],
        projected: TrackLocation | None = None,
        *,
        raw_position: LocalPoint | None = None,
        timestamp: str | None = None,
    ) -> VehicleEntity:
        """Sparse-merge *telemetry* into the entity for *vehicle_id*.

        Keys missing from *telemetry* (or ``None``) keep their previous
        value. Without *projected* the previous position and heading are
        kept, so a frame lacking GPS never moves the vehicle.

        The very first vehicle ever seen is selected automatically, unless
        a vehicle has been selected before.
        """
        state = self._snapshot
        existing = state.vehicles.get(vehicle_id)
        was_empty = not state.vehicles

        merged = dict(existing.telemetry) if existing is not None else {}
        merged.update(prune_patch(dict(telemetry)))

        base = existing if existing is not None else VehicleEntity(id=vehicle_id)
        changes: dict[str, Any] = {"telemetry": MappingProxyType(merged)}
        if raw_position is not None:
            changes["raw_position"] = raw_position
        if projected is not None:
            changes["locked_position"] = projected.position
            changes["heading"] = projected.heading
            changes["progress"] = projected.progress
        if timestamp is not None:
            changes["last_update_timestamp"] = timestamp
        entity = dataclasses.replace(base, **changes)

        vehicles = dict(state.vehicles)
        vehicles[vehicle_id] = entity

        selected = state.selected_vehicle_id
        if selected is None and was_empty and not self._auto_select_consumed:
            selected = vehicle_id
            self._auto_select_consumed = True
            _logger.debug("Auto-selected first vehicle %s", vehicle_id)

        self._replace(vehicles=MappingProxyType(vehicles), selected_vehicle_id=selected)
        return entity

    def select_vehicle(self, vehicle_id: str | None) -> None:
        """Select a vehicle for the detail view (``None`` clears the selection)."""
        if vehicle_id is not None:
            self._auto_select_consumed = True
        self._replace(selected_vehicle_id=vehicle_id)

    def auto_select_first_vehicle(self) -> str | None:
        """Select the first known vehicle when nothing is selected."""
        state = self._snapshot
        if state.selected_vehicle_id is not None or not state.vehicles:
            return state.selected_vehicle_id
        first = next(iter(state.vehicles))
        self.select_vehicle(first)
        return first

    # ------------------------------------------------------------------
    # Race data
    # ------------------------------------------------------------------

    def upsert_leaderboard(self, entry: LeaderboardEntry) -> None:
        """Replace the entry of ``entry.vehicle_id``, then stable-sort by position."""
        board = list(self._snapshot.leaderboard)
        for index, current in enumerate(board):
            if current.vehicle_id == entry.vehicle_id:
                board[index] = entry
                break
        else:
            board.append(entry)
        board.sort(key=lambda item: item.position)
        self._replace(leaderboard=tuple(board))

    def add_lap_event(self, event: LapEvent) -> None:
        """Record a lap event; a repeated lap replaces the earlier report."""
        events = dict(self._snapshot.lap_events)
        per_vehicle = [item for item in events.get(event.vehicle_id, ()) if item.lap != event.lap]
        per_vehicle.append(event)
        per_vehicle.sort(key=lambda item: item.lap)
        events[event.vehicle_id] = tuple(per_vehicle)
        self._replace(lap_events=MappingProxyType(events))

    def set_weather(self, weather: WeatherData) -> None:
        self._replace(weather=weather)

    def set_weather_enabled(self, enabled: bool) -> None:
        self._replace(weather_enabled=enabled)

    # ------------------------------------------------------------------
    # Playback
    # ------------------------------------------------------------------

    def set_playing(self, playing: bool) -> None:
        self._replace(is_playing=playing, is_paused=not playing)

    def set_paused(self, paused: bool) -> None:
        self._replace(is_paused=paused, is_playing=not paused)

    def set_playback_speed(self, speed: float) -> None:
        if speed <= 0:
            raise ValueError(f"playback speed must be positive, got {speed}")
        self._replace(playback_speed=float(speed))

    def reset_to_start(self) -> None:
        """Playback restarted: drop race results, keep the known vehicles."""
        self._replace(leaderboard=(), lap_events=_frozen_mapping(), is_playing=True, is_paused=False)

    def reset(self) -> None:
        """Back to the initial state. The auto-select latch is kept."""
        self._commit(TelemetrySnapshot())
