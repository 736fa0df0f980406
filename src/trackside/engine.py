"""Composition root: wires polling, projection, track-locking and the store."""

from __future__ import annotations

import asyncio
import contextlib
import enum
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any

import aiohttp

from trackside._api import control as _control_api
from trackside._api import health as _health_api
from trackside._api import lap_events as _lap_events_api
from trackside._api import leaderboard as _leaderboard_api
from trackside._api import telemetry as _telemetry_api
from trackside._transport import HttpTransport, Transport
from trackside.config import TracksideConfig
from trackside.exceptions import MalformedFrameError, TracksideError
from trackside.geo.projection import GeoProjector
from trackside.geo.track import TrackLocator, TrackModel
from trackside.ingestion.apply import FrameApplier
from trackside.ingestion.poller import PollSource, describe
from trackside.models.control import ControlAck, ControlCommand
from trackside.models.frames import ConnectedFrame, TelemetryEndFrame, TelemetryFrame
from trackside.models.lap_events import LapEventBatch
from trackside.models.leaderboard import LeaderboardSnapshot
from trackside.models.track import TrackDefinition, load_track_definition
from trackside.render.interpolator import RenderInterpolator
from trackside.state.store import TelemetryStore

_logger = logging.getLogger(__name__)

#: Errors kept for the error consumer; the oldest is dropped when full.
ERROR_QUEUE_SIZE = 100


class SourceName(enum.StrEnum):
    TELEMETRY = "telemetry"
    LEADERBOARD = "leaderboard"
    LAP_EVENTS = "lap_events"


@dataclass(frozen=True, slots=True)
class SourceError:
    """A polling failure as delivered on the error channel."""

    source: SourceName
    error: Exception


class TelemetryEngine:
    """Live telemetry engine.

    Usage::

        async with TelemetryEngine(TracksideConfig.from_env(), track=track) as engine:
            await engine.start()
            ...
            snapshot = engine.store.snapshot()

    Each poll source pushes decoded frames onto one channel and failures
    onto another; two reconciliation tasks drain them, so the store is
    mutated by a single consumer in arrival order.
    """

    def __init__(
        self,
        config: TracksideConfig | None = None,
        *,
        track: TrackDefinition | Sequence[tuple[float, float]] | None = None,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
        on_error: Callable[[SourceError], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config or TracksideConfig()
        self._track = track
        self._external_session = session is not None
        self._http_session = session
        self._transport = transport
        self._owns_transport = transport is None
        self._on_error = on_error

        self.projector = GeoProjector(default_scale=self._config.geo_scale)
        self.track_model = TrackModel(self.projector)
        self.locator = TrackLocator(self.track_model)
        self.store = TelemetryStore()
        self.interpolator = RenderInterpolator(self._config.interpolation_gain)
        self._applier = FrameApplier(self.store, self.projector, self.locator)

        self._sources: dict[SourceName, PollSource[Any]] = {
            name: PollSource(name.value, transient_log_cooldown=self._config.transient_log_cooldown, clock=clock)
            for name in SourceName
        }
        self._frames: asyncio.Queue[tuple[SourceName, Any]] | None = None
        self._errors: asyncio.Queue[SourceError] | None = None
        self._tasks: list[asyncio.Task[None]] = []
        self._running = False
        self._prepared = False

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> TelemetryEngine:
        if self._transport is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._transport = HttpTransport(self._config, self._http_session)
        self.prepare()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        if self._owns_transport:
            self._transport = None

    @property
    def config(self) -> TracksideConfig:
        return self._config

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_connected(self) -> bool:
        """Telemetry has arrived and its latest poll did not fail."""
        return self._sources[SourceName.TELEMETRY].is_connected

    def source(self, name: SourceName | str) -> PollSource[Any]:
        return self._sources[SourceName(name)]

    def status(self) -> dict[str, dict[str, Any]]:
        return {name.value: describe(source) for name, source in self._sources.items()}

    # ------------------------------------------------------------------
    # Geometry
    # ------------------------------------------------------------------

    def prepare(self) -> None:
        """Fix the geo reference and build the track model. Idempotent.

        An explicit reference in the configuration wins; otherwise the
        centroid of the track centerline is used. Without either, the
        first vehicle fix becomes the reference.
        """
        if self._prepared:
            return
        lat, lon = self._config.reference_lat, self._config.reference_lon
        if lat is not None and lon is not None:
            self.projector.set_reference(lat, lon, self._config.geo_scale)

        track = self._track
        if track is None and self._config.track_file:
            track = load_track_definition(self._config.track_file)
        if track is not None:
            points = self.track_model.build(track, scale=self._config.geo_scale)
            _logger.info("Track model ready (%d centerline points)", len(points))
        else:
            _logger.warning("No track definition configured; vehicles will not be track-locked")
        self._prepared = True

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    def _require_transport(self) -> Transport:
        if self._transport is None:
            raise TracksideError("Engine not initialized. Use 'async with TelemetryEngine(...) as engine:'")
        return self._transport

    def _fetcher(self, transport: Transport, fetch: Callable[[Transport], Awaitable[Any]]) -> Callable[[], Awaitable[Any]]:
        async def _fetch() -> Any:
            return await fetch(transport)

        return _fetch

    def _publish_frame(self, name: SourceName) -> Callable[[Any], None]:
        def _put(payload: Any) -> None:
            if payload is not None and self._frames is not None:
                self._frames.put_nowait((name, payload))

        return _put

    def _publish_error(self, name: SourceName) -> Callable[[Exception], None]:
        def _put(error: Exception) -> None:
            if self._errors is None:
                return
            if self._errors.full():
                self._errors.get_nowait()
            self._errors.put_nowait(SourceError(name, error))

        return _put

    async def start(self) -> None:
        """Start every poll source and the reconciliation tasks. Idempotent."""
        if self._running:
            return
        transport = self._require_transport()
        self.prepare()

        plan: list[tuple[SourceName, Callable[[Transport], Awaitable[Any]], float]] = [
            (SourceName.TELEMETRY, _telemetry_api.fetch_telemetry, self._config.telemetry_interval),
            (SourceName.LEADERBOARD, _leaderboard_api.fetch_leaderboard, self._config.leaderboard_interval),
            (SourceName.LAP_EVENTS, _lap_events_api.fetch_lap_events, self._config.lap_events_interval),
        ]

        frames: asyncio.Queue[tuple[SourceName, Any]] = asyncio.Queue()
        errors: asyncio.Queue[SourceError] = asyncio.Queue(maxsize=ERROR_QUEUE_SIZE)
        self._frames = frames
        self._errors = errors
        self._tasks = [
            asyncio.create_task(self._consume_frames(frames), name="trackside-frames"),
            asyncio.create_task(self._consume_errors(errors), name="trackside-errors"),
        ]
        self._running = True

        for name, fetch, interval in plan:
            self._sources[name].start(
                self._fetcher(transport, fetch),
                interval,
                immediate=self._config.immediate,
                on_data=self._publish_frame(name),
                on_error=self._publish_error(name),
                unusable=(MalformedFrameError,),
            )
        _logger.info("Telemetry engine started against %s", self._config.base_url)

    async def stop(self) -> None:
        """Stop polling; no frame is applied after this returns. Idempotent."""
        if not self._running:
            return
        self._running = False
        await asyncio.gather(*(source.aclose() for source in self._sources.values()))
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._tasks = []
        self._frames = None
        self._errors = None
        _logger.info("Telemetry engine stopped")

    def refetch_now(self, source: SourceName | str | None = None) -> None:
        """Poll one source (or all of them) right away."""
        names = list(SourceName) if source is None else [SourceName(source)]
        for name in names:
            self._sources[name].refetch_now()

    async def _consume_frames(self, frames: asyncio.Queue[tuple[SourceName, Any]]) -> None:
        while True:
            name, payload = await frames.get()
            try:
                self._handle_frame(name, payload)
            except Exception:
                _logger.error("Failed to apply %s frame", name.value, exc_info=True)
            finally:
                frames.task_done()

    async def _consume_errors(self, errors: asyncio.Queue[SourceError]) -> None:
        while True:
            item = await errors.get()
            if self._on_error is not None:
                try:
                    self._on_error(item)
                except Exception:
                    _logger.error("on_error callback failed", exc_info=True)
            errors.task_done()

    async def drain(self) -> None:
        """Wait until every queued frame has been applied."""
        if self._frames is not None:
            await self._frames.join()

    def _handle_frame(self, name: SourceName, payload: Any) -> None:
        if isinstance(payload, TelemetryFrame):
            self._applier.apply_telemetry(payload)
        elif isinstance(payload, ConnectedFrame):
            if payload.has_data:
                _logger.info("Backend connected, race data available")
            else:
                _logger.info("Backend connected, waiting for race data")
        elif isinstance(payload, TelemetryEndFrame):
            _logger.info("Telemetry stream ended")
            self.store.set_paused(True)
        elif isinstance(payload, LeaderboardSnapshot):
            self._applier.apply_leaderboard(payload)
        elif isinstance(payload, LapEventBatch):
            self._applier.apply_lap_events(payload)
        else:
            _logger.error("Unexpected %s payload type %s", name.value, type(payload).__name__)

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    async def _send(self, command: ControlCommand, value: float | None = None) -> ControlAck:
        message = _control_api.build_control_message(command, value)
        return await _control_api.send_control(self._require_transport(), message)

    async def play(self) -> ControlAck:
        ack = await self._send(ControlCommand.PLAY)
        self.store.set_playing(True)
        return ack

    async def pause(self) -> ControlAck:
        ack = await self._send(ControlCommand.PAUSE)
        self.store.set_paused(True)
        return ack

    async def reverse(self) -> ControlAck:
        ack = await self._send(ControlCommand.REVERSE)
        self.store.set_playing(True)
        return ack

    async def restart(self) -> ControlAck:
        """Rewind the replay; race results are cleared, vehicles are kept."""
        ack = await self._send(ControlCommand.RESTART)
        self.store.reset_to_start()
        if self._running:
            self.refetch_now()
        return ack

    async def set_playback_speed(self, speed: float) -> ControlAck:
        ack = await self._send(ControlCommand.SPEED, speed)
        self.store.set_playback_speed(speed)
        return ack

    async def seek(self, position: float) -> ControlAck:
        ack = await self._send(ControlCommand.SEEK, position)
        if self._running:
            self.refetch_now()
        return ack

    def select_vehicle(self, vehicle_id: str | None) -> None:
        self.store.select_vehicle(vehicle_id)

    async def health_check(self) -> dict[str, Any]:
        return await _health_api.fetch_health(self._require_transport())
