from __future__ import annotations

import asyncio
import json
import logging
import math
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import pytest

from trackside.config import TracksideConfig
from trackside.engine import SourceError, SourceName, TelemetryEngine
from trackside.exceptions import ControlCommandError, ServiceUnavailableError, TracksideError, TracksideTransportError
from trackside.models.track import TrackDefinition

TRACK = TrackDefinition.model_validate(
    {
        "name": "test ring",
        "track_path": [
            {"latitude": 33.530, "longitude": -86.620},
            {"latitude": 33.530, "longitude": -86.610},
            {"latitude": 33.540, "longitude": -86.610},
            {"latitude": 33.540, "longitude": -86.620},
        ],
    }
)

# Slow cadence: tests drive cycles explicitly with refetch_now().
CONFIG = TracksideConfig(telemetry_interval=60.0, leaderboard_interval=60.0, lap_events_interval=60.0)


class FakeBackend:
    """In-process stand-in for the telemetry backend."""

    def __init__(self) -> None:
        self.responses: dict[str, Any] = {
            "/api/telemetry": {"type": "connected", "has_data": False},
            "/api/leaderboard": {"leaderboard": []},
            "/api/endurance": {"events": []},
            "/api/health": {"status": "ok"},
        }
        self.control_error: Exception | None = None
        self.posted: list[dict[str, Any]] = []

    async def get_json(self, endpoint: str) -> Any:
        response = self.responses[endpoint]
        if isinstance(response, Exception):
            raise response
        return response

    async def post_json(self, endpoint: str, payload: Mapping[str, Any]) -> Any:
        assert endpoint == "/api/control"
        if self.control_error is not None:
            raise self.control_error
        self.posted.append(dict(payload))
        return {"status": "ok"}


async def _sync(engine: TelemetryEngine) -> None:
    for _ in range(10):
        await asyncio.sleep(0)
    await engine.drain()


def _frame(**vehicles: dict[str, Any]) -> dict[str, Any]:
    return {"type": "telemetry_frame", "timestamp": "2025-04-27T18:00:00Z", "vehicles": vehicles}


@pytest.mark.asyncio
async def test_frames_flow_into_the_store() -> None:
    backend = FakeBackend()
    backend.responses["/api/telemetry"] = {
        **_frame(car1={"gps_lat": 33.5299, "gps_lon": -86.615, "altitude": 180.0, "speed": 120}),
        "weather": {"air_temp": 25.0},
    }
    backend.responses["/api/leaderboard"] = {
        "leaderboard": [{"vehicle_id": "car2", "position": 2}, {"vehicle_id": "car1", "position": 1}]
    }
    backend.responses["/api/endurance"] = {"events": [{"vehicle_id": "car1", "lap": 1, "lap_time": 98.2}]}

    async with TelemetryEngine(CONFIG, track=TRACK, transport=backend) as engine:
        await engine.start()
        await _sync(engine)

        snapshot = engine.store.snapshot()
        entity = snapshot.vehicles["car1"]
        first = engine.track_model.points[0]

        assert snapshot.selected_vehicle_id == "car1"
        assert entity.telemetry["speed"] == 120.0
        assert entity.locked_position.z == pytest.approx(first.z)
        assert entity.raw_position.z < first.z
        assert entity.locked_position.y == pytest.approx(180.0)
        assert entity.heading == pytest.approx(math.pi / 2)
        assert entity.progress is not None
        assert 0.0 < entity.progress < 0.25
        assert [entry.vehicle_id for entry in snapshot.leaderboard] == ["car1", "car2"]
        assert snapshot.lap_events["car1"][0].lap_time == 98.2
        assert snapshot.weather is not None
        assert snapshot.weather.air_temp == 25.0
        assert engine.is_connected


@pytest.mark.asyncio
async def test_frame_without_gps_keeps_locked_position() -> None:
    backend = FakeBackend()
    backend.responses["/api/telemetry"] = _frame(car1={"gps_lat": 33.5299, "gps_lon": -86.615, "speed": 120})

    async with TelemetryEngine(CONFIG, track=TRACK, transport=backend) as engine:
        await engine.start()
        await _sync(engine)
        before = engine.store.snapshot().vehicles["car1"]

        backend.responses["/api/telemetry"] = _frame(car1={"speed": 131, "gear": 5})
        engine.refetch_now(SourceName.TELEMETRY)
        await _sync(engine)

        after = engine.store.snapshot().vehicles["car1"]
        assert after.locked_position == before.locked_position
        assert after.telemetry["speed"] == 131.0
        assert after.telemetry["gear"] == 5.0
        assert after.telemetry["gps_lat"] == 33.5299


@pytest.mark.asyncio
async def test_transient_errors_reach_error_channel() -> None:
    backend = FakeBackend()
    backend.responses["/api/telemetry"] = ServiceUnavailableError("not ready", status_code=503)
    seen: list[SourceError] = []

    async with TelemetryEngine(CONFIG, track=TRACK, transport=backend, on_error=seen.append) as engine:
        await engine.start()
        await _sync(engine)

        assert [item.source for item in seen] == [SourceName.TELEMETRY]
        assert not engine.is_connected

        backend.responses["/api/telemetry"] = _frame(car1={"speed": 1})
        engine.refetch_now("telemetry")
        await _sync(engine)

        assert engine.is_connected
        assert engine.status()["telemetry"]["connected"] is True


@pytest.mark.asyncio
async def test_malformed_frame_is_dropped(caplog: pytest.LogCaptureFixture) -> None:
    backend = FakeBackend()
    backend.responses["/api/telemetry"] = {"type": "mystery"}
    seen: list[SourceError] = []

    with caplog.at_level(logging.ERROR, logger="trackside.ingestion.poller"):
        async with TelemetryEngine(CONFIG, track=TRACK, transport=backend, on_error=seen.append) as engine:
            await engine.start()
            await _sync(engine)

            assert engine.store.snapshot().vehicles == {}
            assert not engine.is_connected
            assert engine.status()["telemetry"]["has_received_data"] is False

            backend.responses["/api/telemetry"] = _frame(car1={"speed": 1})
            engine.refetch_now(SourceName.TELEMETRY)
            await _sync(engine)

            assert engine.is_connected

    assert seen == []
    assert any("telemetry: dropping unusable response" in record.getMessage() for record in caplog.records)


@pytest.mark.asyncio
async def test_start_without_transport_leaves_engine_stopped() -> None:
    engine = TelemetryEngine(CONFIG, track=TRACK)

    with pytest.raises(TracksideError):
        await engine.start()

    assert not engine.is_running
    assert all(not engine.source(name).is_running for name in SourceName)

    backend = FakeBackend()
    async with TelemetryEngine(CONFIG, track=TRACK, transport=backend) as started:
        await started.start()
        assert started.is_running


@pytest.mark.asyncio
async def test_connected_marker_is_logged(caplog: pytest.LogCaptureFixture) -> None:
    backend = FakeBackend()

    with caplog.at_level(logging.INFO, logger="trackside.engine"):
        async with TelemetryEngine(CONFIG, track=TRACK, transport=backend) as engine:
            await engine.start()
            await _sync(engine)

    assert any("waiting for race data" in record.getMessage() for record in caplog.records)


@pytest.mark.asyncio
async def test_end_of_stream_pauses_playback() -> None:
    backend = FakeBackend()

    async with TelemetryEngine(CONFIG, track=TRACK, transport=backend) as engine:
        await engine.start()
        await engine.play()
        assert engine.store.snapshot().is_playing

        backend.responses["/api/telemetry"] = {"type": "telemetry_end"}
        engine.refetch_now("telemetry")
        await _sync(engine)

        assert engine.store.snapshot().is_paused
        assert not engine.store.snapshot().is_playing


@pytest.mark.asyncio
async def test_control_commands_update_store_after_backend_confirms() -> None:
    backend = FakeBackend()
    backend.responses["/api/leaderboard"] = {"leaderboard": [{"vehicle_id": "car1", "position": 1}]}
    backend.responses["/api/telemetry"] = _frame(car1={"speed": 1})

    async with TelemetryEngine(CONFIG, track=TRACK, transport=backend) as engine:
        await engine.start()
        await _sync(engine)

        await engine.set_playback_speed(4.0)
        await engine.pause()
        await engine.seek(120.0)
        backend.responses["/api/leaderboard"] = {"leaderboard": []}
        await engine.restart()

        snapshot = engine.store.snapshot()
        assert snapshot.playback_speed == 4.0
        assert snapshot.is_playing
        assert snapshot.leaderboard == ()
        assert "car1" in snapshot.vehicles
        assert [payload["cmd"] for payload in backend.posted] == ["speed", "pause", "seek", "restart"]
        assert backend.posted[0] == {"type": "control", "cmd": "speed", "value": 4.0}


@pytest.mark.asyncio
async def test_failed_control_command_leaves_store_untouched() -> None:
    backend = FakeBackend()
    backend.control_error = TracksideTransportError("connection refused", endpoint="/api/control")

    async with TelemetryEngine(CONFIG, track=TRACK, transport=backend) as engine:
        with pytest.raises(ControlCommandError):
            await engine.play()
        with pytest.raises(ControlCommandError):
            await engine.set_playback_speed(2.0)

        snapshot = engine.store.snapshot()
        assert not snapshot.is_playing
        assert snapshot.playback_speed == 1.0


@pytest.mark.asyncio
async def test_invalid_speed_never_reaches_backend() -> None:
    backend = FakeBackend()

    async with TelemetryEngine(CONFIG, track=TRACK, transport=backend) as engine:
        with pytest.raises(ControlCommandError):
            await engine.set_playback_speed(0.0)

    assert backend.posted == []


@pytest.mark.asyncio
async def test_no_updates_after_stop() -> None:
    backend = FakeBackend()
    backend.responses["/api/telemetry"] = _frame(car1={"speed": 1})

    async with TelemetryEngine(CONFIG, track=TRACK, transport=backend) as engine:
        await engine.start()
        await _sync(engine)
        await engine.stop()
        await engine.stop()
        assert not engine.is_running

        backend.responses["/api/telemetry"] = _frame(car1={"speed": 2}, car2={"speed": 3})
        engine.refetch_now()
        await asyncio.sleep(0.01)

        snapshot = engine.store.snapshot()
        assert set(snapshot.vehicles) == {"car1"}
        assert snapshot.vehicles["car1"].telemetry["speed"] == 1.0


@pytest.mark.asyncio
async def test_health_check_and_uninitialized_engine() -> None:
    backend = FakeBackend()

    async with TelemetryEngine(CONFIG, transport=backend) as engine:
        assert await engine.health_check() == {"status": "ok"}

    with pytest.raises(TracksideError):
        await TelemetryEngine(CONFIG).health_check()


@pytest.mark.asyncio
async def test_configured_reference_wins_over_track_centroid() -> None:
    config = TracksideConfig(reference_lat=33.5, reference_lon=-86.6, geo_scale=2.0)

    async with TelemetryEngine(config, track=TRACK, transport=FakeBackend()) as engine:
        reference = engine.projector.reference

    assert reference is not None
    assert (reference.origin_lat, reference.origin_lon, reference.scale) == (33.5, -86.6, 2.0)


@pytest.mark.asyncio
async def test_track_loaded_from_configured_file(tmp_path: Path) -> None:
    path = tmp_path / "track.json"
    path.write_text(json.dumps(TRACK.model_dump(mode="json")), encoding="utf-8")
    config = TracksideConfig(track_file=str(path))

    async with TelemetryEngine(config, transport=FakeBackend()) as engine:
        assert len(engine.track_model.points) == 4
        assert engine.projector.reference is not None
        assert engine.projector.reference.origin_lat == pytest.approx(33.535)
