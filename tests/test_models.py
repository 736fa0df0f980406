from __future__ import annotations

import json
from pathlib import Path

import pytest

from trackside.exceptions import MalformedFrameError, TracksideConfigError
from trackside.models import (
    ConnectedFrame,
    ControlCommand,
    ControlMessage,
    LapEventBatch,
    LeaderboardSnapshot,
    TelemetryEndFrame,
    TelemetryFrame,
    TrackDefinition,
    decode_telemetry_frame,
    load_track_definition,
)


def test_decode_connected_marker() -> None:
    frame = decode_telemetry_frame({"type": "connected", "has_data": True})

    assert isinstance(frame, ConnectedFrame)
    assert frame.has_data


def test_decode_end_marker() -> None:
    assert isinstance(decode_telemetry_frame({"type": "telemetry_end"}), TelemetryEndFrame)


def test_decode_untagged_frame_with_vehicles() -> None:
    frame = decode_telemetry_frame(
        {
            "timestamp": "2025-04-27T18:00:00.000Z",
            "vehicles": {
                "GR86-002-2": {
                    "gps_lat": "33.53",
                    "gps_lon": -86.62,
                    "speed": "--",
                    "gear": 4,
                    "oil_temp": "96.5",
                },
                "GR86-004-78": "",
            },
            "weather": {"air_temp": "22.5", "humidity": "--"},
        }
    )

    assert isinstance(frame, TelemetryFrame)
    assert list(frame.vehicles) == ["GR86-002-2"]
    sample = frame.vehicles["GR86-002-2"]
    assert sample.gps_lat == 33.53
    assert sample.speed is None
    assert sample.has_fix
    assert sample.extra_channels == {"oil_temp": 96.5}
    assert sample.channels() == {"gps_lat": 33.53, "gps_lon": -86.62, "gear": 4.0, "oil_temp": 96.5}
    assert frame.weather is not None
    assert frame.weather.air_temp == 22.5
    assert frame.weather.humidity is None


def test_sample_without_coordinates_has_no_fix() -> None:
    frame = decode_telemetry_frame({"type": "telemetry_frame", "vehicles": {"V1": {"speed": 100, "gps_lat": 1.0}}})

    assert isinstance(frame, TelemetryFrame)
    assert not frame.vehicles["V1"].has_fix


@pytest.mark.parametrize("payload", [[], "hello", {"type": "mystery"}, {"foo": 1}])
def test_unknown_payloads_are_malformed(payload: object) -> None:
    with pytest.raises(MalformedFrameError) as exc_info:
        decode_telemetry_frame(payload)

    assert exc_info.value.payload == payload


def test_leaderboard_skips_foreign_and_invalid_entries() -> None:
    snapshot = LeaderboardSnapshot.model_validate(
        {
            "leaderboard": [
                {"type": "leaderboard_entry", "vehicle_id": "A", "position": "1", "laps": 12, "best_lap_kph": "140.2"},
                {"type": "lap_event", "vehicle_id": "B", "position": 2},
                {"vehicle_id": "C", "position": 3},
                {"vehicle_id": "", "position": 4},
                "garbage",
            ]
        }
    )

    assert [entry.vehicle_id for entry in snapshot.leaderboard] == ["A", "C"]
    assert snapshot.leaderboard[0].position == 1
    assert snapshot.leaderboard[0].best_lap_kph == 140.2
    assert "leaderboard" in snapshot.raw


def test_bare_leaderboard_entry_is_accepted() -> None:
    snapshot = LeaderboardSnapshot.model_validate({"type": "leaderboard_entry", "vehicle_id": "A", "position": 1})

    assert len(snapshot.leaderboard) == 1


def test_lap_event_batch_shapes() -> None:
    batch = LapEventBatch.model_validate(
        {
            "events": [
                {"vehicle_id": "V1", "lap": "3", "lap_time": "98.4", "sector_times": ["30.1", "--", 35.0], "pit": True},
                {"vehicle_id": "V2"},
            ]
        }
    )
    assert len(batch.events) == 1
    event = batch.events[0]
    assert event.lap == 3
    assert event.sector_times == [30.1, None, 35.0]
    assert event.pit

    bare = LapEventBatch.model_validate({"type": "lap_event", "vehicle_id": "V1", "lap": 1})
    assert [item.lap for item in bare.events] == [1]


def test_control_message_wire_shape() -> None:
    assert ControlMessage(cmd=ControlCommand.PLAY).to_payload() == {"type": "control", "cmd": "play"}
    assert ControlMessage(cmd="speed", value=2).to_payload() == {"type": "control", "cmd": "speed", "value": 2.0}


@pytest.mark.parametrize(
    ("cmd", "value"),
    [("speed", None), ("speed", 0), ("seek", -1), ("pause", 1.0), ("warp", None)],
)
def test_control_message_rejects_bad_arguments(cmd: str, value: float | None) -> None:
    with pytest.raises(ValueError):
        ControlMessage(cmd=cmd, value=value)


def test_track_definition_accepts_camel_case(tmp_path: Path) -> None:
    path = tmp_path / "track.json"
    path.write_text(
        json.dumps(
            {
                "name": "Barber",
                "trackPath": [{"lat": 33.53, "lng": -86.62}, {"latitude": 33.54, "longitude": -86.61}],
                "turns": [{"id": 1, "name": "T1", "point": 0}, {"id": 2}],
            }
        ),
        encoding="utf-8",
    )

    definition = load_track_definition(path)

    assert isinstance(definition, TrackDefinition)
    assert definition.coordinates == [(33.53, -86.62), (33.54, -86.61)]
    assert len(definition.turns) == 1


def test_invalid_track_file_raises_config_error(tmp_path: Path) -> None:
    missing = tmp_path / "missing.json"
    with pytest.raises(TracksideConfigError):
        load_track_definition(missing)

    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    with pytest.raises(TracksideConfigError):
        load_track_definition(broken)

    wrong = tmp_path / "wrong.json"
    wrong.write_text(json.dumps({"trackPath": [{"lat": 200, "lng": 0}]}), encoding="utf-8")
    with pytest.raises(TracksideConfigError):
        load_track_definition(wrong)
