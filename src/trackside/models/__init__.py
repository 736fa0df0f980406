"""Data models for backend payloads and static track data."""

from trackside.models._base import TracksideBaseModel
from trackside.models.control import ControlAck, ControlCommand, ControlMessage
from trackside.models.frames import (
    ConnectedFrame,
    TelemetryEndFrame,
    TelemetryFrame,
    TelemetryMessage,
    VehicleTelemetry,
    decode_telemetry_frame,
)
from trackside.models.lap_events import LapEvent, LapEventBatch
from trackside.models.leaderboard import LeaderboardEntry, LeaderboardSnapshot
from trackside.models.track import TrackDefinition, TrackPoint, TrackTurn, load_track_definition
from trackside.models.weather import WeatherData

__all__ = [
    "ConnectedFrame",
    "ControlAck",
    "ControlCommand",
    "ControlMessage",
    "LapEvent",
    "LapEventBatch",
    "LeaderboardEntry",
    "LeaderboardSnapshot",
    "TelemetryEndFrame",
    "TelemetryFrame",
    "TelemetryMessage",
    "TrackDefinition",
    "TrackPoint",
    "TrackTurn",
    "TracksideBaseModel",
    "VehicleTelemetry",
    "WeatherData",
    "decode_telemetry_frame",
    "load_track_definition",
]
