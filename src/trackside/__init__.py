"""trackside - Async live race telemetry ingestion and track-locking engine."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("trackside")
except PackageNotFoundError:
    __version__ = "0+local"
from trackside.config import TracksideConfig
from trackside.engine import SourceError, SourceName, TelemetryEngine
from trackside.exceptions import (
    ControlCommandError,
    GeoReferenceError,
    MalformedFrameError,
    RequestTimeoutError,
    ServiceUnavailableError,
    TracksideConfigError,
    TracksideError,
    TracksideTransportError,
)
from trackside.geo import GeoProjector, GeoReference, LocalPoint, TrackLocation, TrackLocator, TrackModel
from trackside.ingestion.poller import PollController, PollSource, PollState
from trackside.models import (
    ConnectedFrame,
    ControlCommand,
    LapEvent,
    LeaderboardEntry,
    TelemetryEndFrame,
    TelemetryFrame,
    TrackDefinition,
    VehicleTelemetry,
    WeatherData,
    load_track_definition,
)
from trackside.render import RenderInterpolator, RenderPose
from trackside.state import TelemetrySnapshot, TelemetryStore, VehicleEntity

__all__ = [
    "__version__",
    "ConnectedFrame",
    "ControlCommand",
    "ControlCommandError",
    "GeoProjector",
    "GeoReference",
    "GeoReferenceError",
    "LapEvent",
    "LeaderboardEntry",
    "LocalPoint",
    "MalformedFrameError",
    "PollController",
    "PollSource",
    "PollState",
    "RenderInterpolator",
    "RenderPose",
    "RequestTimeoutError",
    "ServiceUnavailableError",
    "SourceError",
    "SourceName",
    "TelemetryEndFrame",
    "TelemetryEngine",
    "TelemetryFrame",
    "TelemetrySnapshot",
    "TelemetryStore",
    "TrackDefinition",
    "TrackLocation",
    "TrackLocator",
    "TrackModel",
    "TracksideConfig",
    "TracksideConfigError",
    "TracksideError",
    "TracksideTransportError",
    "VehicleEntity",
    "VehicleTelemetry",
    "WeatherData",
    "load_track_definition",
]
