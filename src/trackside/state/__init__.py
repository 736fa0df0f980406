"""State/store layer.

This package is the single source of truth for how polled telemetry,
leaderboard and lap-event frames are merged into a render-ready snapshot.
"""

from trackside.state.store import TelemetrySnapshot, TelemetryStore, VehicleEntity

__all__ = ["TelemetrySnapshot", "TelemetryStore", "VehicleEntity"]
