"""Render-side smoothing.

Polling delivers targets at 2-10 Hz while a renderer ticks at 60 Hz or
more. :class:`RenderInterpolator` keeps a displayed pose per vehicle and
moves it towards the latest confirmed target on every tick with an
exponential approach: ``current += (target - current) * min(1, delta * gain)``.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass

from trackside._constants import INTERPOLATION_GAIN
from trackside.geo.projection import LocalPoint
from trackside.state.store import TelemetrySnapshot, TelemetryStore, VehicleEntity

_logger = logging.getLogger(__name__)

_TWO_PI = 2.0 * math.pi


def wrap_angle(angle: float) -> float:
    """Wrap *angle* (radians) into ``[-pi, pi)``."""
    return (angle + math.pi) % _TWO_PI - math.pi


def shortest_angle_diff(current: float, target: float) -> float:
    """Signed rotation from *current* to *target* along the shorter way round."""
    return wrap_angle(target - current)


@dataclass(frozen=True, slots=True)
class RenderPose:
    position: LocalPoint
    heading: float


class RenderInterpolator:
    """Per-vehicle displayed poses, advanced once per render tick."""

    def __init__(self, gain: float = INTERPOLATION_GAIN) -> None:
        if gain <= 0:
            raise ValueError(f"gain must be positive, got {gain}")
        self._gain = gain
        self._poses: dict[str, RenderPose] = {}

    @property
    def poses(self) -> Mapping[str, RenderPose]:
        return dict(self._poses)

    def factor(self, delta: float) -> float:
        """Blend factor for a tick of *delta* seconds."""
        return min(1.0, max(0.0, delta) * self._gain)

    def advance(self, vehicle_id: str, target_position: LocalPoint, target_heading: float, delta: float) -> RenderPose:
        """Move one vehicle's displayed pose towards its target.

        The first observation of a vehicle snaps straight to the target.
        """
        current = self._poses.get(vehicle_id)
        if current is None:
            pose = RenderPose(position=target_position, heading=target_heading)
            self._poses[vehicle_id] = pose
            return pose

        k = self.factor(delta)
        position = LocalPoint(
            current.position.x + (target_position.x - current.position.x) * k,
            current.position.y + (target_position.y - current.position.y) * k,
            current.position.z + (target_position.z - current.position.z) * k,
        )
        heading = wrap_angle(current.heading + shortest_angle_diff(current.heading, target_heading) * k)
        pose = RenderPose(position=position, heading=heading)
        self._poses[vehicle_id] = pose
        return pose

    def tick(self, source: TelemetrySnapshot | TelemetryStore, delta: float) -> dict[str, RenderPose]:
        """Advance every vehicle of *source* by *delta* seconds.

        Vehicles present only in earlier snapshots keep their last pose.
        """
        snapshot = source.snapshot() if isinstance(source, TelemetryStore) else source
        vehicles: Mapping[str, VehicleEntity] = snapshot.vehicles
        return {
            vehicle_id: self.advance(vehicle_id, entity.locked_position, entity.heading, delta)
            for vehicle_id, entity in vehicles.items()
        }

    def forget(self, vehicle_id: str) -> None:
        """Drop a displayed pose; the next tick snaps to the target again."""
        self._poses.pop(vehicle_id, None)

    def clear(self) -> None:
        self._poses.clear()
        _logger.debug("Render poses cleared")
