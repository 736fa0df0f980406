"""Track centerline model and nearest-segment locator.

The centerline is a closed polyline in the local frame: segment ``i`` runs
from point ``i`` to point ``(i + 1) % N``, so the last segment closes the
loop. Locating is a linear scan over all segments, fine for the few
hundred points of a typical circuit.

Headings follow the 3D scene convention: ``atan2(dx, dz)``, i.e. 0 faces
north (+z) and angles grow clockwise towards east (+x).
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass

from trackside.geo.projection import GeoProjector, LocalPoint
from trackside.models.track import TrackDefinition

_logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TrackLocation:
    """Result of snapping a raw point onto the centerline.

    ``progress`` is ``(segment_index + t) / N``: a fraction-of-lap proxy that
    assumes equal segment lengths, not true arc length.
    """

    position: LocalPoint
    heading: float
    segment_index: int
    t: float
    distance: float
    progress: float


def heading_of(start: LocalPoint, end: LocalPoint) -> float:
    """Heading of the direction ``start -> end`` (0 = north, clockwise)."""
    return math.atan2(end.x - start.x, end.z - start.z)


def project_onto_segment(point: LocalPoint, start: LocalPoint, end: LocalPoint) -> tuple[LocalPoint, float, float]:
    """Closest point of segment ``start-end`` to *point*, ignoring altitude.

    Returns ``(closest, t, distance)``; ``closest`` keeps the altitude of
    *point*. A zero-length segment behaves like a single point with ``t=0``.
    """
    dx = end.x - start.x
    dz = end.z - start.z
    length_sq = dx * dx + dz * dz

    if length_sq == 0:
        closest = LocalPoint(start.x, point.y, start.z)
        return closest, 0.0, point.planar_distance(closest)

    t = ((point.x - start.x) * dx + (point.z - start.z) * dz) / length_sq
    t = max(0.0, min(1.0, t))
    closest = LocalPoint(start.x + t * dx, point.y, start.z + t * dz)
    return closest, t, point.planar_distance(closest)


class TrackModel:
    """Cached local-frame centerline built from a geodetic track definition."""

    def __init__(self, projector: GeoProjector) -> None:
        self._projector = projector
        self._points: tuple[LocalPoint, ...] | None = None

    @property
    def is_built(self) -> bool:
        return self._points is not None

    @property
    def points(self) -> tuple[LocalPoint, ...]:
        """Centerline points; empty until :meth:`build` ran."""
        return self._points or ()

    def build(self, definition: TrackDefinition | Sequence[tuple[float, float]], *, scale: float = 1.0) -> tuple[LocalPoint, ...]:
        """Project the centerline once and cache it.

        Repeated calls return the cached model until :meth:`invalidate`.
        When the projector has no reference yet, the centroid of the
        centerline becomes the reference so the track is always centered
        the same way.
        """
        if self._points is not None:
            return self._points

        coords = definition.coordinates if isinstance(definition, TrackDefinition) else list(definition)
        if coords and not self._projector.has_reference:
            self._projector.set_reference_from_centroid(coords, scale)

        self._points = tuple(self._projector.to_local(lat, lon, 0.0) for lat, lon in coords)
        _logger.debug("Track model built with %d centerline points", len(self._points))
        return self._points

    def build_local(self, points: Sequence[LocalPoint]) -> tuple[LocalPoint, ...]:
        """Cache a centerline that is already in the local frame."""
        self._points = tuple(points)
        return self._points

    def invalidate(self) -> None:
        """Drop the cached centerline (the track definition changed)."""
        self._points = None


class TrackLocator:
    """Snaps raw local-frame points onto a :class:`TrackModel`."""

    def __init__(self, model: TrackModel) -> None:
        self._model = model

    def locate(self, point: LocalPoint) -> TrackLocation:
        """Nearest point of the closed centerline and the heading there."""
        points = self._model.points
        count = len(points)

        if count == 0:
            return TrackLocation(position=point, heading=0.0, segment_index=0, t=0.0, distance=0.0, progress=0.0)

        if count == 1:
            snapped = points[0].with_altitude(point.y)
            return TrackLocation(
                position=snapped,
                heading=0.0,
                segment_index=0,
                t=0.0,
                distance=point.planar_distance(snapped),
                progress=0.0,
            )

        best_distance = math.inf
        best_closest = point
        best_index = 0
        best_t = 0.0
        for index in range(count):
            start = points[index]
            end = points[(index + 1) % count]
            closest, t, distance = project_onto_segment(point, start, end)
            if distance < best_distance:
                best_distance = distance
                best_closest = closest
                best_index = index
                best_t = t

        # The end of a segment is the start of the next one: a point sitting
        # on a vertex takes the outgoing segment's heading.
        if best_t >= 1.0:
            best_index = (best_index + 1) % count
            best_t = 0.0

        start = points[best_index]
        end = points[(best_index + 1) % count]
        return TrackLocation(
            position=best_closest,
            heading=heading_of(start, end),
            segment_index=best_index,
            t=best_t,
            distance=best_distance,
            progress=((best_index + best_t) / count) % 1.0,
        )

    def progress(self, point: LocalPoint) -> float:
        """Fraction of the lap in [0, 1), assuming equal segment lengths."""
        return self.locate(point).progress

    def position_at_progress(self, progress: float, altitude: float = 0.0) -> LocalPoint:
        """Centerline point at *progress*, the inverse of :meth:`progress`."""
        points = self._model.points
        count = len(points)
        if count == 0:
            return LocalPoint(0.0, altitude, 0.0)
        if count == 1:
            return points[0].with_altitude(altitude)

        exact = max(0.0, min(1.0, progress)) * count
        index = int(math.floor(exact)) % count
        t = exact - math.floor(exact)
        start = points[index]
        end = points[(index + 1) % count]
        return LocalPoint(start.x + t * (end.x - start.x), altitude, start.z + t * (end.z - start.z))
