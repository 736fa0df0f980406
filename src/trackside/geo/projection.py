"""Geodetic to local tangent-plane projection.

Uses an equirectangular approximation around a fixed reference point,
which is accurate enough over a circuit a few kilometers wide. Local
axes: ``x`` = east, ``z`` = north, ``y`` = altitude, all in meters times
the configured scale.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass

from trackside._constants import EARTH_RADIUS
from trackside.exceptions import GeoReferenceError

_logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class GeoReference:
    """Origin of the local frame."""

    origin_lat: float
    origin_lon: float
    scale: float = 1.0


@dataclass(frozen=True, slots=True)
class LocalPoint:
    """A position in the local frame (meters times scale)."""

    x: float
    y: float
    z: float

    def with_altitude(self, y: float) -> LocalPoint:
        return LocalPoint(self.x, y, self.z)

    def planar_distance(self, other: LocalPoint) -> float:
        """Distance ignoring the vertical axis."""
        return math.hypot(self.x - other.x, self.z - other.z)


ORIGIN = LocalPoint(0.0, 0.0, 0.0)


class GeoProjector:
    """Converts between geodetic coordinates and the local frame.

    One instance per session. The reference is configured once, either
    explicitly, from the centroid of the track definition, or lazily from
    the first point converted. Once a conversion has used the reference,
    moving it would silently invalidate every position computed so far, so
    :meth:`set_reference` refuses a different value from then on.
    """

    def __init__(self, reference: GeoReference | None = None, *, default_scale: float = 1.0) -> None:
        self._reference = reference
        self._default_scale = default_scale
        self._conversions = 0

    @property
    def reference(self) -> GeoReference | None:
        return self._reference

    @property
    def has_reference(self) -> bool:
        return self._reference is not None

    def set_reference(self, lat: float, lon: float, scale: float = 1.0) -> GeoReference:
        """Set the origin of the local frame.

        Raises
        ------
        GeoReferenceError
            When a different reference was already used for a conversion.
        ValueError
            When *scale* is not positive.
        """
        if scale <= 0:
            raise ValueError(f"scale must be positive, got {scale}")
        reference = GeoReference(origin_lat=float(lat), origin_lon=float(lon), scale=float(scale))
        if self._reference == reference:
            return reference
        if self._reference is not None and self._conversions > 0:
            raise GeoReferenceError(
                f"reference already in use ({self._reference.origin_lat}, {self._reference.origin_lon}); "
                "clear it before moving the origin"
            )
        self._reference = reference
        _logger.debug("Geo reference set to lat=%.8f lon=%.8f scale=%s", lat, lon, scale)
        return reference

    def set_reference_from_centroid(self, points: Iterable[tuple[float, float]], scale: float = 1.0) -> GeoReference:
        """Use the arithmetic mean of ``(lat, lon)`` *points* as the reference."""
        coords = list(points)
        if not coords:
            raise ValueError("No points provided")
        mean_lat = sum(lat for lat, _ in coords) / len(coords)
        mean_lon = sum(lon for _, lon in coords) / len(coords)
        return self.set_reference(mean_lat, mean_lon, scale)

    def clear_reference(self) -> None:
        """Forget the reference (next conversion re-establishes it)."""
        self._reference = None
        self._conversions = 0

    def to_local(self, lat: float, lon: float, altitude: float = 0.0) -> LocalPoint:
        """Project a geodetic point into the local frame.

        Without a reference, the point itself becomes the reference and the
        origin is returned.
        """
        reference = self._reference
        if reference is None:
            _logger.warning(
                "Geo reference not set; defaulting reference to first converted point (%.8f, %.8f)",
                lat,
                lon,
            )
            self._reference = GeoReference(origin_lat=float(lat), origin_lon=float(lon), scale=self._default_scale)
            self._conversions += 1
            return ORIGIN

        lat_rad = math.radians(lat)
        lon_rad = math.radians(lon)
        ref_lat_rad = math.radians(reference.origin_lat)
        ref_lon_rad = math.radians(reference.origin_lon)

        # cos(mean latitude) keeps east/west distances right at both ends.
        mean_lat = (lat_rad + ref_lat_rad) / 2.0
        meters_north = EARTH_RADIUS * (lat_rad - ref_lat_rad)
        meters_east = EARTH_RADIUS * math.cos(mean_lat) * (lon_rad - ref_lon_rad)

        self._conversions += 1
        return LocalPoint(
            x=meters_east * reference.scale,
            y=altitude * reference.scale,
            z=meters_north * reference.scale,
        )

    def from_local(self, point: LocalPoint) -> tuple[float, float, float]:
        """Approximate inverse of :meth:`to_local`: ``(lat, lon, altitude)``.

        Uses the reference latitude for the longitude scaling, so accuracy
        drops slowly with distance from the origin.
        """
        reference = self._reference
        if reference is None:
            raise GeoReferenceError("no reference set")
        meters_north = point.z / reference.scale
        meters_east = point.x / reference.scale
        delta_lat = meters_north / EARTH_RADIUS
        delta_lon = meters_east / (EARTH_RADIUS * math.cos(math.radians(reference.origin_lat)))
        return (
            reference.origin_lat + math.degrees(delta_lat),
            reference.origin_lon + math.degrees(delta_lon),
            point.y / reference.scale,
        )
