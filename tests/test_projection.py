from __future__ import annotations

import logging
import math

import pytest

from trackside._constants import EARTH_RADIUS
from trackside.exceptions import GeoReferenceError
from trackside.geo.projection import ORIGIN, GeoProjector, LocalPoint


def test_reference_point_maps_to_origin_with_scaled_altitude() -> None:
    projector = GeoProjector()
    projector.set_reference(45.0, 7.0, scale=2.0)

    point = projector.to_local(45.0, 7.0, 12.5)

    assert point.x == pytest.approx(0.0)
    assert point.z == pytest.approx(0.0)
    assert point.y == pytest.approx(25.0)


def test_east_distance_uses_cosine_of_mean_latitude() -> None:
    projector = GeoProjector()
    projector.set_reference(45.0, 10.0)

    one = projector.to_local(45.0, 10.01)
    two = projector.to_local(45.0, 10.02)

    expected = EARTH_RADIUS * math.cos(math.radians(45.0)) * math.radians(0.01)
    assert one.x == pytest.approx(expected)
    assert two.x == pytest.approx(2 * expected)
    assert one.z == pytest.approx(0.0)


def test_north_distance_and_scale() -> None:
    projector = GeoProjector()
    projector.set_reference(0.0, 0.0, scale=0.5)

    point = projector.to_local(0.001, 0.0)

    assert point.z == pytest.approx(EARTH_RADIUS * math.radians(0.001) * 0.5)
    assert point.x == pytest.approx(0.0)


def test_first_conversion_without_reference_sets_it_and_warns(caplog: pytest.LogCaptureFixture) -> None:
    projector = GeoProjector(default_scale=3.0)

    with caplog.at_level(logging.WARNING, logger="trackside.geo.projection"):
        first = projector.to_local(33.5, -86.6, 100.0)

    assert first == ORIGIN
    assert projector.reference is not None
    assert projector.reference.origin_lat == 33.5
    assert projector.reference.origin_lon == -86.6
    assert projector.reference.scale == 3.0
    assert any("reference not set" in record.getMessage() for record in caplog.records)

    second = projector.to_local(33.5, -86.6, 1.0)
    assert second.y == pytest.approx(3.0)


def test_reference_cannot_move_after_use() -> None:
    projector = GeoProjector()
    projector.set_reference(10.0, 20.0)
    projector.set_reference(11.0, 21.0)  # not used yet, may still move
    projector.to_local(11.0, 21.0)

    projector.set_reference(11.0, 21.0)  # same value, no-op
    with pytest.raises(GeoReferenceError):
        projector.set_reference(12.0, 21.0)

    projector.clear_reference()
    projector.set_reference(12.0, 21.0)
    assert projector.reference is not None
    assert projector.reference.origin_lat == 12.0


def test_reference_from_centroid() -> None:
    projector = GeoProjector()
    reference = projector.set_reference_from_centroid([(10.0, 20.0), (12.0, 24.0)], scale=1.5)

    assert reference.origin_lat == pytest.approx(11.0)
    assert reference.origin_lon == pytest.approx(22.0)
    assert reference.scale == 1.5

    with pytest.raises(ValueError):
        GeoProjector().set_reference_from_centroid([])


def test_non_positive_scale_rejected() -> None:
    with pytest.raises(ValueError):
        GeoProjector().set_reference(0.0, 0.0, scale=0.0)


def test_from_local_inverts_to_local_near_the_origin() -> None:
    projector = GeoProjector()
    projector.set_reference(33.53, -86.62, scale=2.0)

    point = projector.to_local(33.531, -86.619, 150.0)
    lat, lon, altitude = projector.from_local(point)

    assert lat == pytest.approx(33.531, abs=1e-7)
    assert lon == pytest.approx(-86.619, abs=1e-7)
    assert altitude == pytest.approx(150.0)


def test_from_local_requires_reference() -> None:
    with pytest.raises(GeoReferenceError):
        GeoProjector().from_local(LocalPoint(1.0, 0.0, 1.0))
