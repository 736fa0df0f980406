from __future__ import annotations

import math

import pytest

from trackside.geo.projection import LocalPoint
from trackside.geo.track import TrackLocation
from trackside.render.interpolator import RenderInterpolator, shortest_angle_diff, wrap_angle
from trackside.state.store import TelemetryStore


def test_first_observation_snaps_to_target() -> None:
    interpolator = RenderInterpolator(gain=10.0)

    pose = interpolator.advance("V1", LocalPoint(10.0, 1.0, -4.0), 1.2, delta=0.016)

    assert pose.position == LocalPoint(10.0, 1.0, -4.0)
    assert pose.heading == 1.2


def test_exponential_approach_uses_delta_times_gain() -> None:
    interpolator = RenderInterpolator(gain=10.0)
    interpolator.advance("V1", LocalPoint(0.0, 0.0, 0.0), 0.0, delta=0.0)

    pose = interpolator.advance("V1", LocalPoint(10.0, 2.0, -10.0), 0.0, delta=0.05)

    assert pose.position.x == pytest.approx(5.0)
    assert pose.position.y == pytest.approx(1.0)
    assert pose.position.z == pytest.approx(-5.0)


def test_large_delta_is_clamped_to_target() -> None:
    interpolator = RenderInterpolator(gain=10.0)
    interpolator.advance("V1", LocalPoint(0.0, 0.0, 0.0), 0.0, delta=0.0)

    pose = interpolator.advance("V1", LocalPoint(10.0, 0.0, 0.0), 0.5, delta=2.0)

    assert pose.position.x == pytest.approx(10.0)
    assert pose.heading == pytest.approx(0.5)


def test_heading_takes_shortest_path_across_wraparound() -> None:
    interpolator = RenderInterpolator(gain=10.0)
    interpolator.advance("V1", LocalPoint(0.0, 0.0, 0.0), math.radians(359.0), delta=0.0)

    pose = interpolator.advance("V1", LocalPoint(0.0, 0.0, 0.0), math.radians(1.0), delta=0.05)

    # Halfway along the 2 degree forward turn, not 179 degrees backwards.
    assert pose.heading == pytest.approx(0.0, abs=1e-9)


def test_angle_helpers() -> None:
    assert shortest_angle_diff(math.radians(359.0), math.radians(1.0)) == pytest.approx(math.radians(2.0))
    assert shortest_angle_diff(math.radians(1.0), math.radians(359.0)) == pytest.approx(math.radians(-2.0))
    assert wrap_angle(3 * math.pi) == pytest.approx(-math.pi)
    assert -math.pi <= wrap_angle(7.5) < math.pi


def test_tick_advances_every_vehicle_of_the_store() -> None:
    store = TelemetryStore()
    location = TrackLocation(
        position=LocalPoint(4.0, 0.0, 0.0), heading=0.3, segment_index=0, t=0.4, distance=0.0, progress=0.1
    )
    store.upsert_vehicle("V1", {"speed": 50}, location)
    store.upsert_vehicle("V2", {"speed": 40})
    interpolator = RenderInterpolator()

    poses = interpolator.tick(store, 0.016)

    assert set(poses) == {"V1", "V2"}
    assert poses["V1"].position == LocalPoint(4.0, 0.0, 0.0)
    assert poses["V1"].heading == 0.3
    assert set(interpolator.poses) == {"V1", "V2"}

    interpolator.forget("V1")
    assert "V1" not in interpolator.poses


def test_gain_must_be_positive() -> None:
    with pytest.raises(ValueError):
        RenderInterpolator(gain=0.0)
