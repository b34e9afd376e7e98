from __future__ import annotations

import pytest

from loop_router.core.geodesy import local_distance_m
from loop_router.routing.metrics import (
    build_metrics,
    derive_elevation_profile,
    estimated_minutes,
    match_score,
    total_ascent,
)
from loop_router.routing.synthetic import (
    synthetic_elevation_profile,
    synthetic_loop,
    synthetic_out_and_back,
)

ORIGIN = (34.09, -118.28)  # (lat, lon)


def _profile(elevations):
    return [{"distanceMeters": i * 10.0, "elevation": e} for i, e in enumerate(elevations)]


@pytest.mark.parametrize("pref", ["flat", "hills"])
@pytest.mark.parametrize("meters", [400.0, 8046.0, 42195.0])
def test_synthetic_loop_starts_and_ends_at_origin(pref: str, meters: float) -> None:
    coords = synthetic_loop(ORIGIN, meters, pref)
    assert len(coords) == 71
    assert coords[0] == pytest.approx((ORIGIN[1], ORIGIN[0]))
    assert coords[-1] == pytest.approx((ORIGIN[1], ORIGIN[0]))


@pytest.mark.parametrize("pref", ["flat", "hills"])
def test_synthetic_loop_never_dips_south_of_origin(pref: str) -> None:
    coords = synthetic_loop(ORIGIN, 5000.0, pref)
    assert min(lat for _, lat in coords) == pytest.approx(ORIGIN[0])
    assert max(lat for _, lat in coords) > ORIGIN[0]


def test_synthetic_out_and_back_midpoint() -> None:
    coords = synthetic_out_and_back(ORIGIN, 1609.0, 90.0)
    start = (ORIGIN[1], ORIGIN[0])
    assert len(coords) == 3
    assert coords[0] == start and coords[2] == start
    assert local_distance_m(start, coords[1]) == pytest.approx(804.5, rel=1e-6)
    assert coords[1][0] > start[0]


def test_synthetic_elevation_profile_shape() -> None:
    flat = synthetic_elevation_profile(5000.0, "flat")
    hills = synthetic_elevation_profile(5000.0, "hills", intensity=1.5)
    assert len(flat) == 51 and len(hills) == 51
    assert flat[0]["distanceMeters"] == 0.0
    assert flat[-1]["distanceMeters"] == pytest.approx(5000.0)
    assert max(p["elevation"] for p in flat) <= 128
    assert total_ascent(hills) > total_ascent(flat)


def test_total_ascent_monotonic_profiles() -> None:
    assert total_ascent(_profile([100, 105, 111, 140])) == 40
    assert total_ascent(_profile([140, 120, 101, 100])) == 0
    assert total_ascent(_profile([100, 110, 90, 95])) == 15


@pytest.mark.parametrize("pref,target", [("flat", 60), ("hills", 220)])
def test_match_score_bounds(pref: str, target: float) -> None:
    assert match_score(target, pref) == 100
    assert match_score(1e6, pref) == 0
    assert 0 <= match_score(0, pref) <= 100


def test_match_score_linear_falloff() -> None:
    assert match_score(105, "flat") == 50
    assert match_score(300, "hills") == 50


def test_derive_elevation_profile_uses_router_altitudes() -> None:
    fallback = _profile([1, 2, 3])
    profile = derive_elevation_profile([10.4, 12.6, 11.0, 15.0, 14.9], 400.0, fallback)
    assert [p["distanceMeters"] for p in profile] == pytest.approx([0, 100, 200, 300, 400])
    assert [p["elevation"] for p in profile] == [10, 13, 11, 15, 15]


def test_derive_elevation_profile_falls_back_below_three_samples() -> None:
    fallback = _profile([1, 2, 3])
    assert derive_elevation_profile([10.0, 11.0], 400.0, fallback) is fallback
    assert derive_elevation_profile(None, 400.0, fallback) is fallback


def test_metrics_formatting() -> None:
    metrics = build_metrics(8100.0, 3_000_000.0, _profile([100, 110]))
    assert metrics["distanceMiles"] == 5.03
    assert metrics["timeMinutes"] == 50
    assert metrics["totalAscent"] == metrics["totalDescent"] == 10
    # No router duration: 10 minutes per mile.
    assert estimated_minutes(1609.34 * 3, None) == 30
