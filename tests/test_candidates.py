from __future__ import annotations

import asyncio

import pytest

from loop_router.core.cache import ResponseCache
from loop_router.core.config import ServiceConfig
from loop_router.core.errors import RouterFailure, RouterRateLimited
from loop_router.core.geodesy import local_unprojection
from loop_router.data.graphhopper import RouterResult
from loop_router.routing.candidates import (
    NO_KEY_WARNING,
    NO_PARK_WARNING,
    PARK_ROUTE_FAILED_WARNING,
    RATE_LIMIT_WARNING,
    RETRACE_TEXT,
    ROUTER_FAILED_WARNING,
    WEIGHTING_IGNORED_WARNING,
    RouteSuggester,
    build_candidates,
    lap_count,
    triangle_waypoints,
)
from loop_router.routing.models import (
    Instruction,
    ParkCandidate,
    ParkResolution,
    RouteOptions,
    RoutePath,
)

ORIGIN = (34.09, -118.28)  # (lat, lon)
ORIGIN_LONLAT = [-118.28, 34.09]


def _line(n: int, start=(-118.28, 34.09)):
    return [(start[0] + i * 0.0005, start[1] + (i % 5) * 0.0002) for i in range(n - 1)] + [start]


class StubRouter:
    """Records calls and replays canned results or errors."""

    def __init__(self, configured: bool = True, result=None, error=None, dropped: bool = False) -> None:
        self.configured = configured
        self.result = result
        self.error = error
        self.dropped = dropped
        self.round_trips = []
        self.point_calls = []

    def _respond(self, coords):
        if self.error is not None:
            raise self.error
        path = self.result or RoutePath(coordinates=coords, distance_m=5000.0, time_ms=1_800_000.0)
        return RouterResult(path, weighting_dropped=self.dropped)

    async def round_trip(self, origin, distance_m, seed, hints=None):
        self.round_trips.append((origin, distance_m, seed, hints))
        start = (origin[1], origin[0])
        return self._respond([start, (start[0] + 0.01, start[1]), start])

    async def route_points(self, points, hints=None):
        self.point_calls.append(list(points))
        return self._respond([(lon, lat) for lat, lon in points])


class ParkRouter(StubRouter):
    """Two-point calls are transits (500 m); longer calls are laps (1000 m)."""

    def __init__(self, fail_laps: bool = False) -> None:
        super().__init__()
        self.fail_laps = fail_laps

    async def route_points(self, points, hints=None):
        self.point_calls.append(list(points))
        coords = [(lon, lat) for lat, lon in points]
        if len(points) == 2:
            return RouterResult(RoutePath(coords, 500.0, 300_000.0, instructions=[Instruction("Head north", 500.0)]))
        if self.fail_laps:
            raise RouterFailure("Cannot find point 3")
        return RouterResult(RoutePath(coords, 1000.0, 600_000.0))


class StubPlaces:
    def __init__(self, resolution: ParkResolution) -> None:
        self.resolution = resolution
        self.calls = []

    async def resolve(self, origin, name=None):
        self.calls.append((origin, name))
        return self.resolution


def _park() -> ParkCandidate:
    xy = [(200.0, 200.0), (600.0, 200.0), (600.0, 500.0), (200.0, 500.0)]
    boundary = [local_unprojection(p, (ORIGIN[1], ORIGIN[0])) for p in xy]
    return ParkCandidate(
        name="Test Park",
        boundary=boundary,
        entry=boundary[0],
        entry_segment_index=0,
        entry_distance_m=283.0,
        area_m2=120000.0,
        perimeter_m=1400.0,
    )


def _suggest(router, options, places=None, config=None, cache=None, sleeps=None):
    async def fake_sleep(seconds):
        if sleeps is not None:
            sleeps.append(seconds)

    suggester = RouteSuggester(router, places, config or ServiceConfig(), cache=cache, sleep=fake_sleep)
    return asyncio.run(suggester.suggest(options))


def test_build_candidates_jitter_and_seeds() -> None:
    cfg = ServiceConfig()
    cands = build_candidates(RouteOptions(ORIGIN, 5000.0), cfg)
    assert [c.target_meters for c in cands] == pytest.approx([5000.0, 4900.0, 5100.0])
    assert [c.seed for c in cands] == [0, 1, 2]
    assert [c.bearing_deg for c in cands] == [0, 35, 70]
    assert [c.intensity for c in cands] == [1.0, 0.8, 1.25]

    again = build_candidates(RouteOptions(ORIGIN, 5000.0, elevation_pref="hills", direction_seed=1), cfg)
    assert [c.seed for c in again] == [3, 4, 5]
    assert [c.bearing_deg for c in again] == [70, 105, 140]
    assert [c.intensity for c in again] == [1.0, 0.85, 1.55]


def test_triangle_waypoints_close_at_origin() -> None:
    pts = triangle_waypoints(ORIGIN, 3000.0, 90.0)
    assert len(pts) == 4
    assert pts[0] == ORIGIN and pts[-1] == ORIGIN


@pytest.mark.parametrize(
    "lap,transit,target,expected",
    [(1000, 500, 3200, 2), (1000, 2000, 3000, 1), (500, 100, 10000, 4), (0, 100, 5000, 1)],
)
def test_lap_count(lap: float, transit: float, target: float, expected: int) -> None:
    assert lap_count(lap, transit, target, 600.0, 4) == expected


def test_router_success_features() -> None:
    path = RoutePath(coordinates=_line(40), distance_m=8100.0, time_ms=3_000_000.0)
    router = StubRouter(result=path)
    result = _suggest(router, RouteOptions(ORIGIN, 8000.0))

    assert result["type"] == "FeatureCollection"
    features = result["features"]
    assert len(features) == 3
    for i, feature in enumerate(features):
        props = feature["properties"]
        assert feature["geometry"]["type"] == "LineString"
        assert len(feature["geometry"]["coordinates"]) == 40
        assert props["candidate"] == i
        assert props["source"] == "graphhopper"
        assert props["warnings"] == []
        assert props["metrics"]["distanceMiles"] == 5.03
        assert props["metrics"]["timeMinutes"] == 50
        assert 0 <= props["scoring"]["overallScore"] <= 100
        assert len(props["elevationProfile"]) == 51
        assert "park" not in props
    assert [call[2] for call in router.round_trips] == [0, 1, 2]


def test_no_key_gives_three_mock_loops() -> None:
    router = StubRouter(configured=False)
    result = _suggest(router, RouteOptions(ORIGIN, 5000.0))

    for feature in result["features"]:
        coords = feature["geometry"]["coordinates"]
        assert len(coords) == 71
        assert coords[0] == ORIGIN_LONLAT and coords[-1] == ORIGIN_LONLAT
        assert feature["properties"]["source"] == "mock"
        assert feature["properties"]["warnings"] == [NO_KEY_WARNING]
    assert router.round_trips == []


def test_no_key_out_and_back_is_three_points() -> None:
    result = _suggest(StubRouter(configured=False), RouteOptions(ORIGIN, 1609.0, route_type="out-and-back"))
    for feature in result["features"]:
        coords = feature["geometry"]["coordinates"]
        assert len(coords) == 3
        assert coords[0] == coords[2] == ORIGIN_LONLAT
        assert feature["properties"]["routeType"] == "out-and-back"


def test_out_and_back_routes_through_turnaround() -> None:
    router = StubRouter()
    _suggest(router, RouteOptions(ORIGIN, 4000.0, route_type="out-and-back"))
    assert len(router.point_calls) == 3
    for points in router.point_calls:
        assert len(points) == 3
        assert points[0] == points[2] == ORIGIN
    assert router.round_trips == []


@pytest.mark.parametrize(
    "error,warning",
    [
        (RouterRateLimited("API limit reached", 429), RATE_LIMIT_WARNING),
        (RouterFailure("Connection refused"), ROUTER_FAILED_WARNING),
    ],
)
def test_router_errors_degrade_each_candidate(error: RouterFailure, warning: str) -> None:
    result = _suggest(StubRouter(error=error), RouteOptions(ORIGIN, 5000.0))
    assert len(result["features"]) == 3
    for feature in result["features"]:
        assert feature["properties"]["source"] == "mock"
        assert feature["properties"]["warnings"] == [warning]


def test_dropped_weighting_is_reported() -> None:
    result = _suggest(StubRouter(dropped=True), RouteOptions(ORIGIN, 5000.0, avoid_major_roads=True))
    for feature in result["features"]:
        assert feature["properties"]["warnings"] == [WEIGHTING_IGNORED_WARNING]


def test_candidates_are_staggered() -> None:
    sleeps = []
    _suggest(StubRouter(), RouteOptions(ORIGIN, 5000.0), sleeps=sleeps)
    assert sleeps == [0.3, 0.3]


def test_parallel_mode_skips_stagger() -> None:
    cfg = ServiceConfig()
    cfg.candidates.parallel = True
    sleeps = []
    result = _suggest(StubRouter(), RouteOptions(ORIGIN, 5000.0), config=cfg, sleeps=sleeps)
    assert sleeps == []
    assert [f["properties"]["candidate"] for f in result["features"]] == [0, 1, 2]


def test_waypoint_strategy_routes_triangles() -> None:
    cfg = ServiceConfig()
    cfg.candidates.loop_strategy = "waypoints"
    router = StubRouter()
    _suggest(router, RouteOptions(ORIGIN, 6000.0), config=cfg)
    assert router.round_trips == []
    assert [len(points) for points in router.point_calls] == [4, 4, 4]


def test_park_lookup_miss_matches_standard_loop() -> None:
    options = RouteOptions(ORIGIN, 5000.0, direction_seed=2)
    plain = _suggest(StubRouter(), options)

    places = StubPlaces(ParkResolution(None))
    park_options = RouteOptions(ORIGIN, 5000.0, direction_seed=2, loop_at_park=True)
    degraded = _suggest(StubRouter(), park_options, places=places)

    assert len(places.calls) == 1
    for a, b in zip(plain["features"], degraded["features"]):
        assert a["geometry"] == b["geometry"]
        assert b["properties"]["warnings"] == [NO_PARK_WARNING]


def test_park_name_miss_warning_is_carried() -> None:
    warning = 'No park matching "Nowhere" found; using the nearest park instead.'
    places = StubPlaces(ParkResolution(None, [warning]))
    options = RouteOptions(ORIGIN, 5000.0, loop_at_park=True, park_search="Nowhere")
    result = _suggest(StubRouter(), options, places=places)
    assert places.calls == [(ORIGIN, "Nowhere")]
    for feature in result["features"]:
        assert feature["properties"]["warnings"] == [warning, NO_PARK_WARNING]


def test_park_loop_without_key_skips_lookup() -> None:
    places = StubPlaces(ParkResolution(_park()))
    result = _suggest(StubRouter(configured=False), RouteOptions(ORIGIN, 5000.0, loop_at_park=True), places=places)
    assert places.calls == []
    assert all(f["properties"]["source"] == "mock" for f in result["features"])


def test_park_loop_laps_and_retraces() -> None:
    router = ParkRouter()
    places = StubPlaces(ParkResolution(_park()))
    result = _suggest(router, RouteOptions(ORIGIN, 3200.0, loop_at_park=True), places=places)

    for feature in result["features"]:
        props = feature["properties"]
        coords = feature["geometry"]["coordinates"]
        assert props["source"] == "graphhopper"
        assert props["warnings"] == []
        assert props["park"]["name"] == "Test Park"
        assert props["park"]["laps"] == 2
        assert props["park"]["transitMeters"] == 500.0
        assert props["metrics"]["distanceMeters"] == 3000.0
        assert coords[0] == ORIGIN_LONLAT and coords[-1] == ORIGIN_LONLAT
        assert props["instructions"][-1]["text"] == RETRACE_TEXT

    laps = [points for points in router.point_calls if len(points) > 2]
    assert len(laps) == 3
    for points in laps:
        # The entry is a boundary vertex, so one of the six samples coincides with it.
        assert len(points) == 7
        assert points[0] == points[-1]
    # Odd candidates run the boundary the other way round.
    assert laps[1][1:-1] == list(reversed(laps[0][1:-1]))
    assert laps[0][1:-1] == laps[2][1:-1]


def test_park_loop_failure_falls_back_to_standard_loop() -> None:
    router = ParkRouter(fail_laps=True)
    places = StubPlaces(ParkResolution(_park()))
    result = _suggest(router, RouteOptions(ORIGIN, 3200.0, loop_at_park=True), places=places)
    assert len(router.round_trips) == 3
    for feature in result["features"]:
        assert feature["properties"]["source"] == "graphhopper"
        assert feature["properties"]["warnings"] == [PARK_ROUTE_FAILED_WARNING]
        assert "park" not in feature["properties"]


def test_router_results_are_cached() -> None:
    router = StubRouter()
    cache = ResponseCache()
    options = RouteOptions(ORIGIN, 5000.0)
    first = _suggest(router, options, cache=cache)
    second = _suggest(router, options, cache=cache)
    assert second == first
    assert len(router.round_trips) == 3
    assert len(cache) == 1


def test_mock_results_are_not_cached() -> None:
    cache = ResponseCache()
    _suggest(StubRouter(error=RouterFailure("down")), RouteOptions(ORIGIN, 5000.0), cache=cache)
    assert len(cache) == 0
