"""Route-candidate orchestration: three annotated route suggestions per request."""
from __future__ import annotations

import asyncio
import copy
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from loop_router.core.cache import NullCache
from loop_router.core.config import ServiceConfig
from loop_router.core.errors import RouterFailure, RouterRateLimited
from loop_router.core.geodesy import destination, local_distance_m, sample_along_polyline
from loop_router.data.graphhopper import GraphHopperClient, RouterResult, WeightingHints
from loop_router.data.places import OverpassPlaces
from loop_router.routing.metrics import build_metrics, derive_elevation_profile, match_score, total_ascent
from loop_router.routing.models import (
    SOURCE_MOCK,
    SOURCE_ROUTER,
    Candidate,
    Instruction,
    LatLon,
    ParkCandidate,
    ParkLoopInfo,
    ParkResolution,
    RouteOptions,
    RoutePath,
)
from loop_router.routing.synthetic import (
    synthetic_elevation_profile,
    synthetic_loop,
    synthetic_out_and_back,
)

logger = logging.getLogger(__name__)

CANDIDATE_COUNT = 3

NO_KEY_WARNING = "Using mock route: no routing service key is configured (synthetic geometry, not a real path)."
ROUTER_FAILED_WARNING = "Using mock route: routing service unavailable or failed (synthetic geometry, not a real path)."
RATE_LIMIT_WARNING = (
    "Using mock route: routing service rate limit reached. Wait a minute and try again."
)
NO_PARK_WARNING = "No suitable park found nearby; using a standard loop instead."
PARK_ROUTE_FAILED_WARNING = "Could not route around the park; using a standard loop instead."
WEIGHTING_IGNORED_WARNING = "Routing service ignored the road/surface preference for this route."
RETRACE_TEXT = "Retrace your route back to the start"


def build_candidates(options: RouteOptions, config: ServiceConfig) -> List[Candidate]:
    """Derive per-candidate distance, bearing, seed and elevation intensity."""
    cfg = config.candidates
    hills = options.elevation_pref == "hills"
    bearings = cfg.hills_bearings if hills else cfg.flat_bearings
    intensities = cfg.hills_intensities if hills else cfg.flat_intensities
    base_bearing = bearings[options.direction_seed % len(bearings)]
    return [
        Candidate(
            index=i,
            target_meters=options.target_meters * cfg.distance_multipliers[i],
            bearing_deg=(base_bearing + i * cfg.bearing_step_deg) % 360,
            # Disjoint across Generate clicks and across the three candidates.
            seed=options.direction_seed * CANDIDATE_COUNT + i,
            intensity=intensities[i],
        )
        for i in range(CANDIDATE_COUNT)
    ]


def triangle_waypoints(origin: LatLon, target_meters: float, bearing_deg: float) -> List[LatLon]:
    """Equilateral triangle with ``origin`` as one vertex and perimeter ``target_meters``."""
    side = target_meters / 3
    a = destination(origin, side, bearing_deg - 30)
    b = destination(origin, side, bearing_deg + 30)
    return [origin, a, b, origin]


def failure_warning(error: RouterFailure) -> str:
    if isinstance(error, RouterRateLimited):
        return RATE_LIMIT_WARNING
    return ROUTER_FAILED_WARNING


def concat_paths(parts: List[RoutePath]) -> RoutePath:
    """Join consecutive paths, dropping the duplicated join coordinate."""
    coords = []
    altitudes: Optional[List[float]] = []
    instructions: List[Instruction] = []
    time_ms: Optional[float] = 0.0
    distance = 0.0
    for part in parts:
        skip = 1 if coords and part.coordinates and coords[-1] == part.coordinates[0] else 0
        coords.extend(part.coordinates[skip:])
        if altitudes is not None and part.altitudes and len(part.altitudes) == len(part.coordinates):
            altitudes.extend(part.altitudes[skip:])
        else:
            altitudes = None
        instructions.extend(part.instructions)
        distance += part.distance_m
        time_ms = None if time_ms is None or part.time_ms is None else time_ms + part.time_ms
    return RoutePath(
        coordinates=coords,
        distance_m=distance,
        time_ms=time_ms,
        altitudes=altitudes or None,
        instructions=instructions,
    )


def reverse_path(path: RoutePath) -> RoutePath:
    return RoutePath(
        coordinates=list(reversed(path.coordinates)),
        distance_m=path.distance_m,
        time_ms=path.time_ms,
        altitudes=list(reversed(path.altitudes)) if path.altitudes else None,
        instructions=[Instruction(RETRACE_TEXT, path.distance_m, 0)],
    )


def lap_count(lap_m: float, transit_m: float, target_m: float, min_budget_m: float, max_laps: int) -> int:
    """Whole laps that best fit the distance left after transit out and back."""
    if lap_m <= 0:
        return 1
    budget = max(min_budget_m, target_m - 2 * transit_m)
    return max(1, min(max_laps, round(budget / lap_m)))


def build_feature(
    path: RoutePath,
    options: RouteOptions,
    candidate: Candidate,
    source: str,
    warnings: List[str],
    park: Optional[ParkLoopInfo] = None,
) -> Dict[str, Any]:
    """Assemble the GeoJSON Feature for one candidate path."""
    fallback = synthetic_elevation_profile(path.distance_m, options.elevation_pref, candidate.intensity)
    profile = derive_elevation_profile(path.altitudes, path.distance_m, fallback)
    metrics = build_metrics(path.distance_m, path.time_ms, profile)
    properties: Dict[str, Any] = {
        "candidate": candidate.index,
        "routeType": options.route_type,
        "metrics": metrics,
        "scoring": {"overallScore": match_score(total_ascent(profile), options.elevation_pref)},
        "warnings": list(warnings),
        "elevationProfile": profile,
        "instructions": [
            {"text": ins.text, "distanceMeters": round(ins.distance_m, 1), "sign": ins.sign}
            for ins in path.instructions
        ],
        "source": source,
    }
    if park is not None:
        properties["park"] = {
            "name": park.name,
            "entry": [park.entry[0], park.entry[1]],
            "laps": park.laps,
            "transitMeters": round(park.transit_m, 1),
        }
    return {
        "type": "Feature",
        "geometry": {
            "type": "LineString",
            "coordinates": [[lon, lat] for lon, lat in path.coordinates],
        },
        "properties": properties,
    }


def synthetic_path(options: RouteOptions, candidate: Candidate) -> RoutePath:
    if options.route_type == "out-and-back":
        coords = synthetic_out_and_back(options.origin, candidate.target_meters, candidate.bearing_deg)
    else:
        coords = synthetic_loop(options.origin, candidate.target_meters, options.elevation_pref)
    return RoutePath(coordinates=coords, distance_m=candidate.target_meters)


class RouteSuggester:
    """Builds three route candidates, falling back to synthetic geometry per candidate.

    Candidates run one after another with ``stagger_s`` between them unless
    ``candidates.parallel`` is set. A failure in one candidate never affects
    the others.
    """

    def __init__(
        self,
        router: GraphHopperClient,
        places: Optional[OverpassPlaces],
        config: ServiceConfig,
        cache=None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.router = router
        self.places = places
        self.config = config
        self.cache = cache if cache is not None else NullCache()
        self._sleep = sleep

    async def suggest(self, options: RouteOptions) -> Dict[str, Any]:
        key = options.cache_key()
        cached = self.cache.get(key)
        if cached is not None:
            logger.info("Serving cached candidates for %s", key)
            return copy.deepcopy(cached)

        t0 = time.perf_counter()
        candidates = build_candidates(options, self.config)
        park = await self._resolve_park(options)

        if self.config.candidates.parallel:
            features = list(await asyncio.gather(*(self._candidate_feature(options, c, park) for c in candidates)))
        else:
            features = []
            for i, cand in enumerate(candidates):
                if i > 0:
                    await self._sleep(self.config.candidates.stagger_s)
                features.append(await self._candidate_feature(options, cand, park))

        collection = {"type": "FeatureCollection", "features": features}
        sources = [f["properties"]["source"] for f in features]
        logger.info(
            "[TIMING] %s %.0fm candidates built in %.1fms (sources=%s)",
            options.route_type,
            options.target_meters,
            (time.perf_counter() - t0) * 1000,
            ",".join(sources),
        )
        if all(s == SOURCE_ROUTER for s in sources):
            self.cache.set(key, copy.deepcopy(collection))
        return collection

    async def _resolve_park(self, options: RouteOptions) -> Optional[ParkResolution]:
        if not (options.loop_at_park and options.route_type == "loop"):
            return None
        if self.places is None or not self.router.configured:
            return ParkResolution(None)
        return await self.places.resolve(options.origin, options.park_search)

    def _hints(self, options: RouteOptions) -> WeightingHints:
        return WeightingHints(avoid_major_roads=options.avoid_major_roads, surface_pref=options.surface_pref)

    async def _candidate_feature(
        self,
        options: RouteOptions,
        candidate: Candidate,
        park: Optional[ParkResolution],
    ) -> Dict[str, Any]:
        if not self.router.configured:
            return build_feature(synthetic_path(options, candidate), options, candidate, SOURCE_MOCK, [NO_KEY_WARNING])

        warnings: List[str] = []
        try:
            path, park_info, dropped = await self._route_candidate(options, candidate, park, warnings)
        except RouterFailure as e:
            logger.warning("Candidate %d: router failed (%s); using synthetic route", candidate.index, e)
            warnings.append(failure_warning(e))
            return build_feature(synthetic_path(options, candidate), options, candidate, SOURCE_MOCK, warnings)

        if dropped:
            warnings.append(WEIGHTING_IGNORED_WARNING)
        return build_feature(path, options, candidate, SOURCE_ROUTER, warnings, park_info)

    async def _route_candidate(
        self,
        options: RouteOptions,
        candidate: Candidate,
        park: Optional[ParkResolution],
        warnings: List[str],
    ) -> Tuple[RoutePath, Optional[ParkLoopInfo], bool]:
        hints = self._hints(options)
        if options.route_type == "out-and-back":
            mid = destination(options.origin, candidate.target_meters / 2, candidate.bearing_deg)
            result = await self.router.route_points([options.origin, mid, options.origin], hints)
            return result.path, None, result.weighting_dropped

        if park is not None:
            warnings.extend(park.warnings)
            if park.park is None:
                warnings.append(NO_PARK_WARNING)
            else:
                try:
                    return await self._park_loop(options, candidate, park.park, hints)
                except RouterFailure as e:
                    logger.warning("Candidate %d: park loop failed (%s); using standard loop", candidate.index, e)
                    warnings.append(PARK_ROUTE_FAILED_WARNING)

        result = await self._standard_loop(options, candidate, hints)
        return result.path, None, result.weighting_dropped

    async def _standard_loop(self, options: RouteOptions, candidate: Candidate, hints: WeightingHints) -> RouterResult:
        if self.config.candidates.loop_strategy == "waypoints":
            points = triangle_waypoints(options.origin, candidate.target_meters, candidate.bearing_deg)
            return await self.router.route_points(points, hints)
        return await self.router.round_trip(options.origin, candidate.target_meters, candidate.seed, hints)

    async def _park_loop(
        self,
        options: RouteOptions,
        candidate: Candidate,
        park: ParkCandidate,
        hints: WeightingHints,
    ) -> Tuple[RoutePath, ParkLoopInfo, bool]:
        """Transit to the park, lap its boundary N times, and retrace the transit."""
        cfg = self.config.park_loop
        origin = options.origin
        origin_lonlat = (origin[1], origin[0])
        entry: LatLon = (park.entry[1], park.entry[0])

        transit = await self.router.route_points([origin, entry], hints)

        samples = sample_along_polyline(park.boundary, park.entry_segment_index, cfg.waypoint_count, origin_lonlat)
        # The first sample is the vertex behind the entry, so it is visited last.
        ring = [p for p in samples[1:] + samples[:1] if local_distance_m(p, park.entry) > 1.0]
        if candidate.index % 2 == 1:
            # Odd candidates run the lap the other way round.
            ring.reverse()
        waypoints = [entry] + [(lat, lon) for lon, lat in ring] + [entry]
        lap = await self.router.route_points(waypoints, hints)

        laps = lap_count(
            lap.path.distance_m,
            transit.path.distance_m,
            candidate.target_meters,
            cfg.min_lap_budget_m,
            cfg.max_laps,
        )
        path = concat_paths([transit.path] + [lap.path] * laps + [reverse_path(transit.path)])
        info = ParkLoopInfo(
            name=park.name,
            entry=park.entry,
            laps=laps,
            transit_m=transit.path.distance_m,
        )
        logger.info(
            "Candidate %d: park loop around %s, %d lap(s), transit %.0fm",
            candidate.index,
            park.name or "unnamed park",
            laps,
            transit.path.distance_m,
        )
        return path, info, transit.weighting_dropped or lap.weighting_dropped
