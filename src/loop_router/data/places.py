"""Park lookup against an Overpass-compatible area search service."""
from __future__ import annotations

import asyncio
import logging
import math
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence

import httpx

from loop_router.core.config import PlacesConfig
from loop_router.core.errors import PlacesFailure
from loop_router.core.geodesy import (
    local_distance_m,
    nearest_point_on_polyline,
    polygon_area_m2,
    polygon_perimeter_m,
)
from loop_router.routing.models import LatLon, LonLat, ParkCandidate, ParkResolution

logger = logging.getLogger(__name__)

# Tag families treated as "park-like" open space.
PARK_TAG_FILTERS = (
    '["leisure"="park"]',
    '["leisure"="common"]',
    '["leisure"="recreation_ground"]',
    '["landuse"="recreation_ground"]',
)


_REGEX_SPECIAL = re.compile(r"([\\.^$|?*+()\[\]{}])")


def escape_name_pattern(name: str) -> str:
    """Make ``name`` a literal regex inside an Overpass double-quoted string."""
    pattern = _REGEX_SPECIAL.sub(r"\\\1", name.strip())
    return pattern.replace("\\", "\\\\").replace('"', '\\"')


def build_park_query(
    origin: LatLon,
    radius_m: float,
    name: Optional[str] = None,
    timeout_s: float = 10.0,
) -> str:
    lat, lon = origin
    name_filter = f'["name"~"{escape_name_pattern(name)}",i]' if name else ""
    around = f"(around:{int(round(radius_m))},{lat:.6f},{lon:.6f})"
    clauses = [
        f"  {etype}{tag}{name_filter}{around};"
        for tag in PARK_TAG_FILTERS
        for etype in ("way", "relation")
    ]
    return "\n".join(
        [f"[out:json][timeout:{int(math.ceil(timeout_s))}];", "("]
        + clauses
        + [");", "out tags geom;"]
    )


def _geometry_to_lonlat(geometry: Iterable[Optional[Dict[str, float]]]) -> List[LonLat]:
    return [(float(g["lon"]), float(g["lat"])) for g in geometry if g]


def stitch_ways(ways: Sequence[List[LonLat]]) -> List[LonLat]:
    """Greedily join member ways into one polyline by nearest endpoint.

    Starting from the first way, repeatedly append the unused way whose head
    or tail is closest to the current tail, reversing it when its tail is the
    closer end. Complex relations can come out self-crossing or gapped; the
    result is not repaired.
    """
    ways = [w for w in ways if w]
    if not ways:
        return []
    assembled = list(ways[0])
    remaining = list(ways[1:])
    while remaining:
        tail = assembled[-1]
        best_idx = 0
        best_dist = math.inf
        best_flip = False
        for idx, way in enumerate(remaining):
            d_head = local_distance_m(tail, way[0])
            d_tail = local_distance_m(tail, way[-1])
            if d_head < best_dist:
                best_idx, best_dist, best_flip = idx, d_head, False
            if d_tail < best_dist:
                best_idx, best_dist, best_flip = idx, d_tail, True
        way = remaining.pop(best_idx)
        if best_flip:
            way = list(reversed(way))
        if way[0] == tail:
            way = way[1:]
        assembled.extend(way)
    return assembled


def extract_boundary(element: Dict[str, Any]) -> List[LonLat]:
    """Best-effort boundary polyline for a way or multi-way relation element."""
    if element.get("geometry"):
        return _geometry_to_lonlat(element["geometry"])
    members = [m for m in element.get("members") or [] if m.get("type") == "way" and m.get("geometry")]
    if not members:
        return []
    outer = [m for m in members if m.get("role") == "outer"]
    chosen = outer or members
    return stitch_ways([_geometry_to_lonlat(m["geometry"]) for m in chosen])


def _closed(ring: List[LonLat]) -> List[LonLat]:
    if ring and ring[0] != ring[-1]:
        return ring + [ring[0]]
    return ring


def evaluate_elements(
    elements: Iterable[Dict[str, Any]],
    origin: LatLon,
    config: PlacesConfig,
) -> List[ParkCandidate]:
    """Turn raw elements into park candidates, dropping degenerate areas."""
    origin_lonlat = (origin[1], origin[0])
    out: List[ParkCandidate] = []
    for element in elements:
        try:
            boundary = extract_boundary(element)
        except (KeyError, TypeError, ValueError, AttributeError):
            logger.debug("Skipping element %s with malformed geometry", element.get("id"))
            continue
        if len(boundary) < 3:
            continue
        area = polygon_area_m2(boundary, origin_lonlat)
        perimeter = polygon_perimeter_m(boundary, origin_lonlat)
        if area < config.min_area_m2 or perimeter < config.min_perimeter_m:
            continue
        hit = nearest_point_on_polyline(_closed(boundary), origin_lonlat)
        out.append(
            ParkCandidate(
                name=(element.get("tags") or {}).get("name"),
                boundary=boundary,
                entry=hit.point,
                entry_segment_index=hit.segment_index,
                entry_distance_m=hit.distance_m,
                area_m2=area,
                perimeter_m=perimeter,
            )
        )
    return out


def park_score(candidate: ParkCandidate, max_size_bonus_m: float = 300.0) -> float:
    """Lower is better: distance to entry minus a capped size bonus."""
    return candidate.entry_distance_m - min(max_size_bonus_m, math.sqrt(candidate.area_m2) / 10)


def pick_best(candidates: Sequence[ParkCandidate], max_size_bonus_m: float = 300.0) -> Optional[ParkCandidate]:
    best: Optional[ParkCandidate] = None
    best_score = math.inf
    for cand in candidates:
        score = park_score(cand, max_size_bonus_m)
        if score < best_score:
            best, best_score = cand, score
    return best


class OverpassPlaces:
    """Resolves the park to loop around for a park-loop request."""

    def __init__(self, http: httpx.AsyncClient, config: PlacesConfig) -> None:
        self.http = http
        self.config = config

    async def _query(self, query: str, timeout_s: float) -> List[Dict[str, Any]]:
        try:
            resp = await asyncio.wait_for(
                self.http.post(self.config.base_url, data={"data": query}, timeout=timeout_s),
                timeout=timeout_s,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise PlacesFailure(f"Places lookup timed out after {timeout_s}s") from e
        except httpx.HTTPError as e:
            raise PlacesFailure(f"Places lookup failed: {e}") from e
        if resp.status_code != 200:
            raise PlacesFailure(f"Places lookup failed (status {resp.status_code})")
        try:
            data = resp.json()
        except ValueError as e:
            raise PlacesFailure("Places returned invalid JSON") from e
        if not isinstance(data, dict):
            raise PlacesFailure("Places returned an unexpected payload")
        elements = data.get("elements") or []
        if not isinstance(elements, list):
            raise PlacesFailure("Places returned an unexpected payload")
        return [e for e in elements if isinstance(e, dict)]

    async def find_nearest_park(self, origin: LatLon, radius_m: Optional[float] = None) -> Optional[ParkCandidate]:
        radius = radius_m or self.config.nearest_radius_m
        timeout = self.config.nearest_timeout_s
        elements = await self._query(build_park_query(origin, radius, timeout_s=timeout), timeout)
        candidates = evaluate_elements(elements, origin, self.config)
        logger.info("Places: %d elements, %d usable parks within %.0fm", len(elements), len(candidates), radius)
        return pick_best(candidates, self.config.max_size_bonus_m)

    async def find_park_by_name(
        self,
        name: str,
        origin: LatLon,
        radius_m: Optional[float] = None,
    ) -> Optional[ParkCandidate]:
        radius = radius_m or self.config.named_radius_m
        timeout = self.config.named_timeout_s
        elements = await self._query(build_park_query(origin, radius, name=name, timeout_s=timeout), timeout)
        needle = name.strip().lower()
        named = [e for e in elements if needle in ((e.get("tags") or {}).get("name") or "").lower()]
        candidates = evaluate_elements(named, origin, self.config)
        return pick_best(candidates, self.config.max_size_bonus_m)

    async def resolve(self, origin: LatLon, name: Optional[str] = None) -> ParkResolution:
        """Find the park to use, falling back from a name search to the nearest park.

        Lookup failures are logged and reported as "no park".
        """
        warnings: List[str] = []
        try:
            if name and name.strip():
                park = await self.find_park_by_name(name, origin)
                if park is not None:
                    return ParkResolution(park)
                warnings.append(f'No park matching "{name.strip()}" found; using the nearest park instead.')
            park = await self.find_nearest_park(origin)
        except PlacesFailure as e:
            logger.warning("Places lookup failed: %s", e)
            return ParkResolution(None, warnings)
        return ParkResolution(park, warnings)
