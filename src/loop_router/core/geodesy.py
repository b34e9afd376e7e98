"""Lightweight local-scale geometry helpers.

All conversions here are flat-Earth approximations that are only valid over a
city-sized radius. Coordinates are ``(lat, lon)`` ("geo order") unless a
function says it works on ``(lon, lat)`` ("map order").
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, List, Sequence, Tuple

import numpy as np
from shapely.geometry import LineString, Polygon

from loop_router.core.errors import InvalidInput


METERS_PER_DEG_LON = 111320.0
METERS_PER_DEG_LAT = 110540.0

# Latitude limit of the web-mercator tiles the Router snaps against.
ROUTER_MAX_LAT = 85.0511284
SWAP_THRESHOLD_DEG = 85.0

LatLon = Tuple[float, float]
LonLat = Tuple[float, float]


def meters_to_lon_delta(m: float, at_latitude: float) -> float:
    return m / (METERS_PER_DEG_LON * math.cos(math.radians(at_latitude)))


def meters_to_lat_delta(m: float) -> float:
    return m / METERS_PER_DEG_LAT


def offset_latlon(origin: LatLon, north_m: float, east_m: float) -> LatLon:
    """Shift a geo-order point by metric north/east offsets."""
    lat, lon = origin
    return lat + meters_to_lat_delta(north_m), lon + meters_to_lon_delta(east_m, lat)


def destination(origin: LatLon, distance_m: float, bearing_deg: float) -> LatLon:
    """Point ``distance_m`` from origin along a compass bearing (0 = north, clockwise)."""
    b = math.radians(bearing_deg)
    return offset_latlon(origin, distance_m * math.cos(b), distance_m * math.sin(b))


def normalize_geo_order(pair: Any, label: str = "point") -> LatLon:
    """Return ``pair`` as ``(lat, lon)``.

    If the first value cannot be a latitude but the second can, the pair is
    swapped. Pairs where both values look like latitudes are returned as-is;
    a swapped pair in that range cannot be detected.
    """
    try:
        a = float(pair[0])
        b = float(pair[1])
    except (TypeError, ValueError, IndexError) as exc:
        raise InvalidInput(f"{label} is not numeric") from exc
    if not (math.isfinite(a) and math.isfinite(b)):
        raise InvalidInput(f"{label} is not numeric")

    lat, lon = a, b
    if abs(a) > SWAP_THRESHOLD_DEG and abs(b) <= SWAP_THRESHOLD_DEG:
        lat, lon = b, a

    if lat < -ROUTER_MAX_LAT or lat > ROUTER_MAX_LAT or lon < -180 or lon > 180:
        raise InvalidInput(f"{label} is out of bounds even after normalization: {lat},{lon}")
    return lat, lon


def local_projection(point: LonLat, origin: LonLat) -> Tuple[float, float]:
    """Project a map-order point to planar (x, y) meters around ``origin``."""
    x = (point[0] - origin[0]) * METERS_PER_DEG_LON * math.cos(math.radians(origin[1]))
    y = (point[1] - origin[1]) * METERS_PER_DEG_LAT
    return x, y


def local_unprojection(xy: Tuple[float, float], origin: LonLat) -> LonLat:
    lon = origin[0] + meters_to_lon_delta(xy[0], origin[1])
    lat = origin[1] + meters_to_lat_delta(xy[1])
    return lon, lat


def local_distance_m(a: LonLat, b: LonLat) -> float:
    x, y = local_projection(b, a)
    return math.hypot(x, y)


def polyline_length_m(points: Sequence[LonLat]) -> float:
    total = 0.0
    for a, b in zip(points, points[1:]):
        total += local_distance_m(a, b)
    return total


@dataclass(frozen=True)
class PolylineHit:
    point: LonLat
    segment_index: int
    distance_m: float


def nearest_point_on_polyline(polyline: Sequence[LonLat], point: LonLat) -> PolylineHit:
    """Closest point on ``polyline`` to ``point``.

    Each segment is projected in a frame anchored at ``point``. On ties the
    first segment found wins.
    """
    if not polyline:
        raise ValueError("polyline is empty")
    if len(polyline) == 1:
        only = polyline[0]
        return PolylineHit(only, 0, local_distance_m(point, only))

    best: PolylineHit | None = None
    for i, (a, b) in enumerate(zip(polyline, polyline[1:])):
        ax, ay = local_projection(a, point)
        bx, by = local_projection(b, point)
        dx, dy = bx - ax, by - ay
        seg_len2 = dx * dx + dy * dy
        t = 0.0 if seg_len2 == 0 else max(0.0, min(1.0, -(ax * dx + ay * dy) / seg_len2))
        px, py = ax + t * dx, ay + t * dy
        dist = math.hypot(px, py)
        if best is None or dist < best.distance_m:
            best = PolylineHit(local_unprojection((px, py), point), i, dist)
    return best


def _projected_ring(ring: Sequence[LonLat], origin: LonLat) -> List[Tuple[float, float]]:
    return [local_projection(p, origin) for p in ring]


def polygon_area_m2(ring: Sequence[LonLat], origin: LonLat) -> float:
    """Shoelace area of ``ring``; an unclosed ring is closed last→first."""
    if len(ring) < 3:
        return 0.0
    return float(Polygon(_projected_ring(ring, origin)).area)


def polygon_perimeter_m(ring: Sequence[LonLat], origin: LonLat) -> float:
    """Segment-sum perimeter of ``ring`` including the closing segment."""
    if len(ring) < 2:
        return 0.0
    xy = _projected_ring(ring, origin)
    if xy[0] != xy[-1]:
        xy.append(xy[0])
    return float(LineString(xy).length)


def sample_along_polyline(
    ring: Sequence[LonLat],
    start_segment_index: int,
    count: int,
    origin: LonLat,
) -> List[LonLat]:
    """Sample ``count`` evenly arc-spaced points around a ring.

    The ring is rotated so it starts at ``start_segment_index`` and is walked
    back to that start (implicitly closing it). The first sample is the start
    vertex itself.
    """
    if count <= 0 or len(ring) < 2:
        return []
    pts = list(ring)
    if pts[0] == pts[-1]:
        pts = pts[:-1]
    k = start_segment_index % len(pts)
    rotated = pts[k:] + pts[:k]
    rotated.append(rotated[0])

    xy = np.array(_projected_ring(rotated, origin), dtype=float)
    seg = np.hypot(np.diff(xy[:, 0]), np.diff(xy[:, 1]))
    cum = np.concatenate([[0.0], np.cumsum(seg)])
    total = float(cum[-1])
    if total == 0:
        return [rotated[0]] * count

    targets = np.arange(count) * (total / count)
    xs = np.interp(targets, cum, xy[:, 0])
    ys = np.interp(targets, cum, xy[:, 1])
    return [local_unprojection((float(x), float(y)), origin) for x, y in zip(xs, ys)]
