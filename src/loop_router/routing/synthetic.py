"""Idealized fallback geometry used when no real route is available.

Nothing produced here is routable. The elevation profile in particular is
cosmetic filler so the UI has something to chart; it is not terrain data and
every feature built from it is tagged with the ``mock`` source.
"""
from __future__ import annotations

import math
from typing import Dict, List

from loop_router.core.geodesy import destination, meters_to_lat_delta, meters_to_lon_delta
from loop_router.routing.models import LatLon, LonLat

LOOP_SEGMENTS = 70
PROFILE_SEGMENTS = 50
BASE_ELEVATION_M = 120.0


def synthetic_loop(origin: LatLon, target_meters: float, hilliness: str) -> List[LonLat]:
    """Closed 71-point ring whose southernmost point is ``origin``.

    The ring centre sits one radius north of the origin so the loop starts and
    ends exactly on the pin. With ``hills`` the radius wobbles by
    ``1 + 0.2 sin(2θ)``; at θ = -π/2 that factor is 1, so closure is kept.
    The wobble would push part of the ring south of the pin, so latitudes
    are clamped to the origin's.
    """
    lat, lon = origin
    radius = target_meters / (2 * math.pi)
    center_lat = lat + meters_to_lat_delta(radius)

    coords: List[LonLat] = []
    for i in range(LOOP_SEGMENTS + 1):
        theta = -math.pi / 2 + (i / LOOP_SEGMENTS) * 2 * math.pi
        factor = 1 + 0.2 * math.sin(2 * theta) if hilliness == "hills" else 1.0
        r = radius * factor
        dx = meters_to_lon_delta(r * math.cos(theta), lat)
        dy = meters_to_lat_delta(r * math.sin(theta))
        coords.append((lon + dx, max(lat, center_lat + dy)))
    # Pin both ends to the origin exactly.
    coords[0] = (lon, lat)
    coords[-1] = (lon, lat)
    return coords


def synthetic_out_and_back(origin: LatLon, target_meters: float, bearing_deg: float) -> List[LonLat]:
    lat, lon = origin
    mid_lat, mid_lon = destination(origin, target_meters / 2, bearing_deg)
    return [(lon, lat), (mid_lon, mid_lat), (lon, lat)]


def synthetic_elevation_profile(
    length_meters: float,
    preference: str,
    intensity: float = 1.0,
) -> List[Dict[str, float]]:
    """51 evenly spaced samples of a made-up sinusoidal profile."""
    hills = preference == "hills"
    amp = (35 if hills else 8) * intensity
    out: List[Dict[str, float]] = []
    for i in range(PROFILE_SEGMENTS + 1):
        frac = i / PROFILE_SEGMENTS
        elev = BASE_ELEVATION_M + amp * math.sin(frac * 2 * math.pi)
        if hills:
            elev += amp * 0.4 * math.sin(frac * 6 * math.pi)
        out.append({"distanceMeters": frac * length_meters, "elevation": round(elev)})
    return out
