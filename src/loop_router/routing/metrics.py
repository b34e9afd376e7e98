"""Uniform metrics shared by Router-derived and synthetic routes."""
from __future__ import annotations

from typing import Dict, List, Optional, Sequence

import numpy as np

METERS_PER_MILE = 1609.34
FALLBACK_MINUTES_PER_MILE = 10.0

# Archetypal total ascent and linear falloff width per preference.
SCORE_TARGETS = {"flat": (60.0, 90.0), "hills": (220.0, 160.0)}


def total_ascent(profile: Sequence[Dict[str, float]]) -> float:
    """Sum of positive consecutive elevation deltas."""
    ascent = 0
    for prev, cur in zip(profile, profile[1:]):
        diff = cur["elevation"] - prev["elevation"]
        if diff > 0:
            ascent += diff
    return ascent


def match_score(ascent_m: float, preference: str) -> int:
    """Linear falloff from 100 around the preference's archetypal ascent, clamped to 0-100."""
    target, tolerance = SCORE_TARGETS["hills" if preference == "hills" else "flat"]
    raw = 100 - abs(ascent_m - target) / tolerance * 100
    return int(max(0, min(100, round(raw))))


def derive_elevation_profile(
    raw_altitudes: Optional[Sequence[float]],
    total_distance_m: float,
    fallback_profile: List[Dict[str, float]],
) -> List[Dict[str, float]]:
    """Spread Router altitudes evenly over the path, or use the fallback.

    At least three altitude samples are required; otherwise the fallback
    profile is returned untouched. The two sources are never mixed.
    """
    if raw_altitudes is None or len(raw_altitudes) < 3:
        return fallback_profile
    distances = np.linspace(0.0, total_distance_m, num=len(raw_altitudes))
    return [
        {"distanceMeters": float(d), "elevation": round(float(e))}
        for d, e in zip(distances, raw_altitudes)
    ]


def meters_to_miles(meters: float) -> float:
    return meters / METERS_PER_MILE


def estimated_minutes(distance_m: float, time_ms: Optional[float]) -> int:
    if time_ms is not None:
        return round(time_ms / 1000 / 60)
    return round(meters_to_miles(distance_m) * FALLBACK_MINUTES_PER_MILE)


def build_metrics(distance_m: float, time_ms: Optional[float], profile: List[Dict[str, float]]) -> Dict[str, float]:
    ascent = total_ascent(profile)
    return {
        "distanceMeters": round(distance_m, 1),
        "distanceMiles": round(meters_to_miles(distance_m), 2),
        "timeMinutes": estimated_minutes(distance_m, time_ms),
        "totalAscent": ascent,
        # No independent descent model: loops are reported as climb == descent.
        "totalDescent": ascent,
    }
