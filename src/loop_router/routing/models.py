"""Request-scoped value types passed between the routing components."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Literal, Optional, Tuple

LatLon = Tuple[float, float]  # geo order
LonLat = Tuple[float, float]  # map order

RouteShape = Literal["loop", "out-and-back"]
ElevationPref = Literal["flat", "hills"]
SurfacePref = Literal["mixed", "trail", "road"]

SOURCE_ROUTER = "graphhopper"
SOURCE_MOCK = "mock"


@dataclass(frozen=True)
class RouteOptions:
    """Normalized user intent for one generation request."""
    origin: LatLon
    target_meters: float
    route_type: RouteShape = "loop"
    elevation_pref: ElevationPref = "flat"
    surface_pref: SurfacePref = "mixed"
    avoid_major_roads: bool = False
    loop_at_park: bool = False
    park_search: Optional[str] = None
    direction_seed: int = 0

    def cache_key(self) -> tuple:
        return (
            round(self.origin[0], 6),
            round(self.origin[1], 6),
            round(self.target_meters, 1),
            self.route_type,
            self.elevation_pref,
            self.surface_pref,
            self.avoid_major_roads,
            self.loop_at_park,
            (self.park_search or "").strip().lower(),
            self.direction_seed,
        )


@dataclass(frozen=True)
class Candidate:
    index: int
    target_meters: float
    bearing_deg: float
    seed: int
    intensity: float


@dataclass
class Instruction:
    text: str
    distance_m: float
    sign: int = 0


@dataclass
class RoutePath:
    """A Router result or stitched combination of results, in map order."""
    coordinates: List[LonLat]
    distance_m: float
    time_ms: Optional[float] = None
    altitudes: Optional[List[float]] = None
    instructions: List[Instruction] = field(default_factory=list)


@dataclass
class ParkCandidate:
    name: Optional[str]
    boundary: List[LonLat]
    entry: LonLat
    entry_segment_index: int
    entry_distance_m: float
    area_m2: float
    perimeter_m: float


@dataclass
class ParkResolution:
    """Outcome of a park lookup: the chosen park plus any warning to surface."""
    park: Optional[ParkCandidate]
    warnings: List[str] = field(default_factory=list)


@dataclass
class ParkLoopInfo:
    name: Optional[str]
    entry: LonLat
    laps: int
    transit_m: float
