"""API request and response models."""
from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field, field_validator

from loop_router.core.config import DefaultsConfig
from loop_router.core.geodesy import normalize_geo_order
from loop_router.routing.models import RouteOptions


class RouteRequest(BaseModel):
    """Body of ``POST /route``.

    Only ``startLatLng`` and ``targetMeters`` are strict; unknown values in
    the preference fields fall back to their defaults.
    """

    model_config = ConfigDict(populate_by_name=True)

    start_lat_lng: Tuple[float, float] = Field(..., alias="startLatLng", description="[lat, lon] (either order accepted)")
    target_meters: float = Field(..., alias="targetMeters", gt=0, allow_inf_nan=False)
    route_type: str = Field("loop", alias="routeType")
    elevation_pref: str = Field("flat", alias="elevationPref")
    surface_pref: str = Field("mixed", alias="surfacePref")
    direction_seed: int = Field(0, alias="directionSeed")
    avoid_major_roads: Optional[bool] = Field(None, alias="avoidMajorRoads")
    loop_at_park: bool = Field(False, alias="loopAtPark")
    park_search: Optional[str] = Field(None, alias="parkSearch", max_length=120)

    @field_validator("route_type", mode="before")
    @classmethod
    def _route_type(cls, v: Any) -> str:
        return "out-and-back" if v == "out-and-back" else "loop"

    @field_validator("elevation_pref", mode="before")
    @classmethod
    def _elevation_pref(cls, v: Any) -> str:
        return "hills" if v == "hills" else "flat"

    @field_validator("surface_pref", mode="before")
    @classmethod
    def _surface_pref(cls, v: Any) -> str:
        return v if v in ("trail", "road") else "mixed"

    @field_validator("direction_seed", mode="before")
    @classmethod
    def _direction_seed(cls, v: Any) -> int:
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            return 0
        return int(v)

    @field_validator("loop_at_park", mode="before")
    @classmethod
    def _loop_at_park(cls, v: Any) -> bool:
        return v is True

    def to_options(self, defaults: DefaultsConfig) -> RouteOptions:
        """Normalize into the orchestrator's input. Raises ``InvalidInput``."""
        origin = normalize_geo_order(self.start_lat_lng, "startLatLng")
        avoid = defaults.avoid_major_roads if self.avoid_major_roads is None else self.avoid_major_roads
        return RouteOptions(
            origin=origin,
            target_meters=float(self.target_meters),
            route_type=self.route_type,  # type: ignore[arg-type]
            elevation_pref=self.elevation_pref,  # type: ignore[arg-type]
            surface_pref=self.surface_pref,  # type: ignore[arg-type]
            avoid_major_roads=avoid,
            loop_at_park=self.loop_at_park,
            park_search=self.park_search or None,
            direction_seed=self.direction_seed,
        )


class RouteFeatureCollection(BaseModel):
    type: Literal["FeatureCollection"] = "FeatureCollection"
    features: List[Dict[str, Any]]
