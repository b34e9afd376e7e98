"""Client for the external routing engine (GraphHopper-compatible POST /route)."""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import httpx

from loop_router.core.config import RouterEngineConfig
from loop_router.core.errors import InvalidInput, RouterFailure, RouterUnsupportedModel, classify_router_failure
from loop_router.core.geodesy import normalize_geo_order, polyline_length_m
from loop_router.routing.models import Instruction, LatLon, RoutePath

logger = logging.getLogger(__name__)

MAJOR_ROAD_CLASSES = ("MOTORWAY", "TRUNK", "PRIMARY")
TRAIL_ROAD_CLASSES = ("PATH", "TRACK", "FOOTWAY")


@dataclass
class WeightingHints:
    """Soft routing preferences expressed as a custom model."""
    avoid_major_roads: bool = False
    surface_pref: str = "mixed"

    def custom_model(self) -> Optional[Dict[str, Any]]:
        priority: List[Dict[str, str]] = []
        if self.avoid_major_roads:
            cond = " || ".join(f"road_class == {rc}" for rc in MAJOR_ROAD_CLASSES)
            priority.append({"if": cond, "multiply_by": "0.1"})
        if self.surface_pref == "trail":
            cond = " && ".join(f"road_class != {rc}" for rc in TRAIL_ROAD_CLASSES)
            priority.append({"if": cond, "multiply_by": "0.6"})
        elif self.surface_pref == "road":
            cond = " || ".join(f"road_class == {rc}" for rc in ("PATH", "TRACK"))
            priority.append({"if": cond, "multiply_by": "0.5"})
        if not priority:
            return None
        return {"priority": priority}


@dataclass
class RouterResult:
    path: RoutePath
    weighting_dropped: bool = False


def _router_points(points: Sequence[LatLon]) -> List[LatLon]:
    try:
        return [normalize_geo_order(p, f"Point {i}") for i, p in enumerate(points)]
    except InvalidInput as e:
        raise RouterFailure(str(e)) from e


class GraphHopperClient:
    """Point-to-point and round-trip calls with timeout and failure classification.

    Every call is bounded by ``timeout_s`` end to end. If the engine rejects
    the weighting model the request is retried exactly once without it; no
    other retries happen here.
    """

    def __init__(self, http: httpx.AsyncClient, config: RouterEngineConfig) -> None:
        self.http = http
        self.config = config

    @property
    def configured(self) -> bool:
        return bool(self.config.api_key)

    async def route_points(
        self,
        points: Sequence[LatLon],
        hints: Optional[WeightingHints] = None,
    ) -> RouterResult:
        """Route through ``points`` in order."""
        if len(points) < 2:
            raise ValueError("At least two waypoints are required")
        body = self._base_body(_router_points(points))
        return await self._post_with_fallback(body, hints)

    async def round_trip(
        self,
        origin: LatLon,
        distance_m: float,
        seed: int,
        hints: Optional[WeightingHints] = None,
    ) -> RouterResult:
        """Ask the engine for a loop of roughly ``distance_m`` from ``origin``."""
        body = self._base_body(_router_points([origin]))
        body["algorithm"] = "round_trip"
        body["round_trip.distance"] = int(round(distance_m))
        body["round_trip.seed"] = int(seed)
        return await self._post_with_fallback(body, hints)

    def _base_body(self, points: Sequence[LatLon]) -> Dict[str, Any]:
        return {
            # The engine's JSON body takes [lon, lat] pairs.
            "points": [[lon, lat] for lat, lon in points],
            "profile": self.config.profile,
            "points_encoded": False,
            "instructions": self.config.instructions,
            "locale": self.config.locale,
            "calc_points": True,
            "elevation": True,
        }

    async def _post_with_fallback(self, body: Dict[str, Any], hints: Optional[WeightingHints]) -> RouterResult:
        model = hints.custom_model() if hints else None
        if model is None:
            return RouterResult(await self._post(body))

        weighted = dict(body)
        weighted["custom_model"] = model
        weighted["ch.disable"] = True
        try:
            return RouterResult(await self._post(weighted, weighted=True))
        except RouterUnsupportedModel as e:
            logger.warning("Router rejected weighting (%s); retrying without it", e)
            return RouterResult(await self._post(body), weighting_dropped=True)

    async def _post(self, body: Dict[str, Any], weighted: bool = False) -> RoutePath:
        if not self.configured:
            raise RouterFailure("Router API key not configured")
        t0 = time.perf_counter()
        try:
            resp = await asyncio.wait_for(
                self.http.post(
                    self.config.base_url,
                    params={"key": self.config.api_key},
                    json=body,
                    timeout=self.config.timeout_s,
                ),
                timeout=self.config.timeout_s,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise RouterFailure(f"Router request timed out after {self.config.timeout_s}s") from e
        except httpx.HTTPError as e:
            raise RouterFailure(f"Router request failed: {e}") from e
        logger.debug("[TIMING] Router call: %.1fms", (time.perf_counter() - t0) * 1000)

        try:
            payload = resp.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}

        if not resp.is_success:
            message = payload.get("message") or payload.get("error") or f"Router error (status {resp.status_code})"
            if resp.status_code == 429 and "limit" not in message.lower():
                message = f"Router rate limit exceeded: {message}"
            failure = classify_router_failure(message, resp.status_code)
            if weighted and resp.status_code == 400 and type(failure) is RouterFailure:
                raise RouterUnsupportedModel(message, resp.status_code)
            raise failure

        return parse_path(payload)


def parse_path(payload: Dict[str, Any]) -> RoutePath:
    """Convert the first path of a Router response into a ``RoutePath``.

    Anything short of a path with at least two coordinates is a ``RouterFailure``.
    """
    try:
        paths = payload.get("paths") or []
        path = paths[0] if paths else {}
        coords = ((path.get("points") or {}).get("coordinates")) or []
        if not coords:
            raise RouterFailure("Router returned no coordinates")

        lonlat = [(float(c[0]), float(c[1])) for c in coords]
        altitudes = [float(c[2]) for c in coords if len(c) > 2 and isinstance(c[2], (int, float))]
        distance = path.get("distance")
        time_ms = path.get("time")
        instructions = [
            Instruction(
                text=str(ins.get("text", "")),
                distance_m=float(ins.get("distance", 0.0)),
                sign=int(ins.get("sign", 0)),
            )
            for ins in path.get("instructions") or []
        ]
    except (KeyError, IndexError, TypeError, ValueError, AttributeError) as e:
        raise RouterFailure("Router returned a malformed path") from e
    if len(lonlat) < 2:
        raise RouterFailure("Router returned a single-point path")

    return RoutePath(
        coordinates=lonlat,
        distance_m=float(distance) if isinstance(distance, (int, float)) else polyline_length_m(lonlat),
        time_ms=float(time_ms) if isinstance(time_ms, (int, float)) else None,
        altitudes=altitudes or None,
        instructions=instructions,
    )
