"""Free-text address lookup (Nominatim-compatible) for the command line."""
from __future__ import annotations

import httpx

from loop_router.core.config import GeocoderConfig
from loop_router.core.errors import LoopRouterError
from loop_router.routing.models import LatLon


class GeocodeFailure(LoopRouterError):
    """Address could not be resolved to a coordinate."""


async def geocode(http: httpx.AsyncClient, query: str, config: GeocoderConfig) -> LatLon:
    """Return the ``(lat, lon)`` of the best match for ``query``."""
    try:
        resp = await http.get(
            config.base_url,
            params={"format": "json", "limit": 1, "addressdetails": 0, "q": query},
            headers={"User-Agent": config.user_agent},
            timeout=config.timeout_s,
        )
        resp.raise_for_status()
        results = resp.json()
    except (httpx.HTTPError, ValueError) as e:
        raise GeocodeFailure(f"Geocoding failed: {e}") from e
    if not results:
        raise GeocodeFailure(f"No results for address: {query}")
    return float(results[0]["lat"]), float(results[0]["lon"])
