"""API routers."""
from __future__ import annotations

import logging
import time

from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse

from loop_router.api.dependencies import get_service_config, get_suggester
from loop_router.api.schemas import RouteFeatureCollection, RouteRequest
from loop_router.core.config import ServiceConfig
from loop_router.routing.candidates import RouteSuggester

logger = logging.getLogger(__name__)

NO_STORE = {"Cache-Control": "no-store"}

router = APIRouter()


@router.get("/route")
def route_alive(response: Response) -> dict:
    """Liveness probe; never touches the Router or Places."""
    response.headers.update(NO_STORE)
    return {"ok": True, "message": "API is alive. Use POST to generate routes."}


@router.post("/route", response_model=RouteFeatureCollection)
async def route(
    req: RouteRequest,
    response: Response,
    suggester: RouteSuggester = Depends(get_suggester),
    cfg: ServiceConfig = Depends(get_service_config),
):
    """Suggest three running routes as a GeoJSON FeatureCollection.

    Router and Places outages degrade to synthetic features with warnings;
    only malformed input (400) and unexpected errors (500) fail the request.
    """
    response.headers.update(NO_STORE)
    options = req.to_options(cfg.defaults)

    t0 = time.perf_counter()
    try:
        collection = await suggester.suggest(options)
    except Exception:
        logger.exception("Error generating routes for %s", options)
        return JSONResponse({"error": "Internal server error"}, status_code=500, headers=NO_STORE)
    logger.info("[TIMING] POST /route: %.1fms", (time.perf_counter() - t0) * 1000)
    return collection


@router.api_route("/route", methods=["PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"], include_in_schema=False)
def route_wrong_method() -> JSONResponse:
    return JSONResponse({"error": "Use POST"}, status_code=405, headers=NO_STORE)
