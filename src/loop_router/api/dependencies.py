"""Dependency wiring for API service."""
from __future__ import annotations

from typing import Union

import httpx
from fastapi import Depends, Request

from loop_router.core.cache import NullCache, ResponseCache
from loop_router.core.config import ServiceConfig, get_config
from loop_router.data.graphhopper import GraphHopperClient
from loop_router.data.places import OverpassPlaces
from loop_router.routing.candidates import RouteSuggester


def get_service_config() -> ServiceConfig:
    return get_config()


def build_cache(cfg: ServiceConfig) -> Union[ResponseCache, NullCache]:
    if not cfg.cache.enabled:
        return NullCache()
    return ResponseCache(max_entries=cfg.cache.max_entries, default_ttl_s=cfg.cache.ttl_s)


def get_http_client(request: Request) -> httpx.AsyncClient:
    """Process-wide client opened by the app lifespan."""
    return request.app.state.http_client


def get_cache(request: Request) -> Union[ResponseCache, NullCache]:
    cache = getattr(request.app.state, "response_cache", None)
    return NullCache() if cache is None else cache


def get_suggester(
    http: httpx.AsyncClient = Depends(get_http_client),
    cfg: ServiceConfig = Depends(get_service_config),
    cache: Union[ResponseCache, NullCache] = Depends(get_cache),
) -> RouteSuggester:
    return RouteSuggester(
        router=GraphHopperClient(http, cfg.router),
        places=OverpassPlaces(http, cfg.places),
        config=cfg,
        cache=cache,
    )
