"""FastAPI application entrypoint."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from loop_router.api.dependencies import build_cache
from loop_router.api.endpoints import NO_STORE, router as route_router
from loop_router.core.config import configure_logging, get_config
from loop_router.core.errors import InvalidInput

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    cfg = get_config()
    configure_logging(cfg)
    # One pooled client per process; per-call timeouts are set by the clients.
    app.state.http_client = httpx.AsyncClient()
    app.state.response_cache = build_cache(cfg)
    logger.info("Loop router started (router key %s)", "present" if cfg.router.api_key else "missing")
    yield
    await app.state.http_client.aclose()


app = FastAPI(title="Loop Router", lifespan=lifespan)

# Enable CORS for all origins (adjust in production)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(route_router)


def _validation_message(exc: RequestValidationError) -> str:
    fields = {str(part) for err in exc.errors() for part in err.get("loc", ())}
    if "startLatLng" in fields:
        return "Missing startLatLng: [lat,lng]"
    if "targetMeters" in fields:
        return "Missing targetMeters (number > 0)"
    return "Invalid request body"


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse({"error": _validation_message(exc)}, status_code=400, headers=NO_STORE)


@app.exception_handler(InvalidInput)
async def invalid_input_handler(request: Request, exc: InvalidInput) -> JSONResponse:
    return JSONResponse({"error": str(exc)}, status_code=400, headers=NO_STORE)


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
