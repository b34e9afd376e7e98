"""Exception taxonomy shared by the API, the clients and the orchestrator."""
from __future__ import annotations


class LoopRouterError(Exception):
    """Base class for expected, classified failures."""


class InvalidInput(LoopRouterError):
    """Malformed request. Surfaces as HTTP 400 and is never retried."""


class RouterFailure(LoopRouterError):
    """Routing engine call failed (transport, status, empty path or timeout)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RouterRateLimited(RouterFailure):
    """Routing engine refused the call because a usage limit was hit."""


class RouterUnsupportedModel(RouterFailure):
    """Routing engine rejected the custom weighting model."""


class PlacesFailure(LoopRouterError):
    """Area lookup failed or timed out. Callers treat it as "no park found"."""


def classify_router_failure(message: str, status_code: int | None = None) -> RouterFailure:
    """Build the right ``RouterFailure`` subtype for a failure message."""
    if "limit" in message.lower():
        return RouterRateLimited(message, status_code)
    return RouterFailure(message, status_code)
