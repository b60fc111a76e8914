"""Per-application routing provider and matrix cache."""

from __future__ import annotations

import threading

from fastapi import Request

from ..services.routing.cache import CellCache
from ..services.routing.providers import RoutingProvider, build_provider

_lock = threading.Lock()


def get_provider(request: Request) -> RoutingProvider:
    """Return the app's provider, building it from settings on first use.

    Raises ``ValueError`` when the configured provider lacks its settings.
    """
    state = request.app.state
    with _lock:
        if getattr(state, "provider", None) is None:
            state.provider = build_provider()
        return state.provider


def get_cache(request: Request) -> CellCache | None:
    return getattr(request.app.state, "cache", None)
