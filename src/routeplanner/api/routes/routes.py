"""Routing endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request, status
from fastapi.responses import PlainTextResponse

from ...errors import ProviderUnavailableError
from ...models.domain import OptimizedRouteResult
from ...schemas.routing import OptimizationRequest, OptimizedRouteResponse
from ...services.outputs.routing_formatter import result_to_csv, result_to_json
from ...services.routing.service import optimize_route
from ..dependencies import get_cache, get_provider

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/routes", tags=["routes"])


def _optimize(payload: OptimizationRequest, request: Request) -> OptimizedRouteResult:
    try:
        provider = get_provider(request)
    except ValueError as exc:
        logger.error(f"Routing provider is not configured: {exc}")
        raise ProviderUnavailableError(f"Routing provider is not configured: {exc}") from exc
    # RouteOptimizationError is rendered by the app-level exception handler.
    return optimize_route(payload, provider=provider, cache=get_cache(request))


@router.post("/optimize", response_model=OptimizedRouteResponse, status_code=status.HTTP_200_OK)
def optimize(payload: OptimizationRequest, request: Request) -> OptimizedRouteResponse:
    result = _optimize(payload, request)
    return OptimizedRouteResponse(**result_to_json(result))


@router.post("/optimize/csv", response_class=PlainTextResponse, status_code=status.HTTP_200_OK)
def optimize_csv(payload: OptimizationRequest, request: Request) -> PlainTextResponse:
    """Same as ``/optimize`` but returns the stop sequence as CSV."""
    result = _optimize(payload, request)
    return PlainTextResponse(
        result_to_csv(result),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="optimized_route.csv"'},
    )
