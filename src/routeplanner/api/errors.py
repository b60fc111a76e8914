"""HTTP rendering of route optimization failures."""

from __future__ import annotations

import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse

from ..errors import RouteOptimizationError

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    "invalid_input": status.HTTP_400_BAD_REQUEST,
    "provider_unavailable": status.HTTP_503_SERVICE_UNAVAILABLE,
    "provider_data": status.HTTP_502_BAD_GATEWAY,
    "timeout": status.HTTP_504_GATEWAY_TIMEOUT,
    "internal": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_for(error: RouteOptimizationError) -> int:
    return ERROR_STATUS.get(error.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)


async def route_optimization_error_handler(request: Request, exc: RouteOptimizationError) -> JSONResponse:
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed ({exc.kind}): {exc.message}")
    return JSONResponse(status_code=status_code, content={"kind": exc.kind, "detail": exc.message})
