"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Request, status

from ..dependencies import get_provider

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


@router.get("/health/provider", status_code=status.HTTP_200_OK)
def health_provider(request: Request) -> dict:
    """Check that the configured routing provider answers."""
    try:
        provider = get_provider(request)
    except ValueError as e:
        return {"service": "unconfigured", "healthy": False, "error": str(e)}
    try:
        return {"service": provider.name, "healthy": provider.check_health()}
    except Exception as e:
        return {"service": provider.name, "healthy": False, "error": str(e)}
