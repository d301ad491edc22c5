"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ...config import settings
from ...errors import RemoteTableError
from ..deps import Services, get_services

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


@router.get("/health/remote", status_code=status.HTTP_200_OK)
async def health_remote(services: Services = Depends(get_services)) -> dict:
    """Check that the remote table store answers a listing of the distributions table."""
    try:
        rows = await services.gateway.list(settings.distributions_table)
    except RemoteTableError as exc:
        return {"backend": settings.remote_backend, "healthy": False, "error": str(exc)}
    return {"backend": settings.remote_backend, "healthy": True, "rows": len(rows)}
