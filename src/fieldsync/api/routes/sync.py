"""Manual sync trigger, status and duplicate cleanup."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from ...config import settings
from ...errors import CycleAbortError
from ...models.domain import Session
from ...schemas.sync import CleanupResponse, SyncRunResponse, SyncStatusResponse
from ...services.sync.cleanup import cleanup_duplicates
from ..deps import Services, get_services, require_admin, require_session

router = APIRouter(prefix="/sync", tags=["sync"])


@router.get("/status", response_model=SyncStatusResponse, status_code=status.HTTP_200_OK)
def sync_status(services: Services = Depends(get_services)) -> SyncStatusResponse:
    return SyncStatusResponse(**services.engine.status_dict())


@router.post("/now", response_model=SyncRunResponse, status_code=status.HTTP_200_OK)
async def sync_now(services: Services = Depends(get_services), _: Session = Depends(require_session)) -> SyncRunResponse:
    """Run a cycle immediately. ``ran`` is false when a cycle was already in flight or aborted."""
    if not services.engine.sync_in_progress:
        # A timer armed during an in-flight cycle must survive to push later mutations.
        services.engine.cancel()
    result = await services.engine.sync_now()
    return SyncRunResponse(
        ran=result is not None,
        result=result.to_dict() if result is not None else None,
        status=SyncStatusResponse(**services.engine.status_dict()),
    )


@router.post("/cleanup-duplicates", response_model=CleanupResponse, status_code=status.HTTP_200_OK)
async def cleanup(services: Services = Depends(get_services), _: Session = Depends(require_admin)) -> CleanupResponse:
    table = settings.distributions_table
    try:
        deleted = await cleanup_duplicates(services.gateway, table)
    except CycleAbortError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return CleanupResponse(table=table, deleted=deleted)
