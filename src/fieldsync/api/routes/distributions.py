"""Distribution endpoints: filtered listing, statistics and local mutations."""

from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...errors import RecordNotFound
from ...models.domain import DistributionStatus, Session
from ...schemas.distributions import (
    DistributionCreate,
    DistributionListResponse,
    DistributionModel,
    DistributionStatsResponse,
    DistributionUpdate,
)
from ...services.access import visible_zones
from ...services.query import DistributionQuery, compute_stats
from ..deps import Services, get_services, require_session

router = APIRouter(prefix="/distributions", tags=["distributions"])


def _build_query(
    services: Services,
    session: Session,
    status_filter: Optional[DistributionStatus],
    search: Optional[str],
    date_from: Optional[date],
    date_to: Optional[date],
    payment: Optional[str],
    binome: Optional[str],
    zone_id: Optional[str],
) -> DistributionQuery:
    zone = None
    if zone_id:
        zone = next((z for z in visible_zones(session, services.zones.list()) if z.id == zone_id), None)
        if zone is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"zone '{zone_id}' not found")
    return DistributionQuery(
        status=status_filter,
        search=search,
        date_from=date_from,
        date_to=date_to,
        payment=payment,
        owner_id=binome,
        zone=zone,
    )


@router.get("", response_model=DistributionListResponse, status_code=status.HTTP_200_OK)
def list_distributions(
    status_filter: Optional[DistributionStatus] = Query(default=None, alias="status"),
    search: Optional[str] = Query(default=None, description="Free text matched against address and notes"),
    date_from: Optional[date] = Query(default=None),
    date_to: Optional[date] = Query(default=None),
    payment: Optional[str] = Query(default=None, description="Payment method, or 'unspecified'"),
    binome: Optional[str] = Query(default=None, description="Owning binôme username"),
    zone_id: Optional[str] = Query(default=None),
    services: Services = Depends(get_services),
    session: Session = Depends(require_session),
) -> DistributionListResponse:
    query = _build_query(services, session, status_filter, search, date_from, date_to, payment, binome, zone_id)
    items = query.apply(session, services.distributions.list())
    return DistributionListResponse(items=[DistributionModel.from_domain(d) for d in items], total=len(items))


@router.get("/stats", response_model=DistributionStatsResponse, status_code=status.HTTP_200_OK)
def distribution_stats(
    status_filter: Optional[DistributionStatus] = Query(default=None, alias="status"),
    search: Optional[str] = Query(default=None),
    date_from: Optional[date] = Query(default=None),
    date_to: Optional[date] = Query(default=None),
    payment: Optional[str] = Query(default=None),
    binome: Optional[str] = Query(default=None),
    zone_id: Optional[str] = Query(default=None),
    services: Services = Depends(get_services),
    session: Session = Depends(require_session),
) -> DistributionStatsResponse:
    query = _build_query(services, session, status_filter, search, date_from, date_to, payment, binome, zone_id)
    return DistributionStatsResponse(**compute_stats(query.apply(session, services.distributions.list())))


@router.post("", response_model=DistributionModel, status_code=status.HTTP_201_CREATED)
async def create_distribution(
    payload: DistributionCreate,
    services: Services = Depends(get_services),
    session: Session = Depends(require_session),
) -> DistributionModel:
    created = await services.distributions.create(session, payload.model_dump(exclude_none=True))
    return DistributionModel.from_domain(created)


@router.patch("/{distribution_id}", response_model=DistributionModel, status_code=status.HTTP_200_OK)
async def update_distribution(
    distribution_id: str,
    payload: DistributionUpdate,
    services: Services = Depends(get_services),
    session: Session = Depends(require_session),
) -> DistributionModel:
    try:
        updated = await services.distributions.update(session, distribution_id, payload.model_dump(exclude_unset=True))
    except RecordNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return DistributionModel.from_domain(updated)


@router.delete("/{distribution_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_distribution(
    distribution_id: str,
    services: Services = Depends(get_services),
    session: Session = Depends(require_session),
) -> None:
    try:
        await services.distributions.remove(session, distribution_id)
    except RecordNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
