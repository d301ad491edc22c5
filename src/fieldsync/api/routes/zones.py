"""Zone endpoints. Listing is filtered per session; mutations are admin-only."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from ...errors import RecordNotFound
from ...models.domain import Session
from ...schemas.distributions import DistributionModel
from ...schemas.zones import ZoneAssignment, ZoneCreate, ZoneModel, ZoneUpdate
from ...services.access import can_see_zone, visible_distributions, visible_zones
from ..deps import Services, get_services, require_admin, require_session

router = APIRouter(prefix="/zones", tags=["zones"])


def _not_found(exc: RecordNotFound) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


@router.get("", response_model=List[ZoneModel], status_code=status.HTTP_200_OK)
def list_zones(services: Services = Depends(get_services), session: Session = Depends(require_session)) -> List[ZoneModel]:
    return [ZoneModel.from_domain(zone) for zone in visible_zones(session, services.zones.list())]


@router.get("/{zone_id}/distributions", response_model=List[DistributionModel], status_code=status.HTTP_200_OK)
def zone_distributions(
    zone_id: str,
    services: Services = Depends(get_services),
    session: Session = Depends(require_session),
) -> List[DistributionModel]:
    try:
        zone = services.zones.get(zone_id)
    except RecordNotFound as exc:
        raise _not_found(exc) from exc
    if not can_see_zone(session, zone):
        raise _not_found(RecordNotFound("zone", zone_id))
    visible = visible_distributions(session, services.distributions.list())
    return [DistributionModel.from_domain(d) for d in services.zones.distributions_inside(zone_id, visible)]


@router.post("", response_model=ZoneModel, status_code=status.HTTP_201_CREATED)
async def create_zone(
    payload: ZoneCreate,
    services: Services = Depends(get_services),
    _: Session = Depends(require_admin),
) -> ZoneModel:
    zone = await services.zones.create(
        name=payload.name,
        shape=payload.shape.to_shape(),
        color=payload.color,
        owner_team_id=payload.binome_id,
        owner_team_name=payload.binome_name,
    )
    return ZoneModel.from_domain(zone)


@router.patch("/{zone_id}", response_model=ZoneModel, status_code=status.HTTP_200_OK)
async def update_zone(
    zone_id: str,
    payload: ZoneUpdate,
    services: Services = Depends(get_services),
    _: Session = Depends(require_admin),
) -> ZoneModel:
    try:
        zone = await services.zones.update(
            zone_id,
            name=payload.name,
            shape=payload.shape.to_shape() if payload.shape is not None else None,
            color=payload.color,
        )
    except RecordNotFound as exc:
        raise _not_found(exc) from exc
    return ZoneModel.from_domain(zone)


@router.put("/{zone_id}/binome", response_model=ZoneModel, status_code=status.HTTP_200_OK)
async def assign_zone_binome(
    zone_id: str,
    payload: ZoneAssignment,
    services: Services = Depends(get_services),
    _: Session = Depends(require_admin),
) -> ZoneModel:
    try:
        zone = await services.zones.assign_binome(zone_id, payload.binome_id, payload.binome_name)
    except RecordNotFound as exc:
        raise _not_found(exc) from exc
    return ZoneModel.from_domain(zone)


@router.delete("/{zone_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_zone(
    zone_id: str,
    services: Services = Depends(get_services),
    _: Session = Depends(require_admin),
) -> None:
    try:
        await services.zones.delete(zone_id)
    except RecordNotFound as exc:
        raise _not_found(exc) from exc
