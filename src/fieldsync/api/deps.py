"""Service container and request dependencies shared by the routers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, Request, status

from ..config import settings
from ..db import build_gateway
from ..db.gateway import TableGateway
from ..models.domain import Session
from ..persistence.kv import FileKeyValueStore, KeyValueStore
from ..persistence.replica import LocalReplica
from ..services.audit import ActivityLogger
from ..services.distributions import DistributionService
from ..services.session import SessionManager
from ..services.sync.engine import ReconciliationEngine
from ..services.zones import ZoneService


@dataclass
class Services:
    gateway: TableGateway
    store: KeyValueStore
    replica: LocalReplica
    audit: ActivityLogger
    sessions: SessionManager
    engine: ReconciliationEngine
    distributions: DistributionService
    zones: ZoneService

    async def close(self) -> None:
        await self.engine.shutdown()
        await self.gateway.close()


def build_services(
    gateway: TableGateway | None = None,
    store: KeyValueStore | None = None,
    *,
    debounce_seconds: float | None = None,
) -> Services:
    gateway = gateway or build_gateway()
    store = store or FileKeyValueStore(settings.replica_root)
    replica = LocalReplica(store)
    audit = ActivityLogger(gateway)
    sessions = SessionManager(gateway, store, audit=audit)
    engine = ReconciliationEngine(gateway, replica, sessions.current, debounce_seconds=debounce_seconds)
    return Services(
        gateway=gateway,
        store=store,
        replica=replica,
        audit=audit,
        sessions=sessions,
        engine=engine,
        distributions=DistributionService(replica, engine, audit),
        zones=ZoneService(replica, engine, audit),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


def optional_session(services: Services = Depends(get_services)) -> Optional[Session]:
    return services.sessions.current()


def require_session(services: Services = Depends(get_services)) -> Session:
    session = services.sessions.current()
    if session is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not logged in or session expired.")
    services.sessions.touch()
    return session


def require_admin(session: Session = Depends(require_session)) -> Session:
    if not session.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Administrator access required.")
    return session
