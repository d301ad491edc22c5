"""Login and logout endpoints."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status

from ...errors import AuthenticationError, RemoteTableError
from ...models.domain import Session
from ...schemas.session import LoginRequest, SessionModel
from ..deps import Services, get_services, optional_session

router = APIRouter(prefix="/session", tags=["session"])


@router.post("/login", response_model=SessionModel, status_code=status.HTTP_200_OK)
async def login(payload: LoginRequest, services: Services = Depends(get_services)) -> SessionModel:
    try:
        session = await services.sessions.login(payload.username, payload.password)
    except AuthenticationError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    except RemoteTableError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Remote store unavailable: {exc}",
        ) from exc
    # Pull the remote state for the new session.
    services.engine.schedule()
    return SessionModel.from_domain(session)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(services: Services = Depends(get_services)) -> None:
    services.engine.cancel()
    await services.sessions.logout()


@router.get("", response_model=SessionModel, status_code=status.HTTP_200_OK)
def current_session(session: Optional[Session] = Depends(optional_session)) -> SessionModel:
    if session is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not logged in or session expired.")
    return SessionModel.from_domain(session)
