"""Pydantic models for login and session endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from ..models.domain import Session


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str


class SessionModel(BaseModel):
    user_id: str
    display_name: str
    assigned_zone: Optional[str] = None
    is_admin: bool
    expiry: datetime

    @classmethod
    def from_domain(cls, session: Session) -> "SessionModel":
        return cls(
            user_id=session.user_id,
            display_name=session.display_name,
            assigned_zone=session.assigned_zone,
            is_admin=session.is_admin,
            expiry=session.expiry,
        )
