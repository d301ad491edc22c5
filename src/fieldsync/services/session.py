"""Login, sliding expiry and logout for the binôme using this device."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta
from typing import Any, Optional

from ..config import settings
from ..db.gateway import TableGateway, remote_id
from ..errors import AuthenticationError, RemoteTableError
from ..models.domain import Session, utc_now, utc_now_iso
from ..persistence.kv import KeyValueStore
from .audit import ActivityLogger

logger = logging.getLogger(__name__)

SESSION_KEY = "session"
_INVALID_CREDENTIALS = "Invalid username or password"


def coerce_admin(value: Any) -> bool:
    """Binôme rows store the admin flag as a bool, an int or a string."""
    return value is True or value == 1 or value == "1"


class SessionManager:
    def __init__(
        self,
        gateway: TableGateway,
        store: KeyValueStore,
        *,
        audit: ActivityLogger | None = None,
        table: str | None = None,
        timeout: timedelta | None = None,
        refresh_interval: timedelta | None = None,
    ) -> None:
        self.gateway = gateway
        self.store = store
        self.audit = audit
        self.table = table or settings.binomes_table
        self.timeout = timeout or timedelta(minutes=settings.session_timeout_minutes)
        self.refresh_interval = refresh_interval or timedelta(seconds=settings.activity_refresh_seconds)
        self._last_activity: datetime | None = None

    async def login(self, username: str, password: str, now: datetime | None = None) -> Session:
        """Check credentials against the Binomes table and open a session.

        Raises ``AuthenticationError`` for an unknown user or a wrong password.
        Failures of the remote store propagate as ``RemoteTableError``.
        """
        rows = await self.gateway.list(self.table, {"username": username})
        user = next((row for row in rows if row.get("username") == username), None)
        if user is None or user.get("password") != password:
            logger.info(f"Rejected login for '{username}'")
            raise AuthenticationError(_INVALID_CREDENTIALS)

        record_id = remote_id(user)
        if record_id is not None:
            try:
                await self.gateway.update(self.table, record_id, {"last_login": utc_now_iso()})
            except RemoteTableError as exc:
                logger.warning(f"Could not update last_login for '{username}': {exc}")

        moment = now or utc_now()
        session = Session(
            user_id=str(user["username"]),
            display_name=str(user.get("binome_name") or username),
            assigned_zone=user.get("assigned_zone") or None,
            is_admin=coerce_admin(user.get("is_admin")),
            expiry=moment + self.timeout,
            record_id=record_id,
        )
        self._save(session)
        self._last_activity = moment
        logger.info(f"✅ '{username}' logged in (admin={session.is_admin})")

        if self.audit is not None:
            await self.audit.log_login(session.user_id, session.display_name)
        return session

    def current(self, now: datetime | None = None) -> Optional[Session]:
        """The stored session, or None. An expired session is cleared on read."""
        raw = self.store.get(SESSION_KEY)
        if raw is None:
            return None
        try:
            session = Session.from_dict(json.loads(raw.decode("utf-8")))
        except (UnicodeDecodeError, json.JSONDecodeError, KeyError, ValueError) as exc:
            logger.warning(f"Discarding unreadable stored session: {exc}")
            self.store.remove(SESSION_KEY)
            return None
        if session.is_expired(now):
            logger.info(f"Session of '{session.user_id}' expired")
            self.store.remove(SESSION_KEY)
            if self.audit is not None:
                self.audit.clear_context()
            return None
        if self.audit is not None and self.audit.context is None:
            self.audit.set_context(session.user_id, session.display_name)
        return session

    def touch(self, now: datetime | None = None) -> bool:
        """Slide the expiry forward on user activity, at most once per refresh interval."""
        moment = now or utc_now()
        if self._last_activity is not None and moment - self._last_activity < self.refresh_interval:
            return False
        session = self.current(moment)
        if session is None:
            return False
        session.expiry = moment + self.timeout
        self._save(session)
        self._last_activity = moment
        return True

    async def logout(self) -> None:
        if self.audit is not None:
            await self.audit.log_logout()
        self.store.remove(SESSION_KEY)
        self._last_activity = None

    def _save(self, session: Session) -> None:
        self.store.set(SESSION_KEY, json.dumps(session.to_dict()).encode("utf-8"))
