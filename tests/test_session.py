from datetime import timedelta

import pytest

from src.fieldsync.errors import AuthenticationError
from src.fieldsync.models.domain import utc_now
from src.fieldsync.services.audit import ActivityLogger
from src.fieldsync.services.session import SESSION_KEY, SessionManager, coerce_admin

from conftest import FakeGateway

BINOMES = "Binomes"


@pytest.fixture
def binomes() -> FakeGateway:
    return FakeGateway(
        {
            BINOMES: [
                {"Id": 1, "username": "alice", "password": "pw", "binome_name": "Alice & Co", "assigned_zone": "North", "is_admin": 0},
                {"Id": 2, "username": "root", "password": "admin", "binome_name": "Admin", "is_admin": "1"},
            ]
        }
    )


@pytest.mark.parametrize("value, expected", [(True, True), (1, True), ("1", True), (0, False), ("true", False), (None, False)])
def test_coerce_admin(value, expected) -> None:
    assert coerce_admin(value) is expected


@pytest.mark.asyncio
async def test_login_builds_and_persists_session(binomes, store) -> None:
    manager = SessionManager(binomes, store)
    before = utc_now()

    session = await manager.login("alice", "pw")

    assert session.user_id == "alice"
    assert session.display_name == "Alice & Co"
    assert session.assigned_zone == "North"
    assert session.is_admin is False
    assert session.record_id == "1"
    assert session.expiry >= before + timedelta(minutes=30)
    assert store.get(SESSION_KEY) is not None
    assert manager.current().user_id == "alice"
    assert "last_login" in binomes.rows(BINOMES)[0]


@pytest.mark.asyncio
async def test_admin_flag_from_string(binomes, store) -> None:
    session = await SessionManager(binomes, store).login("root", "admin")
    assert session.is_admin is True


@pytest.mark.asyncio
@pytest.mark.parametrize("username, password", [("alice", "wrong"), ("nobody", "pw")])
async def test_bad_credentials_raise(binomes, store, username, password) -> None:
    with pytest.raises(AuthenticationError):
        await SessionManager(binomes, store).login(username, password)
    assert store.get(SESSION_KEY) is None


@pytest.mark.asyncio
async def test_expired_session_is_cleared(binomes, store) -> None:
    manager = SessionManager(binomes, store)
    session = await manager.login("alice", "pw")

    assert manager.current(session.expiry + timedelta(seconds=1)) is None
    assert store.get(SESSION_KEY) is None


@pytest.mark.asyncio
async def test_touch_slides_expiry_at_most_once_per_interval(binomes, store) -> None:
    manager = SessionManager(binomes, store)
    start = utc_now()
    await manager.login("alice", "pw", now=start)

    assert manager.touch(start + timedelta(seconds=30)) is False
    assert manager.touch(start + timedelta(minutes=5)) is True
    assert manager.current().expiry == start + timedelta(minutes=35)


@pytest.mark.asyncio
async def test_login_and_logout_are_audited(binomes, store) -> None:
    audit = ActivityLogger(binomes)
    manager = SessionManager(binomes, store, audit=audit)

    await manager.login("alice", "pw")
    await manager.logout()

    actions = [row["action"] for row in binomes.rows("Logs")]
    assert actions == ["login", "logout"]
    assert audit.context is None
    assert manager.current() is None
