from datetime import timedelta

from src.fieldsync.models.domain import LatLng, PolygonShape, Zone, utc_now
from src.fieldsync.services.access import (
    can_see_distribution,
    can_see_zone,
    visible_distributions,
    visible_zones,
)

from conftest import make_distribution, make_session

SHAPE = PolygonShape(ring=(LatLng(0, 0), LatLng(0, 1), LatLng(1, 1)))


def _zone(zone_id: str, name: str, owner: str | None = None) -> Zone:
    return Zone(id=zone_id, name=name, shape=SHAPE, owner_team_id=owner)


def test_admin_sees_everything() -> None:
    admin = make_session("root", is_admin=True)
    assert can_see_distribution(admin, make_distribution("d1", "x", owner_id="bob")) is True
    assert can_see_zone(admin, _zone("z9", "Elsewhere")) is True


def test_binome_sees_only_own_distributions() -> None:
    alice = make_session("alice")
    assert can_see_distribution(alice, make_distribution("d1", "x", owner_id="alice")) is True
    assert can_see_distribution(alice, make_distribution("d2", "y", owner_id="bob")) is False


def test_zone_matched_by_id_name_or_owner() -> None:
    session = make_session("alice", assigned_zone="North")

    assert can_see_zone(session, _zone("z1", "North")) is True
    assert can_see_zone(session, _zone("North", "Nord")) is True
    assert can_see_zone(session, _zone("z2", "South")) is False
    assert can_see_zone(session, _zone("z3", "East", owner="alice")) is True


def test_no_assigned_zone_only_matches_owner() -> None:
    session = make_session("alice", assigned_zone=None)
    assert can_see_zone(session, _zone("z1", "North")) is False
    assert can_see_zone(session, _zone("z2", "South", owner="alice")) is True


def test_missing_or_expired_session_sees_nothing() -> None:
    expired = make_session("alice", is_admin=True)
    expired.expiry = utc_now() - timedelta(seconds=1)
    distribution = make_distribution("d1", "x", owner_id="alice")

    assert can_see_distribution(None, distribution) is False
    assert can_see_distribution(expired, distribution) is False
    assert can_see_zone(None, _zone("z1", "North")) is False


def test_visible_filters_do_not_mutate_input() -> None:
    alice = make_session("alice", assigned_zone="North")
    items = [make_distribution("d1", "x", owner_id="alice"), make_distribution("d2", "y", owner_id="bob")]
    zones = [_zone("z1", "North"), _zone("z2", "South")]

    assert [d.id for d in visible_distributions(alice, items)] == ["d1"]
    assert [z.id for z in visible_zones(alice, zones)] == ["z1"]
    assert len(items) == 2 and len(zones) == 2
