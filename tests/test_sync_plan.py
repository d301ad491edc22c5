import pytest

from src.fieldsync.models.domain import CircleShape, DistributionStatus, LatLng, PolygonShape, Zone
from src.fieldsync.services.sync.apply import apply_plan
from src.fieldsync.services.sync.mapping import distribution_to_row, row_to_distribution, zone_to_row
from src.fieldsync.services.sync.plan import plan_zone_replacement, reconcile_distributions

from conftest import FakeGateway, make_distribution

TABLE = "Distributions"


def _row(row_id: int, local_id: str | None, address: str, **fields) -> dict:
    row = {"Id": row_id, "address": address, "lat": 48.85, "lng": 2.35, "status": "effectue"}
    if local_id is not None:
        row["localId"] = local_id
    row.update(fields)
    return row


def test_classification_create_update_delete() -> None:
    local = [make_distribution("A", "1 rue A", notes="changed"), make_distribution("C", "3 rue C")]
    remote = [_row(1, "A", "1 rue A"), _row(2, "B", "2 rue B")]

    plan = reconcile_distributions(local, remote)

    assert [op.key for op in plan.to_update] == ["A"]
    assert [op.key for op in plan.to_delete] == ["B"]
    assert [op.key for op in plan.to_create] == ["C"]
    assert plan.to_update[0].remote_id == "1"
    assert plan.to_delete[0].remote_id == "2"
    assert plan.summary() == {"toCreate": ["C"], "toUpdate": ["A"], "toDelete": ["B"]}


def test_update_sends_full_field_set() -> None:
    local = [make_distribution("A", "1 rue A", notes="new note")]
    plan = reconcile_distributions(local, [_row(1, "A", "1 rue A")])

    payload = plan.to_update[0].payload
    assert payload == distribution_to_row(local[0])
    assert payload["notes"] == "new note"
    assert payload["binome_id"] == "alice"


def test_create_defaults_created_at() -> None:
    distribution = make_distribution("A", "1 rue A", created_at="")
    plan = reconcile_distributions([distribution], [], now="2024-05-01T00:00:00Z")

    assert plan.to_create[0].payload["createdAt"] == "2024-05-01T00:00:00Z"


def test_legacy_row_matched_by_address_gets_local_id() -> None:
    local = [make_distribution("A", "1 rue A")]
    remote = [_row(7, None, "1 rue A")]

    plan = reconcile_distributions(local, remote)

    assert plan.to_create == [] and plan.to_delete == []
    assert len(plan.to_update) == 1
    assert plan.to_update[0].remote_id == "7"
    assert plan.to_update[0].payload["localId"] == "A"


def test_legacy_row_with_unknown_address_is_deleted() -> None:
    plan = reconcile_distributions([make_distribution("A", "1 rue A")], [_row(7, None, "9 rue Z")])

    assert [op.remote_id for op in plan.to_delete] == ["7"]
    assert [op.key for op in plan.to_create] == ["A"]


def test_shared_address_rows_are_claimed_in_list_order() -> None:
    local = [make_distribution("A", "1 rue A"), make_distribution("B", "1 rue A")]
    remote = [_row(10, None, "1 rue A"), _row(11, None, "1 rue A")]

    plan = reconcile_distributions(local, remote)

    assert [(op.key, op.remote_id) for op in plan.to_update] == [("A", "10"), ("B", "11")]
    assert plan.to_create == []


def test_legacy_row_is_never_matched_twice() -> None:
    local = [make_distribution("A", "1 rue A"), make_distribution("B", "1 rue A")]
    plan = reconcile_distributions(local, [_row(10, None, "1 rue A")])

    assert [op.key for op in plan.to_update] == ["A"]
    assert [op.key for op in plan.to_create] == ["B"]


def test_duplicate_local_id_rows_are_deleted() -> None:
    local = [make_distribution("A", "1 rue A")]
    remote = [_row(1, "A", "1 rue A", binome_id="alice"), _row(2, "A", "1 rue A")]

    plan = reconcile_distributions(local, remote)

    assert [op.remote_id for op in plan.to_delete] == ["2"]


def test_empty_local_deletes_everything() -> None:
    plan = reconcile_distributions([], [_row(1, "A", "x"), _row(2, None, "y")])

    assert sorted(op.remote_id for op in plan.to_delete) == ["1", "2"]


@pytest.mark.asyncio
async def test_second_run_is_empty_after_apply() -> None:
    gateway = FakeGateway({TABLE: [_row(1, "A", "1 rue A"), _row(2, None, "2 rue B"), _row(3, "Z", "gone")]})
    local = [
        make_distribution("A", "1 rue A", status=DistributionStatus.RETRY),
        make_distribution("B", "2 rue B", amount=12.5, payment_method="cb"),
        make_distribution("C", "3 rue C"),
    ]

    first = reconcile_distributions(local, await gateway.list(TABLE))
    report = await apply_plan(gateway, first)
    assert report.ok
    assert (report.created, report.updated, report.deleted) == (1, 2, 1)

    second = reconcile_distributions(local, await gateway.list(TABLE))
    assert second.is_empty
    assert second.summary() == {}


def test_row_to_distribution_coerces_invalid_amount() -> None:
    distribution = row_to_distribution(
        {"localId": "A", "address": "x", "lat": 1, "lng": 2, "status": "refus", "amount": 20, "payment_method": "cb"}
    )

    assert distribution.status is DistributionStatus.REFUSED
    assert distribution.amount == 0
    assert distribution.payment_method.value == "non_specifie"


def _zone(zone_id: str, name: str) -> Zone:
    return Zone(
        id=zone_id,
        name=name,
        shape=PolygonShape(ring=(LatLng(0, 0), LatLng(0, 1), LatLng(1, 1))),
        created_at="2024-01-01T00:00:00Z",
        updated_at="2024-01-01T00:00:00Z",
    )


def test_zone_replacement_deletes_all_then_recreates() -> None:
    local = [_zone("z1", "North"), _zone("z2", "South")]
    remote = [{"Id": 5, "name": "Old", "geojson": "{}"}]

    plan = plan_zone_replacement(local, remote)

    assert [op.remote_id for op in plan.to_delete] == ["5"]
    assert [op.payload["name"] for op in plan.to_create] == ["North", "South"]
    assert [op.action for op in plan.operations()] == ["delete", "create", "create"]


def test_zone_replacement_skipped_when_mirrored() -> None:
    local = [_zone("z1", "North"), Zone(id="z2", name="Disc", shape=CircleShape(LatLng(1, 1), 500))]
    remote = [{"Id": i + 1, **zone_to_row(zone)} for i, zone in enumerate(reversed(local))]

    assert plan_zone_replacement(local, remote).is_empty
