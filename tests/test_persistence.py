from pathlib import Path

import pytest

from src.fieldsync.models.domain import CircleShape, LatLng, Zone
from src.fieldsync.persistence.kv import FileKeyValueStore
from src.fieldsync.persistence.replica import DISTRIBUTIONS, ZONES, LocalReplica

from conftest import make_distribution


def test_file_store_round_trips_bytes(tmp_path: Path) -> None:
    store = FileKeyValueStore(root=tmp_path)

    assert store.get("distributions") is None
    store.set("distributions", b"[]")

    assert store.get("distributions") == b"[]"
    assert (tmp_path / "distributions.bin").exists()
    store.remove("distributions")
    assert store.get("distributions") is None


def test_file_store_rejects_unsafe_keys(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        FileKeyValueStore(root=tmp_path).set("../escape", b"x")


def test_replica_exists_only_after_first_write(replica: LocalReplica) -> None:
    assert replica.exists(DISTRIBUTIONS) is False
    assert replica.load(DISTRIBUTIONS) == []

    replica.save_distributions([])
    assert replica.exists(DISTRIBUTIONS) is True


def test_loaded_scopes_accumulate_per_entity(tmp_path: Path) -> None:
    replica = LocalReplica(FileKeyValueStore(root=tmp_path))
    assert replica.loaded_scopes(DISTRIBUTIONS) == set()

    replica.mark_loaded(DISTRIBUTIONS, "alice")
    replica.mark_loaded(DISTRIBUTIONS, "*")
    replica.mark_loaded(DISTRIBUTIONS, "alice")

    assert LocalReplica(FileKeyValueStore(root=tmp_path)).loaded_scopes(DISTRIBUTIONS) == {"*", "alice"}
    assert replica.loaded_scopes(ZONES) == set()
    assert replica.exists(DISTRIBUTIONS) is False


def test_replica_persists_distributions_and_zones(tmp_path: Path) -> None:
    replica = LocalReplica(FileKeyValueStore(root=tmp_path))
    replica.save_distributions([make_distribution("A", "1 rue A", amount=10, payment_method="espece")])
    replica.save_zones([Zone(id="z1", name="Disc", shape=CircleShape(LatLng(48.0, 2.0), 250))])

    reopened = LocalReplica(FileKeyValueStore(root=tmp_path))
    [distribution] = reopened.load_distributions()
    [zone] = reopened.load_zones()

    assert distribution.id == "A" and distribution.amount == 10
    assert distribution.payment_method.value == "espece"
    assert zone.shape == CircleShape(LatLng(48.0, 2.0), 250.0)


def test_unreadable_replica_is_treated_as_empty(replica: LocalReplica, store) -> None:
    store.set(ZONES, b"not json")
    assert replica.load_zones() == []


def test_invalid_records_are_skipped(replica: LocalReplica, store) -> None:
    store.set(DISTRIBUTIONS, b'[{"id": "A", "address": "x"}, {"address": "no id"}, {"id": "B", "amount": -1}]')
    assert [d.id for d in replica.load_distributions()] == ["A"]
