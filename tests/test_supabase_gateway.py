from types import SimpleNamespace

import pytest

from src.fieldsync.db.supabase import SupabaseTableGateway
from src.fieldsync.errors import TransientNetworkError


class FakeQuery:
    """Records the builder chain; ``execute`` serves rows in id order when ordered."""

    def __init__(self, client: "FakeClient", table: str) -> None:
        self.client = client
        self.table = table
        self.steps: list[tuple] = []

    def select(self, columns: str) -> "FakeQuery":
        self.steps.append(("select", columns))
        return self

    def eq(self, column: str, value) -> "FakeQuery":
        self.steps.append(("eq", column, value))
        return self

    def order(self, column: str) -> "FakeQuery":
        self.steps.append(("order", column))
        return self

    def range(self, start: int, end: int) -> "FakeQuery":
        self.steps.append(("range", start, end))
        return self

    def execute(self) -> SimpleNamespace:
        self.client.queries.append(self.steps)
        if self.client.error is not None:
            raise self.client.error
        rows = list(self.client.rows)
        for step in self.steps:
            if step[0] == "eq":
                rows = [row for row in rows if row.get(step[1]) == step[2]]
            elif step[0] == "order":
                rows.sort(key=lambda row: row[step[1]])
            elif step[0] == "range":
                rows = rows[step[1] : step[2] + 1]
        return SimpleNamespace(data=rows)


class FakeClient:
    def __init__(self, rows: list[dict] | None = None) -> None:
        self.rows = rows or []
        self.queries: list[list[tuple]] = []
        self.error: Exception | None = None

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)


@pytest.mark.asyncio
async def test_list_pages_in_stable_id_order() -> None:
    client = FakeClient([{"id": i, "address": f"{i} rue"} for i in (4, 1, 5, 3, 2)])
    gateway = SupabaseTableGateway(client=client, page_size=2)

    rows = await gateway.list("Distributions")

    assert [row["id"] for row in rows] == [1, 2, 3, 4, 5]
    assert len(client.queries) == 3
    for steps in client.queries:
        names = [step[0] for step in steps]
        assert names.index("order") < names.index("range")
        assert ("order", "id") in steps
    assert [steps[-1] for steps in client.queries] == [("range", 0, 1), ("range", 2, 3), ("range", 4, 5)]


@pytest.mark.asyncio
async def test_list_applies_filters_before_paging() -> None:
    client = FakeClient(
        [
            {"id": 2, "binome_id": "alice"},
            {"id": 1, "binome_id": "bob"},
            {"id": 3, "binome_id": "alice"},
        ]
    )
    gateway = SupabaseTableGateway(client=client, page_size=10)

    rows = await gateway.list("Distributions", {"binome_id": "alice"})

    assert [row["id"] for row in rows] == [2, 3]
    assert ("eq", "binome_id", "alice") in client.queries[0]


@pytest.mark.asyncio
async def test_client_errors_become_transient_network_errors() -> None:
    client = FakeClient()
    client.error = ConnectionError("connection reset")
    gateway = SupabaseTableGateway(client=client)

    with pytest.raises(TransientNetworkError):
        await gateway.list("Distributions")
