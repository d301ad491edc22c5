"""Removal of remote distribution rows that share an address."""

from __future__ import annotations

import logging
from collections import defaultdict

from ...db.gateway import Row, TableGateway, remote_id
from ...errors import CycleAbortError, RemoteTableError
from .mapping import FALLBACK_KEY_FIELD

logger = logging.getLogger(__name__)


def find_duplicates(rows: list[Row]) -> list[Row]:
    """Rows whose address was already seen earlier in ``rows``; the first occurrence is kept."""
    by_address: dict[str, list[Row]] = defaultdict(list)
    for row in rows:
        address = str(row.get(FALLBACK_KEY_FIELD) or "").strip()
        if address:
            by_address[address].append(row)

    duplicates: list[Row] = []
    for address, group in by_address.items():
        if len(group) > 1:
            logger.info(f"[CLEANUP] Found {len(group)} rows for: {address}")
            duplicates.extend(group[1:])
    return duplicates


async def cleanup_duplicates(gateway: TableGateway, table: str) -> int:
    """Delete every duplicate-address row of ``table`` and return how many were deleted.

    Raises ``CycleAbortError`` when the table cannot be listed. Individual delete
    failures are logged and skipped.
    """
    try:
        rows = await gateway.list(table)
    except RemoteTableError as exc:
        raise CycleAbortError(f"cannot list remote table '{table}': {exc.detail}", cause=exc) from exc
    logger.info(f"[CLEANUP] Found {len(rows)} total records in {table}")

    deleted = 0
    for row in find_duplicates(rows):
        row_id = remote_id(row)
        if row_id is None:
            continue
        try:
            await gateway.delete(table, row_id)
        except RemoteTableError as exc:
            logger.warning(f"  ✗ Could not delete duplicate {row_id}: {exc}")
            continue
        logger.info(f"[DELETE] {table} duplicate (remote id: {row_id})")
        deleted += 1

    logger.info(f"[CLEANUP] Finished! Deleted {deleted} duplicate(s)")
    return deleted
