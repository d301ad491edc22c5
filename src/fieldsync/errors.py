"""Exception taxonomy shared by the gateway, the sync engine and the services."""

from __future__ import annotations


class FieldSyncError(Exception):
    """Base class for all errors raised by this package."""


class RemoteTableError(FieldSyncError):
    """A request against the remote table store failed."""

    def __init__(self, table: str, operation: str, detail: str, status_code: int | None = None) -> None:
        self.table = table
        self.operation = operation
        self.detail = detail
        self.status_code = status_code
        super().__init__(f"{operation} {table} failed: {detail}")


class TransientNetworkError(RemoteTableError):
    """A single request failed; the next reconciliation cycle retries it."""


class CycleAbortError(FieldSyncError):
    """No consistent remote snapshot could be read, so the whole cycle is skipped."""

    def __init__(self, message: str, *, cause: Exception | None = None) -> None:
        self.cause = cause
        super().__init__(message)


class ShapeError(FieldSyncError, ValueError):
    """Malformed or degenerate zone geometry."""


class AuthenticationError(FieldSyncError):
    """Unknown user or wrong password."""


class RecordNotFound(FieldSyncError, KeyError):
    """A local mutation referenced an id the replica does not hold."""

    def __init__(self, entity_type: str, record_id: str) -> None:
        self.entity_type = entity_type
        self.record_id = record_id
        super().__init__(f"{entity_type} '{record_id}' not found")

    def __str__(self) -> str:
        return f"{self.entity_type} '{self.record_id}' not found"
