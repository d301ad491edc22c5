"""Route group exports."""

from . import distributions, health, session, sync, zones

__all__ = ["distributions", "health", "session", "sync", "zones"]
