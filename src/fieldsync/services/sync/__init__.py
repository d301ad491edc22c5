"""Reconciliation of the local replica with the remote tables."""

from .apply import ApplyReport, apply_plan
from .cleanup import cleanup_duplicates, find_duplicates
from .engine import DistributionTarget, ReconciliationEngine, SyncResult, SyncStatus, ZoneTarget
from .plan import PlannedOperation, SyncPlan, plan_zone_replacement, reconcile_distributions

__all__ = [
    "ApplyReport",
    "DistributionTarget",
    "PlannedOperation",
    "ReconciliationEngine",
    "SyncPlan",
    "SyncResult",
    "SyncStatus",
    "ZoneTarget",
    "apply_plan",
    "cleanup_duplicates",
    "find_duplicates",
    "plan_zone_replacement",
    "reconcile_distributions",
]
