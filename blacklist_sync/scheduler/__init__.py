"""Background scheduling of reconciliation passes."""

from .apsched_adapter import SyncScheduler

__all__ = ["SyncScheduler"]
