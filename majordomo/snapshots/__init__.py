"""State snapshots and structural diffs."""

from majordomo.snapshots.diff import ChangeType, StateDiff, compute_diff
from majordomo.snapshots.manager import Snapshot, SnapshotManager, SnapshotTrigger, StateChange

__all__ = [
    "ChangeType",
    "StateDiff",
    "compute_diff",
    "Snapshot",
    "SnapshotManager",
    "SnapshotTrigger",
    "StateChange",
]
