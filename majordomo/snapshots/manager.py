"""Snapshot manager: bounded history of state snapshots and attributed changes."""

import copy
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

from loguru import logger

from majordomo.params import canonical_json
from majordomo.snapshots.diff import ChangeType, StateDiff, compute_diff
from majordomo.utils.clock import Clock, SystemClock

TriggerType = Literal["action", "user", "system", "scheduled"]


@dataclass(frozen=True)
class SnapshotTrigger:
    type: TriggerType
    description: str
    action_id: str | None = None
    user_id: str | None = None


@dataclass(frozen=True)
class Snapshot:
    id: str
    timestamp: datetime
    state: dict[str, Any]
    trigger: SnapshotTrigger


@dataclass
class StateChange:
    id: str
    snapshot_before: str
    snapshot_after: str
    diffs: list[StateDiff]
    action_name: str
    action_params: dict[str, Any]
    timestamp: datetime
    reversible: bool
    rolled_back: bool = False


@dataclass
class SnapshotStats:
    total_snapshots: int
    total_changes: int
    changes_by_action: dict[str, int] = field(default_factory=dict)
    average_diffs_per_change: float = 0.0


def _json_repr(value: Any) -> str:
    return canonical_json(value)


class SnapshotManager:
    """Keeps the latest ``max_snapshots`` snapshots and ``max_changes`` changes."""

    def __init__(self, max_snapshots: int = 100, max_changes: int = 500, clock: Clock | None = None):
        self.max_snapshots = max_snapshots
        self.max_changes = max_changes
        self.clock = clock or SystemClock()
        self._snapshots: OrderedDict[str, Snapshot] = OrderedDict()
        self._changes: OrderedDict[str, StateChange] = OrderedDict()

    def create_snapshot(self, state: dict[str, Any], trigger: SnapshotTrigger) -> Snapshot:
        snapshot = Snapshot(
            id=f"snap_{uuid.uuid4().hex[:12]}",
            timestamp=self.clock.now(),
            state=copy.deepcopy(state),
            trigger=trigger,
        )
        self._snapshots[snapshot.id] = snapshot
        while len(self._snapshots) > self.max_snapshots:
            self._snapshots.popitem(last=False)
        return snapshot

    def record_change(
        self,
        before_state: dict[str, Any],
        after_state: dict[str, Any],
        action_name: str,
        action_params: dict[str, Any] | None = None,
        reversible: bool = True,
        action_id: str | None = None,
        user_id: str | None = None,
    ) -> StateChange:
        """Snapshot both sides of an action and attribute the diff to it."""
        before = self.create_snapshot(before_state, SnapshotTrigger(
            type="action", description=f"Before {action_name}", action_id=action_id, user_id=user_id,
        ))
        after = self.create_snapshot(after_state, SnapshotTrigger(
            type="action", description=f"After {action_name}", action_id=action_id, user_id=user_id,
        ))
        return self.record_snapshots(before, after, action_name, action_params, reversible)

    def record_snapshots(
        self,
        before: Snapshot,
        after: Snapshot,
        action_name: str,
        action_params: dict[str, Any] | None = None,
        reversible: bool = True,
    ) -> StateChange:
        """Attribute the diff between two existing snapshots to an action."""
        change = StateChange(
            id=f"chg_{uuid.uuid4().hex[:12]}",
            snapshot_before=before.id,
            snapshot_after=after.id,
            diffs=compute_diff(before.state, after.state),
            action_name=action_name,
            action_params=copy.deepcopy(action_params or {}),
            timestamp=self.clock.now(),
            reversible=reversible,
        )
        self._changes[change.id] = change
        while len(self._changes) > self.max_changes:
            self._changes.popitem(last=False)

        logger.debug(f"Snapshots: {action_name} changed {len(change.diffs)} path(s)")
        return change

    def get_snapshot(self, snapshot_id: str) -> Snapshot | None:
        return self._snapshots.get(snapshot_id)

    def get_change(self, change_id: str) -> StateChange | None:
        return self._changes.get(change_id)

    def recent_changes(self, limit: int = 10) -> list[StateChange]:
        return sorted(self._changes.values(), key=lambda c: c.timestamp, reverse=True)[:limit]

    def changes_for_action(self, action_name: str) -> list[StateChange]:
        return [c for c in self._changes.values() if c.action_name == action_name]

    def describe_change(self, change: StateChange) -> str:
        parts = []
        for d in change.diffs:
            if d.change_type == ChangeType.ADDED:
                parts.append(f"Added {d.dotted_path}: {_json_repr(d.after)}")
            elif d.change_type == ChangeType.REMOVED:
                parts.append(f"Removed {d.dotted_path}")
            else:
                parts.append(f"Changed {d.dotted_path} from {_json_repr(d.before)} to {_json_repr(d.after)}")
        return "; ".join(parts) if parts else "No observable changes"

    def get_state_at(self, timestamp: datetime) -> dict[str, Any] | None:
        """State from the most recent snapshot taken at or before ``timestamp``."""
        best: Snapshot | None = None
        for snap in self._snapshots.values():
            if snap.timestamp <= timestamp and (best is None or snap.timestamp >= best.timestamp):
                best = snap
        return copy.deepcopy(best.state) if best else None

    def can_rollback(self, change_id: str) -> bool:
        change = self._changes.get(change_id)
        return bool(change and change.reversible and not change.rolled_back)

    def mark_rolled_back(self, change_id: str) -> bool:
        change = self._changes.get(change_id)
        if not change:
            return False
        change.rolled_back = True
        logger.info(f"Snapshots: change {change_id} ({change.action_name}) rolled back")
        return True

    def changes_affecting_path(self, path: list[str] | tuple[str, ...]) -> list[StateChange]:
        prefix = tuple(path)
        matches = [
            c for c in self._changes.values()
            if any(d.path[:len(prefix)] == prefix for d in c.diffs)
        ]
        return sorted(matches, key=lambda c: c.timestamp, reverse=True)

    def stats(self) -> SnapshotStats:
        by_action: dict[str, int] = {}
        total_diffs = 0
        for change in self._changes.values():
            by_action[change.action_name] = by_action.get(change.action_name, 0) + 1
            total_diffs += len(change.diffs)
        count = len(self._changes)
        return SnapshotStats(
            total_snapshots=len(self._snapshots),
            total_changes=count,
            changes_by_action=by_action,
            average_diffs_per_change=total_diffs / count if count else 0.0,
        )
