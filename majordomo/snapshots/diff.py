"""Structural diff over JSON-shaped state trees.

A state tree is a closed variant: object (dict), array (list) or scalar.
Objects are compared key by key; arrays and scalars are compared whole.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from majordomo.params import canonical_json


class ChangeType(str, Enum):
    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"


_MISSING = object()


@dataclass(frozen=True)
class StateDiff:
    path: tuple[str, ...]
    before: Any
    after: Any
    change_type: ChangeType

    @property
    def dotted_path(self) -> str:
        return ".".join(self.path)

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": list(self.path),
            "before": self.before,
            "after": self.after,
            "changeType": self.change_type.value,
        }


def compute_diff(before: Any, after: Any, path: tuple[str, ...] = ()) -> list[StateDiff]:
    """
    Diff two state trees.

    Keys are visited in sorted order so output is deterministic.
    ``compute_diff(a, a)`` is always empty; swapping the arguments swaps
    before/after on every entry and flips added/removed.
    """
    if isinstance(before, dict) and isinstance(after, dict):
        diffs: list[StateDiff] = []
        for key in sorted(set(before) | set(after), key=str):
            diffs.extend(_diff_value(
                path + (str(key),),
                before.get(key, _MISSING),
                after.get(key, _MISSING),
            ))
        return diffs
    return _diff_value(path, before, after)


def _diff_value(path: tuple[str, ...], before: Any, after: Any) -> list[StateDiff]:
    if before is _MISSING:
        return [StateDiff(path, None, after, ChangeType.ADDED)]
    if after is _MISSING:
        return [StateDiff(path, before, None, ChangeType.REMOVED)]
    if isinstance(before, dict) and isinstance(after, dict):
        return compute_diff(before, after, path)
    if canonical_json(before) != canonical_json(after):
        return [StateDiff(path, before, after, ChangeType.MODIFIED)]
    return []


def invert(diffs: list[StateDiff]) -> list[StateDiff]:
    """Diffs that undo ``diffs`` when applied in order."""
    flipped = {ChangeType.ADDED: ChangeType.REMOVED, ChangeType.REMOVED: ChangeType.ADDED}
    return [
        StateDiff(d.path, d.after, d.before, flipped.get(d.change_type, d.change_type))
        for d in diffs
    ]
