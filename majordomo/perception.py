"""Perception sources: where the orchestrator learns what the user is doing."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

from majordomo.autonomy.types import WorldState, time_of_day
from majordomo.interruption.types import UserState
from majordomo.utils.clock import Clock, SystemClock

__all__ = ["PerceptionSnapshot", "PerceptionSource", "StaticPerceptionSource", "time_of_day"]


@dataclass(frozen=True)
class PerceptionSnapshot:
    timestamp: datetime
    active_window: str | None = None
    active_app: str | None = None
    user_state: UserState = UserState.ACTIVE
    # Autonomy mode: normal, focus, dnd, sleep, night, away, guest
    user_mode: str = "normal"
    extra: dict[str, Any] = field(default_factory=dict)

    def world_state(self) -> WorldState:
        return WorldState.at(self.timestamp, mode=self.user_mode, active_app=self.active_app)


class PerceptionSource(ABC):
    @abstractmethod
    async def snapshot(self) -> PerceptionSnapshot:
        """Current view of the user's environment."""


class StaticPerceptionSource(PerceptionSource):
    """A source whose readings are set by hand. Used when no sensors are wired in."""

    def __init__(self, clock: Clock | None = None, **fields: Any):
        self.clock = clock or SystemClock()
        self._fields = fields

    def update(self, **fields: Any) -> None:
        self._fields.update(fields)

    async def snapshot(self) -> PerceptionSnapshot:
        snap = PerceptionSnapshot(timestamp=self.clock.now())
        if self._fields:
            fields = dict(self._fields)
            if "user_state" in fields:
                fields["user_state"] = UserState(fields["user_state"])
            snap = replace(snap, **fields)
        return snap
