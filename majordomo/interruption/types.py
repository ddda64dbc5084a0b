"""Interruption types."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Literal


class UserState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    FOCUSED = "focused"
    PRESENTING = "presenting"
    MEETING = "meeting"
    DND = "dnd"
    AWAY = "away"


class InterruptionType(str, Enum):
    NOTIFICATION = "notification"
    SUGGESTION = "suggestion"
    QUESTION = "question"
    ALERT = "alert"
    URGENT = "urgent"
    CRITICAL = "critical"


class DeliveryMethod(str, Enum):
    SPEAK = "speak"
    DISPLAY = "display"
    BADGE = "badge"
    SILENT = "silent"
    DEFER = "defer"


# Fraction of the hourly budget usable in each state; 0 means hold everything.
STATE_MULTIPLIERS: dict[UserState, float] = {
    UserState.IDLE: 2.0,
    UserState.ACTIVE: 1.0,
    UserState.FOCUSED: 0.2,
    UserState.PRESENTING: 0.0,
    UserState.MEETING: 0.0,
    UserState.DND: 0.0,
    UserState.AWAY: 0.0,
}

DeferTarget = Literal["idle", "active", "any"]
AlternativeAction = Literal["queue", "badge", "silent_log", "discard"]


@dataclass
class InterruptionBudget:
    max_per_hour: int = 10
    max_per_minute: int = 2
    cooldown_ms: int = 30_000
    urgency_bypass_threshold: int = 9


@dataclass
class InterruptionRequest:
    type: InterruptionType
    urgency: int
    content: str
    source: str = "system"
    can_defer: bool = True
    defer_until: DeferTarget | None = None


@dataclass
class InterruptionDecision:
    should_interrupt: bool
    reason: str
    deferred_until: datetime | None = None
    defer_target: DeferTarget | None = None
    alternative_action: AlternativeAction | None = None


@dataclass
class DeferredItem:
    request: InterruptionRequest
    deferred_at: datetime
    target: DeferTarget


@dataclass
class InterruptionRecord:
    timestamp: datetime
    type: InterruptionType
    urgency: int
    source: str


@dataclass
class InterruptionStats:
    last_hour: int
    last_minute: int
    deferred: int
    state: UserState
    effective_budget: int
    by_type: dict[str, int] = field(default_factory=dict)
