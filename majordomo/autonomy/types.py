"""Autonomy types."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

from majordomo.params import Params

TimeOfDay = Literal["morning", "afternoon", "evening", "night"]


class AutonomyLevel(str, Enum):
    AUTO_APPROVE = "auto_approve"
    ANNOUNCE = "announce"
    CONFIRM_SIMPLE = "confirm_simple"
    CONFIRM_DETAILED = "confirm_detailed"
    DENY = "deny"

    @property
    def needs_confirmation(self) -> bool:
        return self in (AutonomyLevel.CONFIRM_SIMPLE, AutonomyLevel.CONFIRM_DETAILED)


def time_of_day(when: datetime) -> TimeOfDay:
    hour = when.hour
    if 5 <= hour < 12:
        return "morning"
    if 12 <= hour < 17:
        return "afternoon"
    if 17 <= hour < 21:
        return "evening"
    return "night"


class TimeContext(BaseModel):
    time_of_day: TimeOfDay = Field("afternoon", alias="timeOfDay")
    hour: int = Field(12, ge=0, le=23)

    model_config = {"populate_by_name": True}


class UserContext(BaseModel):
    # normal, focus, dnd, sleep, night, away, guest
    mode: str = "normal"


class DesktopContext(BaseModel):
    active_app: str | None = Field(None, alias="activeApp")

    model_config = {"populate_by_name": True}


class WorldState(BaseModel):
    """The slice of the world the autonomy rules look at."""

    time: TimeContext = Field(default_factory=TimeContext)
    user: UserContext = Field(default_factory=UserContext)
    desktop: DesktopContext = Field(default_factory=DesktopContext)

    @classmethod
    def at(cls, when: datetime, mode: str = "normal", active_app: str | None = None) -> "WorldState":
        return cls(
            time=TimeContext(time_of_day=time_of_day(when), hour=when.hour),
            user=UserContext(mode=mode),
            desktop=DesktopContext(active_app=active_app),
        )

    @property
    def pattern_context(self) -> "PatternContext":
        return PatternContext(self.time.time_of_day, self.user.mode, self.desktop.active_app)


@dataclass
class ActionRequest:
    """What the planner proposed: an action, its params and how sure it was."""

    action: str
    params: Params = field(default_factory=dict)
    confidence: float = 0.8
    reasoning: str | None = None


@dataclass(frozen=True)
class PatternContext:
    time_of_day: str
    mode: str
    active_app: str | None = None


@dataclass
class Decision:
    level: AutonomyLevel
    reason: str
    display_message: str | None = None
    display_params: dict[str, str] | None = None
    expires_in_seconds: int | None = None
    # Set when a context gate raised the level above the tool default.
    escalated: bool = False

    @property
    def relaxable(self) -> bool:
        """Only a default simple confirmation may be waived by user preferences."""
        return self.level == AutonomyLevel.CONFIRM_SIMPLE and not self.escalated
