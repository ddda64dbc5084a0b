"""Goal types (Pydantic models with camelCase JSON aliases)."""

import json
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from majordomo.utils.clock import from_iso, to_iso

GoalStatus = Literal["active", "paused", "blocked", "completed", "abandoned", "expired"]
GoalPriority = Literal["low", "medium", "high", "critical"]

TERMINAL_STATUSES: frozenset[str] = frozenset({"completed", "abandoned", "expired"})

PRIORITY_RANK: dict[str, int] = {"low": 0, "medium": 1, "high": 2, "critical": 3}

_JSON_LIST_FIELDS = ("child_ids", "next_actions", "blockers", "tags")


def priority_from_number(value: int) -> GoalPriority:
    """Map a 1-10 priority onto the goal priority buckets."""
    if value >= 9:
        return "critical"
    if value >= 7:
        return "high"
    if value >= 4:
        return "medium"
    return "low"


class Goal(BaseModel):
    """A long-lived user intent that the assistant keeps track of."""

    id: str
    user_id: str = Field(alias="userId")
    description: str
    context: str = ""
    status: GoalStatus = "active"
    priority: GoalPriority = "medium"
    parent_id: str | None = Field(None, alias="parentId")
    child_ids: list[str] = Field(default_factory=list, alias="childIds")
    progress: int = Field(0, ge=0, le=100)
    next_actions: list[str] = Field(default_factory=list, alias="nextActions")
    blockers: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    attention_score: float = Field(1.0, ge=0.0, le=1.0, alias="attentionScore")
    interaction_count: int = Field(1, alias="interactionCount")
    ttl_hours: float = Field(168, alias="ttlHours")
    created_at: datetime = Field(alias="createdAt")
    last_interaction_at: datetime = Field(alias="lastInteractionAt")
    decayed_at: datetime | None = Field(None, alias="decayedAt")
    completed_at: datetime | None = Field(None, alias="completedAt")

    model_config = {"populate_by_name": True}

    def to_row(self) -> dict[str, Any]:
        row = self.model_dump()
        for key in _JSON_LIST_FIELDS:
            row[key] = json.dumps(row[key])
        for key in ("created_at", "last_interaction_at", "decayed_at", "completed_at"):
            row[key] = to_iso(row[key])
        return row

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Goal":
        data = dict(row)
        for key in _JSON_LIST_FIELDS:
            data[key] = json.loads(data.get(key) or "[]")
        for key in ("created_at", "last_interaction_at", "decayed_at", "completed_at"):
            data[key] = from_iso(data.get(key))
        data["context"] = data.get("context") or ""
        return cls.model_validate(data)
