"""Event types published by the orchestrator."""

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Event(BaseModel):
    """Base event. ``topic`` routes the event to subscribers."""

    topic: str
    timestamp: datetime = Field(default_factory=_utcnow)

    model_config = {"populate_by_name": True}


class ActionCompleteEvent(Event):
    topic: Literal["actionComplete"] = "actionComplete"
    intent_id: str = Field(alias="intentId")
    tool_name: str = Field(alias="toolName")
    success: bool
    status: str = "completed"
    message: str = ""
    output: Any = None
    error_code: str | None = Field(None, alias="errorCode")
    change_id: str | None = Field(None, alias="changeId")


class ConfirmationRequiredEvent(Event):
    topic: Literal["confirmationRequired"] = "confirmationRequired"
    intent_id: str = Field(alias="intentId")
    tool_name: str = Field(alias="toolName")
    message: str
    level: str
    expires_at: datetime = Field(alias="expiresAt")
    summary: str | None = None
    delivery: str = "display"


class IntentQueuedEvent(Event):
    topic: Literal["intentQueued"] = "intentQueued"
    intent_id: str = Field(alias="intentId")
    tool_name: str = Field(alias="toolName")
    priority: int
    source: str
    queue_size: int = Field(alias="queueSize")


class ActionRejectedEvent(Event):
    topic: Literal["actionRejected"] = "actionRejected"
    intent_id: str = Field(alias="intentId")
    tool_name: str = Field(alias="toolName")
    reason: str


class HeartbeatEvent(Event):
    topic: Literal["heartbeat"] = "heartbeat"
    state: str
    queue_size: int = Field(alias="queueSize")
    pending_confirmations: int = Field(alias="pendingConfirmations")


class StateChangedEvent(Event):
    topic: Literal["stateChanged"] = "stateChanged"
    previous: str
    current: str
