"""Event bus for orchestrator notifications."""

from majordomo.bus.events import (
    ActionCompleteEvent,
    ActionRejectedEvent,
    ConfirmationRequiredEvent,
    Event,
    HeartbeatEvent,
    IntentQueuedEvent,
    StateChangedEvent,
)
from majordomo.bus.queue import ALL_TOPICS, EventBus

__all__ = [
    "ALL_TOPICS",
    "ActionCompleteEvent",
    "ActionRejectedEvent",
    "ConfirmationRequiredEvent",
    "Event",
    "EventBus",
    "HeartbeatEvent",
    "IntentQueuedEvent",
    "StateChangedEvent",
]
