"""Orchestrator types."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Literal

from majordomo.autonomy.types import Decision
from majordomo.executors.base import ExecutionResult
from majordomo.params import Params
from majordomo.simulation.models import SimulationReport
from majordomo.snapshots.manager import StateChange

IntentSource = Literal["user", "goal", "proactive"]
OutcomeStatus = Literal["completed", "failed", "aborted", "awaiting_confirmation", "rejected"]


class OrchestratorState(str, Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    PAUSED = "paused"
    STOPPING = "stopping"


@dataclass
class Intent:
    """A unit of work waiting to be governed and executed."""

    id: str
    user_id: str
    tool_name: str
    params: Params
    source: IntentSource
    priority: int
    created_at: datetime
    expires_at: datetime | None = None
    requires_simulation: bool = False
    requires_confirmation: bool = False
    confidence: float = 0.8
    reasoning: str | None = None
    decision: Decision | None = None
    confirmed: bool = False


@dataclass
class PendingConfirmation:
    intent: Intent
    message: str
    created_at: datetime
    expires_at: datetime
    simulation: SimulationReport | None = None

    def expired(self, now: datetime) -> bool:
        return now >= self.expires_at


@dataclass
class ActionOutcome:
    intent: Intent
    status: OutcomeStatus
    simulation: SimulationReport | None = None
    result: ExecutionResult | None = None
    change: StateChange | None = None
    learned: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.status == "completed"
