"""Simulation result types."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from majordomo.executors.base import RiskLevel, SideEffect
from majordomo.params import Params
from majordomo.snapshots.diff import StateDiff


class Recommendation(str, Enum):
    PROCEED = "proceed"
    CAUTION = "caution"
    RECONSIDER = "reconsider"
    ABORT = "abort"


@dataclass
class RiskAssessment:
    level: RiskLevel
    factors: list[str] = field(default_factory=list)
    mitigations: list[str] = field(default_factory=list)


@dataclass
class Reversibility:
    reversible: bool
    data_loss: bool = False
    rollback_method: str | None = None


@dataclass
class DurationEstimate:
    min_ms: int
    max_ms: int


@dataclass
class SimulationResult:
    would_succeed: bool
    predicted_output: Any
    predicted_effects: list[SideEffect]
    state_diffs: list[StateDiff]
    warnings: list[str]
    risk: RiskAssessment
    reversibility: Reversibility
    estimated_duration: DurationEstimate
    confidence: float


@dataclass
class SimulationReport:
    action: str
    params: Params
    simulation: SimulationResult
    summary: str
    explanation: list[str]
    recommendation: Recommendation
    questions: list[str] = field(default_factory=list)
