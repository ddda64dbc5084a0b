"""Risk-based action gating."""

from majordomo.autonomy.engine import AutonomyEngine, decide, format_params_for_display
from majordomo.autonomy.patterns import ApprovalPatternCache, pattern_hash
from majordomo.autonomy.types import ActionRequest, AutonomyLevel, Decision, WorldState, time_of_day

__all__ = [
    "ActionRequest",
    "ApprovalPatternCache",
    "AutonomyEngine",
    "AutonomyLevel",
    "Decision",
    "WorldState",
    "decide",
    "format_params_for_display",
    "pattern_hash",
    "time_of_day",
]
