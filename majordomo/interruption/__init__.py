"""Interruption budget management."""

from majordomo.interruption.manager import InterruptionManager
from majordomo.interruption.types import (
    DeliveryMethod,
    InterruptionBudget,
    InterruptionDecision,
    InterruptionRequest,
    UserState,
)

__all__ = [
    "InterruptionManager",
    "InterruptionBudget",
    "InterruptionDecision",
    "InterruptionRequest",
    "DeliveryMethod",
    "UserState",
]
