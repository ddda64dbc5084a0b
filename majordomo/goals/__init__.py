"""Long-lived user goals with attention decay."""

from majordomo.goals.models import Goal, GoalPriority, GoalStatus
from majordomo.goals.store import GoalStore

__all__ = ["Goal", "GoalPriority", "GoalStatus", "GoalStore"]
