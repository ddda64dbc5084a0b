"""Goal store: persistence, blockers, completion cascade and attention decay."""

import json
import uuid
from typing import Any

from loguru import logger

from majordomo.goals.models import PRIORITY_RANK, TERMINAL_STATUSES, Goal, GoalPriority, GoalStatus
from majordomo.storage.base import RowStore
from majordomo.utils.clock import Clock, SystemClock, hours_between

_UPDATABLE = {"description", "context", "status", "priority", "progress", "next_actions", "blockers", "tags", "ttl_hours"}


class GoalStore:
    """
    Goals persisted in the ``goals`` table.

    Attention decays linearly with hours since the last interaction and is
    restored to 1.0 whenever the user touches the goal. Active goals left
    alone for longer than their TTL are soft-deleted as ``expired``.
    """

    TABLE = "goals"

    def __init__(
        self,
        storage: RowStore,
        clock: Clock | None = None,
        decay_rate: float = 0.05,
        default_ttl_hours: float = 168,
    ):
        self.storage = storage
        self.clock = clock or SystemClock()
        self.decay_rate = decay_rate
        self.default_ttl_hours = default_ttl_hours

    async def create_goal(
        self,
        user_id: str,
        description: str,
        *,
        context: str = "",
        priority: GoalPriority = "medium",
        parent_id: str | None = None,
        next_actions: list[str] | None = None,
        tags: list[str] | None = None,
        ttl_hours: float | None = None,
    ) -> Goal:
        now = self.clock.now()
        goal = Goal(
            id=f"goal_{uuid.uuid4().hex[:12]}",
            user_id=user_id,
            description=description,
            context=context,
            priority=priority,
            parent_id=parent_id,
            next_actions=next_actions or [],
            tags=tags or [],
            ttl_hours=ttl_hours or self.default_ttl_hours,
            created_at=now,
            last_interaction_at=now,
        )
        await self.storage.insert(self.TABLE, goal.to_row())

        if parent_id:
            parent = await self.get_goal(parent_id)
            if parent:
                await self.storage.update(self.TABLE, parent_id, {
                    "child_ids": json.dumps(parent.child_ids + [goal.id]),
                })
            else:
                logger.warning(f"Goals: parent {parent_id} not found for {goal.id}")

        logger.info(f"Goals: created {goal.id} for {user_id}: {description[:50]}")
        return goal

    async def get_goal(self, goal_id: str) -> Goal | None:
        row = await self.storage.get(self.TABLE, goal_id)
        return Goal.from_row(row) if row else None

    async def active_goals(self, user_id: str) -> list[Goal]:
        """Active goals, most important and most attended first."""
        goals = [Goal.from_row(r) for r in await self.storage.query(self.TABLE, {"user_id": user_id, "status": "active"})]
        goals.sort(key=lambda g: (PRIORITY_RANK[g.priority], g.attention_score), reverse=True)
        return goals

    async def top_level_goals(self, user_id: str) -> list[Goal]:
        rows = await self.storage.query(
            self.TABLE,
            {"user_id": user_id, "parent_id": None, "status": ["active", "blocked", "paused"]},
        )
        goals = [Goal.from_row(r) for r in rows]
        goals.sort(key=lambda g: PRIORITY_RANK[g.priority], reverse=True)
        return goals

    async def sub_goals(self, parent_id: str) -> list[Goal]:
        rows = await self.storage.query(self.TABLE, {"parent_id": parent_id}, order_by="created_at")
        return [Goal.from_row(r) for r in rows]

    async def all_goals(self, user_id: str, status: GoalStatus | None = None) -> list[Goal]:
        where: dict[str, Any] = {"user_id": user_id}
        if status:
            where["status"] = status
        rows = await self.storage.query(self.TABLE, where, order_by="created_at")
        return [Goal.from_row(r) for r in rows]

    async def update_goal(self, goal_id: str, **changes: Any) -> Goal | None:
        """
        Update selected fields of a goal.

        Progress is clamped to 0-100. Completing a goal stamps
        ``completed_at`` and pins progress to 100.
        """
        current = await self.get_goal(goal_id)
        if current is None:
            return None

        unknown = set(changes) - _UPDATABLE
        if unknown:
            raise ValueError(f"Cannot update goal fields: {', '.join(sorted(unknown))}")

        row: dict[str, Any] = {}
        for key, value in changes.items():
            if key == "progress":
                value = min(100, max(0, int(value)))
            if key in ("next_actions", "blockers", "tags"):
                value = json.dumps(list(value))
            row[key] = value

        if changes.get("status") == "completed":
            row["completed_at"] = self.clock.now().isoformat()
            row["progress"] = 100

        await self.storage.update(self.TABLE, goal_id, row)
        logger.debug(f"Goals: updated {goal_id} ({', '.join(changes)})")
        return await self.get_goal(goal_id)

    async def record_interaction(self, goal_id: str) -> Goal | None:
        goal = await self.get_goal(goal_id)
        if goal is None:
            return None
        await self.storage.update(self.TABLE, goal_id, {
            "last_interaction_at": self.clock.now().isoformat(),
            "attention_score": 1.0,
            "interaction_count": goal.interaction_count + 1,
            "decayed_at": None,
        })
        return await self.get_goal(goal_id)

    async def add_blocker(self, goal_id: str, blocker: str) -> Goal | None:
        goal = await self.get_goal(goal_id)
        if goal is None:
            return None
        if goal.status in TERMINAL_STATUSES:
            logger.debug(f"Goals: ignoring blocker on {goal.status} goal {goal_id}")
            return goal
        status = "blocked" if goal.status in ("active", "blocked") else goal.status
        return await self.update_goal(goal_id, blockers=goal.blockers + [blocker], status=status)

    async def remove_blocker(self, goal_id: str, blocker: str) -> Goal | None:
        goal = await self.get_goal(goal_id)
        if goal is None:
            return None
        blockers = [b for b in goal.blockers if b != blocker]
        if goal.status not in ("active", "blocked"):
            return await self.update_goal(goal_id, blockers=blockers)
        return await self.update_goal(goal_id, blockers=blockers, status="blocked" if blockers else "active")

    async def complete_goal(self, goal_id: str) -> Goal | None:
        """Complete a goal and roll progress up through its ancestors."""
        goal = await self.update_goal(goal_id, status="completed")
        if goal is None:
            return None
        logger.info(f"Goals: completed {goal_id}")

        if goal.parent_id:
            parent = await self.get_goal(goal.parent_id)
            if parent and parent.status != "completed":
                siblings = await self.sub_goals(parent.id)
                done = sum(1 for g in siblings if g.status == "completed")
                await self.update_goal(parent.id, progress=round(100 * done / len(siblings)))
                if done == len(siblings):
                    await self.complete_goal(parent.id)

        return await self.get_goal(goal_id)

    async def apply_decay(self) -> int:
        """
        Decay attention of active goals and expire stale ones.

        Each pass only charges the time since the later of the last
        interaction and the previous pass, so re-running is safe.

        Returns:
            Number of goals whose attention changed.
        """
        now = self.clock.now()
        decayed = 0
        expired = 0

        for row in await self.storage.query(self.TABLE, {"status": "active"}):
            goal = Goal.from_row(row)
            changes: dict[str, Any] = {}

            if goal.attention_score > 0:
                since = goal.last_interaction_at
                if goal.decayed_at and goal.decayed_at > since:
                    since = goal.decayed_at
                loss = hours_between(since, now) * self.decay_rate
                if loss > 0:
                    changes["attention_score"] = max(0.0, goal.attention_score - loss)
                    changes["decayed_at"] = now.isoformat()
                    decayed += 1

            if hours_between(goal.last_interaction_at, now) > goal.ttl_hours:
                changes["status"] = "expired"
                expired += 1

            if changes:
                await self.storage.update(self.TABLE, goal.id, changes)

        if expired:
            logger.info(f"Goals: expired {expired} stale goal(s)")
        return decayed

    async def goals_needing_attention(self, user_id: str, threshold: float = 0.3) -> list[Goal]:
        goals = await self.active_goals(user_id)
        return sorted((g for g in goals if g.attention_score < threshold), key=lambda g: g.attention_score)

    async def suggest_next_action(self, goal_id: str) -> str | None:
        goal = await self.get_goal(goal_id)
        if goal is None:
            return None
        if goal.next_actions:
            return goal.next_actions[0]
        if goal.blockers:
            return f"Address blocker: {goal.blockers[0]}"
        if goal.child_ids:
            active = [g for g in await self.sub_goals(goal_id) if g.status == "active"]
            if active:
                most_urgent = max(active, key=lambda g: PRIORITY_RANK[g.priority])
                return f"Work on sub-goal: {most_urgent.description}"
        return None

    async def goal_summary(self, user_id: str) -> str:
        goals = await self.top_level_goals(user_id)
        if not goals:
            return "No active goals."

        lines = []
        for g in goals:
            line = f"• {g.description} ({g.progress}%)"
            if g.blockers:
                line += f" [BLOCKED: {g.blockers[0]}]"
            if g.next_actions:
                line += f" → Next: {g.next_actions[0]}"
            lines.append(line)
        return "Active goals:\n" + "\n".join(lines)
