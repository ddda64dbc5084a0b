"""Executors backed by the assistant's own stores, so it runs with no integrations."""

from majordomo.executors.base import (
    ExecutionResult,
    Executor,
    SimulationPreview,
    ToolCapability,
    make_side_effect,
)
from majordomo.goals.models import priority_from_number
from majordomo.goals.store import GoalStore
from majordomo.memory.store import MemoryStore
from majordomo.params import Params

_CATEGORIES = ["preference", "fact", "habit", "context", "relationship", "skill", "goal"]


class MemoryExecutor(Executor):
    """remember / recall / forget over the memory store."""

    id = "memory"
    name = "Memory"

    def __init__(self, memory: MemoryStore, default_user_id: str = "default"):
        self.memory = memory
        self.default_user_id = default_user_id

    def capabilities(self) -> list[ToolCapability]:
        return [
            ToolCapability(
                name="remember",
                description="Store something about the user",
                schema={
                    "properties": {
                        "content": {"type": "string", "minLength": 1},
                        "category": {"type": "string", "enum": _CATEGORIES},
                        "importance": {"type": "integer", "minimum": 1, "maximum": 10},
                    },
                    "required": ["content"],
                },
                risk_level="low",
                reversible=True,
                supports_simulation=True,
                supports_auto_approval=True,
            ),
            ToolCapability(
                name="recall",
                description="Search what the assistant remembers",
                schema={
                    "properties": {
                        "query": {"type": "string", "minLength": 1},
                        "limit": {"type": "integer", "minimum": 1, "maximum": 50},
                    },
                    "required": ["query"],
                },
                risk_level="none",
                reversible=True,
                supports_simulation=True,
                supports_auto_approval=True,
                safety_level="safe",
            ),
            ToolCapability(
                name="forget",
                description="Delete memories matching a phrase",
                schema={
                    "properties": {"query": {"type": "string", "minLength": 1}},
                    "required": ["query"],
                },
                risk_level="medium",
                reversible=False,
                supports_simulation=True,
            ),
        ]

    def _user(self, params: Params) -> str:
        return str(params.get("userId") or self.default_user_id)

    async def simulate(self, action: str, params: Params) -> SimulationPreview:
        validation = self.validate(action, params)
        if not validation.valid:
            return SimulationPreview(would_succeed=False, warnings=validation.errors)

        if action == "remember":
            return SimulationPreview(
                would_succeed=True,
                predicted_side_effects=[make_side_effect(
                    "data_created", "memory", f"Store memory: {params['content']}",
                    rollback_action="forget",
                )],
            )
        if action == "forget":
            matches = await self.memory.matching(self._user(params), str(params["query"]))
            warnings = [] if matches else ["No memories match that phrase"]
            return SimulationPreview(
                would_succeed=True,
                predicted_output={"matches": len(matches)},
                predicted_side_effects=[make_side_effect(
                    "data_deleted", "memory", f"Delete {len(matches)} memories matching '{params['query']}'",
                    reversible=False,
                )],
                warnings=warnings,
            )
        return SimulationPreview(would_succeed=True)

    async def execute(self, action: str, params: Params) -> ExecutionResult:
        user_id = self._user(params)

        if action == "remember":
            memory = await self.memory.remember(
                user_id,
                str(params["content"]),
                category=params.get("category", "fact"),
                importance=int(params.get("importance", 5)),
            )
            return ExecutionResult(
                success=True,
                output={"id": memory.id},
                message=f"Remembered: {memory.content}",
                side_effects=[make_side_effect(
                    "data_created", memory.id, "Stored memory", rollback_action="forget",
                )],
            )

        if action == "recall":
            memories = await self.memory.recall(user_id, str(params["query"]), limit=int(params.get("limit", 5)))
            return ExecutionResult(
                success=True,
                output=[m.content for m in memories],
                message=f"Found {len(memories)} memories",
            )

        if action == "forget":
            count = await self.memory.forget_matching(user_id, str(params["query"]))
            return ExecutionResult(
                success=True,
                output={"forgotten": count},
                message=f"Forgot {count} memories",
                side_effects=[make_side_effect(
                    "data_deleted", "memory", f"Deleted {count} memories", reversible=False,
                )] if count else [],
            )

        return ExecutionResult.failure("UNKNOWN_ACTION", f"Unknown action: {action}", executor=self.id)


class GoalExecutor(Executor):
    """createGoal / getGoals / completeGoal over the goal store."""

    id = "goals"
    name = "Goals"

    def __init__(self, goals: GoalStore, default_user_id: str = "default"):
        self.goals = goals
        self.default_user_id = default_user_id

    def capabilities(self) -> list[ToolCapability]:
        return [
            ToolCapability(
                name="createGoal",
                description="Start tracking a goal",
                schema={
                    "properties": {
                        "description": {"type": "string", "minLength": 1},
                        "priority": {"type": "integer", "minimum": 1, "maximum": 10},
                        "steps": {"type": "array", "items": {"type": "string"}},
                    },
                    "required": ["description"],
                },
                risk_level="low",
                reversible=True,
                supports_simulation=True,
                supports_auto_approval=True,
            ),
            ToolCapability(
                name="getGoals",
                description="List active goals",
                risk_level="none",
                supports_simulation=True,
                safety_level="safe",
            ),
            ToolCapability(
                name="completeGoal",
                description="Mark a goal as done",
                schema={
                    "properties": {"goalId": {"type": "string", "minLength": 1}},
                    "required": ["goalId"],
                },
                risk_level="low",
                reversible=False,
                supports_simulation=True,
            ),
        ]

    async def simulate(self, action: str, params: Params) -> SimulationPreview:
        validation = self.validate(action, params)
        if not validation.valid:
            return SimulationPreview(would_succeed=False, warnings=validation.errors)
        if action == "completeGoal":
            goal = await self.goals.get_goal(str(params["goalId"]))
            if goal is None:
                return SimulationPreview(would_succeed=False, warnings=[f"Goal {params['goalId']} not found"])
            return SimulationPreview(
                would_succeed=True,
                predicted_side_effects=[make_side_effect(
                    "data_modified", goal.id, f"Complete goal: {goal.description}", reversible=False,
                )],
            )
        if action == "createGoal":
            return SimulationPreview(
                would_succeed=True,
                predicted_side_effects=[make_side_effect("data_created", "goals", f"Track goal: {params['description']}")],
            )
        return SimulationPreview(would_succeed=True)

    async def execute(self, action: str, params: Params) -> ExecutionResult:
        user_id = str(params.get("userId") or self.default_user_id)

        if action == "createGoal":
            goal = await self.goals.create_goal(
                user_id,
                str(params["description"]),
                priority=priority_from_number(int(params.get("priority", 5))),
                next_actions=[str(s) for s in params.get("steps", [])],
            )
            return ExecutionResult(
                success=True,
                output={"id": goal.id},
                message=f"Tracking goal: {goal.description}",
                side_effects=[make_side_effect("data_created", goal.id, "Created goal")],
            )

        if action == "getGoals":
            return ExecutionResult(success=True, output=await self.goals.goal_summary(user_id))

        if action == "completeGoal":
            goal = await self.goals.complete_goal(str(params["goalId"]))
            if goal is None:
                return ExecutionResult.failure("NOT_FOUND", f"Goal {params['goalId']} not found", executor=self.id)
            return ExecutionResult(
                success=True,
                output={"id": goal.id, "progress": goal.progress},
                message=f"Completed: {goal.description}",
                side_effects=[make_side_effect("data_modified", goal.id, "Completed goal", reversible=False)],
            )

        return ExecutionResult.failure("UNKNOWN_ACTION", f"Unknown action: {action}", executor=self.id)
