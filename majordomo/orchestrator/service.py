"""Orchestrator: the perception, cognition and action loops around one intent queue."""

import asyncio
import uuid
from dataclasses import asdict
from datetime import timedelta
from typing import Any

from loguru import logger

from majordomo.autonomy.types import ActionRequest, AutonomyLevel, WorldState
from majordomo.bus.events import (
    ActionCompleteEvent,
    ActionRejectedEvent,
    ConfirmationRequiredEvent,
    HeartbeatEvent,
    IntentQueuedEvent,
    StateChangedEvent,
)
from majordomo.errors import InvalidStateError, NotFoundError, UnknownToolError
from majordomo.executors.base import ExecutionResult, ToolCapability
from majordomo.goals.models import priority_from_number
from majordomo.interruption.types import DeliveryMethod, InterruptionRequest, InterruptionType
from majordomo.orchestrator.context import Services
from majordomo.orchestrator.models import (
    ActionOutcome,
    Intent,
    IntentSource,
    OrchestratorState,
    PendingConfirmation,
)
from majordomo.orchestrator.queue import IntentQueue
from majordomo.orchestrator.scheduler import IntervalTicker, LoopHealth, PeriodicLoop, Ticker
from majordomo.params import Params, coerce_params
from majordomo.perception import PerceptionSnapshot
from majordomo.simulation.models import Recommendation
from majordomo.snapshots.manager import Snapshot, SnapshotTrigger
from majordomo.transparency.signals import ActivityType

S = OrchestratorState

_CONFIRMATION_URGENCY = {AutonomyLevel.CONFIRM_SIMPLE: 5, AutonomyLevel.CONFIRM_DETAILED: 6}
DEFAULT_CONFIRMATION_EXPIRY_S = 300


class Orchestrator:
    """
    Connects perception, cognition and action.

    Perception keeps the world state current, cognition runs decay and
    proposes goal-driven work, and action takes one intent per tick off the
    priority queue and governs it: snapshot, simulate, confirm, execute,
    record.

    Loops wait on tickers, so tests can pass ``ManualTicker`` instances and
    drive each loop deterministically.
    """

    def __init__(self, services: Services, tickers: dict[str, Ticker] | None = None):
        self.services = services
        self.clock = services.clock
        self.bus = services.bus
        self.user_id = services.config.orchestrator.default_user_id

        self._state = S.STOPPED
        self._queue = IntentQueue()
        self._pending: dict[str, PendingConfirmation] = {}
        self._last_perception: PerceptionSnapshot | None = None
        self._proposed: dict[str, str] = {}
        self._dispatch_task: asyncio.Task | None = None

        oc = services.config.orchestrator
        tickers = tickers or {}
        cancel = asyncio.Event()
        self._loops: dict[str, PeriodicLoop] = {
            "perception": PeriodicLoop(
                "perception",
                tickers.get("perception") or IntervalTicker(oc.perception_interval_ms / 1000),
                self.tick_perception, cancel, self.clock,
            ),
            "cognition": PeriodicLoop(
                "cognition",
                tickers.get("cognition") or IntervalTicker(oc.cognition_interval_ms / 1000),
                self.tick_cognition, cancel, self.clock,
            ),
            "action": PeriodicLoop(
                "action",
                tickers.get("action") or IntervalTicker(oc.action_interval_ms / 1000),
                self.tick_action, cancel, self.clock,
            ),
            "heartbeat": PeriodicLoop(
                "heartbeat",
                tickers.get("heartbeat") or IntervalTicker(oc.heartbeat_interval_s),
                self.heartbeat, cancel, self.clock,
            ),
        }

    # -- Lifecycle --

    @property
    def state(self) -> OrchestratorState:
        return self._state

    async def _transition(self, new: OrchestratorState) -> None:
        previous, self._state = self._state, new
        logger.info(f"Orchestrator: {previous.value} -> {new.value}")
        await self.bus.publish(StateChangedEvent(
            previous=previous.value, current=new.value, timestamp=self.clock.now(),
        ))

    async def start(self, user_id: str | None = None) -> None:
        if self._state != S.STOPPED:
            raise InvalidStateError(f"Cannot start while {self._state.value}")
        await self._transition(S.STARTING)
        if user_id:
            self.user_id = user_id

        self.services.snapshots.create_snapshot(
            await self.capture_state(),
            SnapshotTrigger(type="system", description="orchestrator_start", user_id=self.user_id),
        )
        self._dispatch_task = asyncio.create_task(self.bus.dispatch(), name="event-dispatch")
        for loop in self._loops.values():
            loop.start()

        await self._transition(S.RUNNING)

    async def stop(self) -> None:
        if self._state == S.STOPPED:
            return
        if self._state in (S.STARTING, S.STOPPING):
            raise InvalidStateError(f"Cannot stop while {self._state.value}")
        await self._transition(S.STOPPING)

        for loop in self._loops.values():
            await loop.stop()

        await self._transition(S.STOPPED)
        self.bus.stop()
        if self._dispatch_task is not None:
            try:
                await asyncio.wait_for(self._dispatch_task, timeout=2.0)
            except asyncio.TimeoutError:
                self._dispatch_task.cancel()
            self._dispatch_task = None
        await self.bus.drain()

    async def pause(self) -> None:
        if self._state != S.RUNNING:
            raise InvalidStateError(f"Cannot pause while {self._state.value}")
        await self._transition(S.PAUSED)

    async def resume(self) -> None:
        if self._state != S.PAUSED:
            raise InvalidStateError(f"Cannot resume while {self._state.value}")
        await self._transition(S.RUNNING)

    # -- Loops --

    async def tick_perception(self) -> None:
        if self._state != S.RUNNING:
            return
        snap = await self.services.perception.snapshot()
        previous = self._last_perception
        self._last_perception = snap

        if previous is None or previous.user_state != snap.user_state:
            for request, decision in self.services.interruptions.set_user_state(snap.user_state):
                if decision.should_interrupt:
                    self.services.interruptions.record_interruption(request.type, request.urgency, request.source)
                    logger.info(f"Orchestrator: delivering deferred '{request.content[:50]}'")

        window_changed = previous is None or (previous.active_app, previous.active_window) != (snap.active_app, snap.active_window)
        if snap.active_window and window_changed:
            async with self.services.trust.activity(ActivityType.SCREEN_VIEW, "Noting the active window", self.user_id):
                await self.services.memory.remember(
                    self.user_id,
                    f"User focused on {snap.active_app or 'unknown app'}: {snap.active_window}",
                    type="ephemeral",
                    category="context",
                    source="observed",
                )

    async def tick_cognition(self) -> None:
        if self._state != S.RUNNING:
            return
        try:
            await self.services.goals.apply_decay()
        except Exception as e:
            logger.error(f"Orchestrator: goal decay failed, retrying next cycle: {e}")
        try:
            await self.services.memory.apply_decay()
        except Exception as e:
            logger.error(f"Orchestrator: memory decay failed, retrying next cycle: {e}")
        await self.check_proactive_actions()

    async def check_proactive_actions(self) -> int:
        """Queue the first next action of active goals the user lets run unattended."""
        prefs = await self.services.preferences.get_preferences(self.user_id)
        if not prefs.autonomy.enabled or prefs.communication.proactivity == "reactive":
            return 0

        queued = 0
        for goal in await self.services.goals.active_goals(self.user_id):
            if not goal.next_actions:
                continue
            action = goal.next_actions[0]
            if self._proposed.get(goal.id) == action:
                continue
            capability = self.services.registry.get_capability(action)
            if capability is None:
                continue
            if not await self.services.autonomy.should_auto_approve(self.user_id, capability):
                continue

            self._proposed[goal.id] = action
            intent = self._new_intent(
                action,
                {},
                source="goal",
                priority=self.services.config.orchestrator.proactive_priority,
                capability=capability,
                reasoning=f"Next step for goal: {goal.description}",
            )
            await self._enqueue(intent)
            queued += 1
        return queued

    async def tick_action(self) -> None:
        if self._state != S.RUNNING:
            return
        intent = self._queue.pop()
        if intent is None:
            return
        if intent.expires_at and intent.expires_at < self.clock.now():
            logger.info(f"Orchestrator: dropping expired intent {intent.id} ({intent.tool_name})")
            return
        await self.process_intent(intent)

    async def heartbeat(self) -> None:
        await self.bus.publish(HeartbeatEvent(
            state=self._state.value,
            queue_size=len(self._queue),
            pending_confirmations=len(self._pending),
            timestamp=self.clock.now(),
        ))

    # -- Intent processing --

    def world_state(self) -> WorldState:
        if self._last_perception is not None:
            snap = self._last_perception
            return WorldState.at(self.clock.now(), mode=snap.user_mode, active_app=snap.active_app)
        return WorldState.at(self.clock.now())

    async def capture_state(self) -> dict[str, Any]:
        """The observable state that snapshots compare before and after an action."""
        goals = await self.services.goals.all_goals(self.user_id)
        memory = await self.services.memory.stats(self.user_id)
        return {
            "goals": {
                g.id: {"status": g.status, "progress": g.progress, "priority": g.priority, "blockers": list(g.blockers)}
                for g in goals
            },
            "memories": {"total": memory.total, "byType": dict(memory.by_type)},
            "pendingConfirmations": sorted(self._pending),
        }

    def _new_intent(
        self,
        tool_name: str,
        params: Params,
        *,
        source: IntentSource,
        priority: int,
        capability: ToolCapability,
        confidence: float = 0.8,
        reasoning: str | None = None,
        user_id: str | None = None,
        ttl_seconds: float | None = None,
    ) -> Intent:
        now = self.clock.now()
        return Intent(
            id=f"intent_{uuid.uuid4().hex[:12]}",
            user_id=user_id or self.user_id,
            tool_name=tool_name,
            params=params,
            source=source,
            priority=priority,
            created_at=now,
            expires_at=now + timedelta(seconds=ttl_seconds) if ttl_seconds else None,
            requires_simulation=self.services.autonomy.requires_simulation(capability),
            confidence=confidence,
            reasoning=reasoning,
        )

    async def _enqueue(self, intent: Intent) -> None:
        position = self._queue.push(intent)
        logger.debug(f"Orchestrator: queued {intent.tool_name} ({intent.id}) at {position}, priority {intent.priority}")
        await self.bus.publish(IntentQueuedEvent(
            intent_id=intent.id,
            tool_name=intent.tool_name,
            priority=intent.priority,
            source=intent.source,
            queue_size=len(self._queue),
            timestamp=self.clock.now(),
        ))

    async def submit_request(
        self,
        tool_name: str,
        params: dict[str, Any] | None = None,
        *,
        user_id: str | None = None,
        immediate: bool = False,
        priority: int = 5,
        confidence: float = 0.8,
        reasoning: str | None = None,
        ttl_seconds: float | None = None,
    ) -> str:
        """
        Submit a user request for governed execution.

        Args:
            tool_name: Registered tool to run.
            params: Tool parameters; validated as JSON values here.
            immediate: Process now instead of queueing.
            priority: Queue priority, higher first.
            confidence: How sure the caller is this is what the user wants.

        Returns:
            The intent id.

        Raises:
            UnknownToolError: No executor provides ``tool_name``.
            ParamValidationError: ``params`` is not a JSON object.
        """
        capability = self.services.registry.get_capability(tool_name)
        if capability is None:
            raise UnknownToolError(f"Unknown tool: {tool_name}")
        clean = coerce_params(params or {})

        intent = self._new_intent(
            tool_name,
            clean,
            source="user",
            priority=priority,
            capability=capability,
            confidence=confidence,
            reasoning=reasoning,
            user_id=user_id,
            ttl_seconds=ttl_seconds,
        )
        decision = self.services.autonomy.decide(
            ActionRequest(tool_name, clean, confidence, reasoning), capability, self.world_state(),
        )
        intent.decision = decision

        if decision.level == AutonomyLevel.DENY:
            await self.bus.publish(ActionRejectedEvent(
                intent_id=intent.id, tool_name=tool_name, reason=decision.reason, timestamp=self.clock.now(),
            ))
            return intent.id

        auto_ok = decision.relaxable and await self.services.autonomy.should_auto_approve(intent.user_id, capability)
        intent.requires_confirmation = decision.level.needs_confirmation and not auto_ok

        if immediate:
            outcome = await self.process_intent(intent)
            logger.debug(f"Orchestrator: immediate {tool_name} -> {outcome.status}")
        else:
            await self._enqueue(intent)
        return intent.id

    async def process_intent(self, intent: Intent) -> ActionOutcome:
        """
        Govern and run one intent.

        Never raises: failures become an outcome with a failed result, and
        any simulation or confirmation stop is reported in ``status``.
        """
        services = self.services
        before_state = await self.capture_state()
        before = services.snapshots.create_snapshot(before_state, SnapshotTrigger(
            type="action", description=f"before_{intent.tool_name}", action_id=intent.id, user_id=intent.user_id,
        ))
        indicator = services.trust.start_activity(
            ActivityType.ACTION_EXECUTE, f"Executing {intent.tool_name}", intent.user_id, {"intentId": intent.id},
        )
        outcome = ActionOutcome(intent=intent, status="failed")
        try:
            if intent.requires_simulation:
                report = await services.simulator.simulate(intent.tool_name, intent.params, before_state)
                outcome.simulation = report
                if report.recommendation == Recommendation.ABORT:
                    outcome.status = "aborted"
                    logger.warning(f"Orchestrator: aborted {intent.tool_name}: {report.summary}")
                    record_id = await services.trust.record_action(
                        intent.user_id, intent.tool_name, intent.params, initiated_by=intent.source,
                    )
                    await services.trust.complete_action(record_id, "cancelled", error=report.summary)
                    await self._publish_complete(intent, outcome)
                    return outcome
                if report.recommendation == Recommendation.RECONSIDER:
                    intent.requires_confirmation = True

            if intent.requires_confirmation:
                await self._request_confirmation(intent, outcome)
                outcome.status = "awaiting_confirmation"
                return outcome

            await self._execute(intent, outcome, before)
        except Exception as e:
            logger.exception(f"Orchestrator: processing {intent.id} failed: {e}")
            outcome.status = "failed"
            outcome.result = ExecutionResult.failure(
                "EXECUTION_ERROR", str(e) or type(e).__name__, recoverable=False, executor="orchestrator",
            )
            await self._publish_complete(intent, outcome)
        finally:
            services.trust.stop_activity(indicator)
        return outcome

    async def _execute(self, intent: Intent, outcome: ActionOutcome, before: Snapshot) -> None:
        services = self.services
        capability = services.registry.get_capability(intent.tool_name)
        approval_method = "confirmed" if intent.confirmed else "auto"
        record_id = await services.trust.record_action(
            intent.user_id,
            intent.tool_name,
            intent.params,
            initiated_by=intent.source,
            approved=True,
            approval_method=approval_method,
        )

        result = await services.registry.execute(intent.tool_name, intent.params)
        outcome.result = result
        outcome.status = "completed" if result.success else "failed"

        after = services.snapshots.create_snapshot(await self.capture_state(), SnapshotTrigger(
            type="action", description=f"after_{intent.tool_name}", action_id=intent.id, user_id=intent.user_id,
        ))
        outcome.change = services.snapshots.record_snapshots(
            before, after, intent.tool_name, intent.params,
            reversible=capability.reversible if capability else False,
        )

        if result.success:
            await services.memory.remember(
                intent.user_id,
                f"Successfully executed {intent.tool_name}",
                type="working",
                category="context",
                source="system",
            )
            outcome.learned.append(f"{intent.tool_name} succeeded")

        await services.trust.complete_action(
            record_id,
            "success" if result.success else "failure",
            duration_ms=result.duration_ms,
            side_effects=[e.description for e in result.side_effects],
            error=result.error.message if result.error else None,
        )
        if not result.success:
            logger.warning(f"Orchestrator: {intent.tool_name} failed: {result.message}")
        await self._publish_complete(intent, outcome)

    async def _request_confirmation(self, intent: Intent, outcome: ActionOutcome) -> None:
        now = self.clock.now()
        decision = intent.decision
        expiry = decision.expires_in_seconds if decision and decision.expires_in_seconds else DEFAULT_CONFIRMATION_EXPIRY_S
        message = (decision.display_message if decision else None) or f"Execute {intent.tool_name}?"
        level = decision.level if decision else AutonomyLevel.CONFIRM_SIMPLE

        pending = PendingConfirmation(
            intent=intent,
            message=message,
            created_at=now,
            expires_at=now + timedelta(seconds=expiry),
            simulation=outcome.simulation,
        )
        self._pending[intent.id] = pending

        delivery = DeliveryMethod.DISPLAY
        if intent.source != "user":
            request = InterruptionRequest(
                type=InterruptionType.QUESTION,
                urgency=_CONFIRMATION_URGENCY.get(level, 5),
                content=message,
                source=intent.source,
                can_defer=False,
            )
            delivery = self.services.interruptions.get_delivery_method(request)
            if delivery in (DeliveryMethod.SPEAK, DeliveryMethod.DISPLAY):
                self.services.interruptions.record_interruption(request.type, request.urgency, request.source)

        logger.info(f"Orchestrator: {intent.tool_name} ({intent.id}) awaits confirmation via {delivery.value}")
        await self.bus.publish(ConfirmationRequiredEvent(
            intent_id=intent.id,
            tool_name=intent.tool_name,
            message=message,
            level=level.value,
            expires_at=pending.expires_at,
            summary=outcome.simulation.summary if outcome.simulation else None,
            delivery=delivery.value,
            timestamp=now,
        ))

    async def _publish_complete(self, intent: Intent, outcome: ActionOutcome) -> None:
        result = outcome.result
        await self.bus.publish(ActionCompleteEvent(
            intent_id=intent.id,
            tool_name=intent.tool_name,
            success=outcome.success,
            status=outcome.status,
            message=result.message if result else (outcome.simulation.summary if outcome.simulation else ""),
            output=result.output if result else None,
            error_code=result.error.code if result and result.error else None,
            change_id=outcome.change.id if outcome.change else None,
            timestamp=self.clock.now(),
        ))

    # -- Confirmations --

    def pending_confirmations(self) -> list[PendingConfirmation]:
        return sorted(self._pending.values(), key=lambda p: p.created_at)

    def get_pending(self, intent_id: str) -> PendingConfirmation | None:
        return self._pending.get(intent_id)

    async def confirm_action(self, intent_id: str) -> ActionOutcome:
        """
        Approve a pending intent and run it.

        Raises:
            NotFoundError: No pending confirmation with this id, or it expired.
        """
        pending = self._pending.pop(intent_id, None)
        if pending is None:
            raise NotFoundError(f"No pending confirmation: {intent_id}")
        if pending.expired(self.clock.now()):
            logger.info(f"Orchestrator: confirmation for {intent_id} expired")
            raise NotFoundError(f"Confirmation expired: {intent_id}")

        intent = pending.intent
        self.services.autonomy.record_approval(
            ActionRequest(intent.tool_name, intent.params, intent.confidence, intent.reasoning),
            self.world_state(),
        )
        intent.confirmed = True
        intent.requires_confirmation = False
        intent.requires_simulation = False
        return await self.process_intent(intent)

    async def reject_action(self, intent_id: str, reason: str | None = None) -> bool:
        pending = self._pending.pop(intent_id, None)
        if pending is None:
            return False
        intent = pending.intent
        reason = reason or "no reason given"
        await self.services.memory.remember(
            intent.user_id,
            f"Rejected action: {intent.tool_name} - {reason}",
            type="working",
            category="fact",
            source="user",
        )
        logger.info(f"Orchestrator: {intent.tool_name} ({intent_id}) rejected: {reason}")
        await self.bus.publish(ActionRejectedEvent(
            intent_id=intent_id, tool_name=intent.tool_name, reason=reason, timestamp=self.clock.now(),
        ))
        return True

    def cancel_confirmation(self, intent_id: str) -> bool:
        return self._pending.pop(intent_id, None) is not None

    # -- Goals --

    async def create_goal(self, description: str, priority: int = 5, steps: list[str] | None = None) -> str:
        if not 1 <= priority <= 10:
            raise ValueError("priority must be between 1 and 10")
        goal = await self.services.goals.create_goal(
            self.user_id,
            description,
            priority=priority_from_number(priority),
            next_actions=steps,
        )
        return goal.id

    # -- Status --

    def health(self) -> dict[str, LoopHealth]:
        return {name: loop.health for name, loop in self._loops.items()}

    def status(self) -> dict[str, Any]:
        snap = self._last_perception
        return {
            "state": self._state.value,
            "health": {name: asdict(h) for name, h in self.health().items()},
            "queueDepth": len(self._queue),
            "pendingConfirmations": len(self._pending),
            "perception": asdict(snap) if snap else None,
            "activity": self.services.trust.activity_status(),
        }

    def queued_intents(self) -> list[Intent]:
        return self._queue.snapshot()
