"""Interruption budget manager.

Rate-limits notifications and suggestions according to what the user is
doing. All state is in memory; the clock is injectable so budgets and
cooldowns can be exercised without waiting.
"""

import math
import threading
from collections import deque
from datetime import datetime, timedelta

from loguru import logger

from majordomo.interruption.types import (
    STATE_MULTIPLIERS,
    DeferredItem,
    DeferTarget,
    DeliveryMethod,
    InterruptionBudget,
    InterruptionDecision,
    InterruptionRecord,
    InterruptionRequest,
    InterruptionStats,
    InterruptionType,
    UserState,
)
from majordomo.utils.clock import Clock, SystemClock

_WINDOW = timedelta(hours=1)
_NO_SUGGEST_STATES = {
    UserState.FOCUSED,
    UserState.PRESENTING,
    UserState.MEETING,
    UserState.DND,
    UserState.AWAY,
}


class InterruptionManager:
    """
    Decides whether a notification may interrupt the user right now.

    The hourly budget is scaled by a per-state multiplier. States with a
    zero multiplier hold everything that can wait and silently log the rest.
    """

    def __init__(
        self,
        budget: InterruptionBudget | None = None,
        clock: Clock | None = None,
        multipliers: dict[UserState, float] | None = None,
        focus_protection_minutes: float = 15,
        focus_urgency_threshold: int = 7,
    ):
        self.budget = budget or InterruptionBudget()
        self.clock = clock or SystemClock()
        self.multipliers = {**STATE_MULTIPLIERS, **(multipliers or {})}
        self.focus_protection_minutes = focus_protection_minutes
        self.focus_urgency_threshold = focus_urgency_threshold

        self._state = UserState.ACTIVE
        self._log: deque[InterruptionRecord] = deque()
        self._deferred: list[DeferredItem] = []
        self._last_interruption: datetime | None = None
        self._focus_start: datetime | None = None
        self._lock = threading.Lock()

    @property
    def state(self) -> UserState:
        return self._state

    def set_user_state(self, state: UserState | str) -> list[tuple[InterruptionRequest, InterruptionDecision]]:
        """
        Change the user's activity state.

        Returns:
            Deferred requests that were re-evaluated because their target
            state now matches, each with its fresh decision.
        """
        state = UserState(state)
        previous = self._state
        self._state = state

        if state == UserState.FOCUSED and previous != UserState.FOCUSED:
            self._focus_start = self.clock.now()
        elif state != UserState.FOCUSED:
            self._focus_start = None

        logger.debug(f"Interruptions: state {previous.value} -> {state.value}")
        if previous != state:
            return self._process_deferred()
        return []

    def should_interrupt(self, request: InterruptionRequest) -> InterruptionDecision:
        return self._evaluate(request, allow_defer=True)

    def _evaluate(self, request: InterruptionRequest, allow_defer: bool) -> InterruptionDecision:
        now = self.clock.now()

        if request.type == InterruptionType.CRITICAL:
            return InterruptionDecision(True, "Critical interruption always allowed")

        if request.urgency >= self.budget.urgency_bypass_threshold:
            return InterruptionDecision(True, f"Urgency {request.urgency} bypasses budget threshold")

        multiplier = self.multipliers[self._state]
        if multiplier == 0:
            if request.can_defer:
                target: DeferTarget = request.defer_until or "active"
                if allow_defer:
                    self._defer(request, target)
                return InterruptionDecision(
                    False,
                    f"User is {self._state.value}, deferring until available",
                    defer_target=target,
                    alternative_action="queue",
                )
            return InterruptionDecision(
                False,
                f"User is {self._state.value}, interruptions blocked",
                alternative_action="silent_log",
            )

        if self._last_interruption is not None:
            since_ms = (now - self._last_interruption).total_seconds() * 1000
            if since_ms < self.budget.cooldown_ms:
                wait_ms = self.budget.cooldown_ms - since_ms
                if request.can_defer:
                    return InterruptionDecision(
                        False,
                        f"Cooldown active, {round(wait_ms / 1000)}s remaining",
                        deferred_until=now + timedelta(milliseconds=wait_ms),
                        alternative_action="queue",
                    )
                return InterruptionDecision(False, "Cooldown active", alternative_action="badge")

        with self._lock:
            self._prune(now)
            last_minute = sum(1 for r in self._log if now - r.timestamp < timedelta(minutes=1))
            recent = len(self._log)

        if self.budget.max_per_minute and last_minute >= self.budget.max_per_minute:
            return InterruptionDecision(
                False,
                "Per-minute budget exhausted",
                alternative_action="queue" if request.can_defer else "badge",
            )

        if recent >= self.effective_budget():
            return InterruptionDecision(
                False,
                "Hourly budget exhausted",
                alternative_action="queue" if request.can_defer else "badge",
            )

        if self._state == UserState.FOCUSED and self._focus_start is not None:
            focus_minutes = (now - self._focus_start).total_seconds() / 60
            if focus_minutes > self.focus_protection_minutes and request.urgency < self.focus_urgency_threshold:
                return InterruptionDecision(
                    False,
                    f"Protecting focus session ({round(focus_minutes)} min)",
                    alternative_action="queue",
                )

        return InterruptionDecision(True, "Within budget and appropriate context")

    def effective_budget(self) -> int:
        return math.floor(self.budget.max_per_hour * self.multipliers[self._state])

    def record_interruption(self, type: InterruptionType | str, urgency: int, source: str = "system") -> None:
        now = self.clock.now()
        with self._lock:
            self._log.append(InterruptionRecord(now, InterruptionType(type), urgency, source))
            self._last_interruption = now
            self._prune(now)
        logger.info(f"Interruptions: delivered {InterruptionType(type).value} (urgency {urgency}) while {self._state.value}")

    def can_suggest(self) -> bool:
        """Proactive suggestions get half the budget and twice the cooldown."""
        if self._state in _NO_SUGGEST_STATES:
            return False

        now = self.clock.now()
        with self._lock:
            self._prune(now)
            recent = len(self._log)
        if recent >= self.effective_budget() * 0.5:
            return False

        if self._last_interruption is not None:
            since_ms = (now - self._last_interruption).total_seconds() * 1000
            if since_ms < self.budget.cooldown_ms * 2:
                return False
        return True

    def get_delivery_method(self, request: InterruptionRequest) -> DeliveryMethod:
        decision = self.should_interrupt(request)

        if not decision.should_interrupt:
            if decision.alternative_action == "queue":
                return DeliveryMethod.DEFER
            if decision.alternative_action == "badge":
                return DeliveryMethod.BADGE
            return DeliveryMethod.SILENT

        if self._state == UserState.IDLE and request.urgency >= 7:
            return DeliveryMethod.SPEAK
        if request.type in (InterruptionType.URGENT, InterruptionType.CRITICAL):
            return DeliveryMethod.SPEAK
        return DeliveryMethod.DISPLAY

    def deferred_queue(self) -> list[InterruptionRequest]:
        return [item.request for item in self._deferred]

    def clear_deferred(self) -> int:
        count = len(self._deferred)
        self._deferred = []
        return count

    def stats(self) -> InterruptionStats:
        now = self.clock.now()
        with self._lock:
            self._prune(now)
            records = list(self._log)
        by_type: dict[str, int] = {}
        for r in records:
            by_type[r.type.value] = by_type.get(r.type.value, 0) + 1
        return InterruptionStats(
            last_hour=len(records),
            last_minute=sum(1 for r in records if now - r.timestamp < timedelta(minutes=1)),
            deferred=len(self._deferred),
            state=self._state,
            effective_budget=self.effective_budget(),
            by_type=by_type,
        )

    def focus_duration(self) -> timedelta | None:
        if self._focus_start is None:
            return None
        return self.clock.now() - self._focus_start

    def _defer(self, request: InterruptionRequest, target: DeferTarget) -> None:
        self._deferred.append(DeferredItem(request, self.clock.now(), target))
        logger.debug(f"Interruptions: deferred '{request.content[:50]}' until {target}")

    def _matches(self, target: DeferTarget) -> bool:
        if target == "any":
            return True
        if target == "idle":
            return self._state == UserState.IDLE
        return self._state in (UserState.IDLE, UserState.ACTIVE)

    def _process_deferred(self) -> list[tuple[InterruptionRequest, InterruptionDecision]]:
        results: list[tuple[InterruptionRequest, InterruptionDecision]] = []
        still_deferred: list[DeferredItem] = []

        for item in self._deferred:
            if not self._matches(item.target):
                still_deferred.append(item)
                continue
            decision = self._evaluate(item.request, allow_defer=False)
            results.append((item.request, decision))
            if not decision.should_interrupt and decision.alternative_action == "queue":
                still_deferred.append(item)

        self._deferred = still_deferred
        if results:
            logger.debug(f"Interruptions: re-evaluated {len(results)} deferred, {len(still_deferred)} still waiting")
        return results

    def _prune(self, now: datetime) -> None:
        while self._log and now - self._log[0].timestamp >= _WINDOW:
            self._log.popleft()
