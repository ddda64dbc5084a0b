"""Learned approval patterns, bounded by LRU size and idle TTL."""

import threading
from collections import OrderedDict, deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from loguru import logger

from majordomo.autonomy.types import PatternContext
from majordomo.params import Params, canonical_json, stable_params
from majordomo.utils.clock import Clock, SystemClock


def pattern_hash(action: str, params: Params) -> str:
    """``action:key:value|key:value`` over the stable params, keys sorted."""
    parts = [f"{k}:{canonical_json(v)}" for k, v in stable_params(params)]
    return f"{action}:" + "|".join(parts)


@dataclass
class ApprovalPattern:
    key: str
    action: str
    approval_count: int = 0
    last_approved: datetime | None = None
    contexts: deque[PatternContext] = field(default_factory=deque)
    reasoning: str | None = None


class ApprovalPatternCache:
    """
    Remembers which (action, params) combinations the user keeps approving.

    At most ``max_patterns`` entries are kept, least recently used evicted
    first; a pattern not approved for ``ttl`` is dropped on next touch.
    """

    def __init__(
        self,
        max_patterns: int = 512,
        ttl: timedelta = timedelta(days=30),
        contexts_per_pattern: int = 10,
        min_approvals: int = 3,
        clock: Clock | None = None,
    ):
        self.max_patterns = max_patterns
        self.ttl = ttl
        self.contexts_per_pattern = contexts_per_pattern
        self.min_approvals = min_approvals
        self.clock = clock or SystemClock()
        self._patterns: OrderedDict[str, ApprovalPattern] = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._patterns)

    def record_approval(
        self,
        action: str,
        params: Params,
        context: PatternContext,
        reasoning: str | None = None,
    ) -> ApprovalPattern:
        key = pattern_hash(action, params)
        now = self.clock.now()
        with self._lock:
            pattern = self._live(key, now)
            if pattern is None:
                pattern = ApprovalPattern(key=key, action=action, contexts=deque(maxlen=self.contexts_per_pattern))
                self._patterns[key] = pattern
            pattern.approval_count += 1
            pattern.last_approved = now
            pattern.contexts.append(context)
            if reasoning:
                pattern.reasoning = reasoning
            self._patterns.move_to_end(key)

            while len(self._patterns) > self.max_patterns:
                evicted, _ = self._patterns.popitem(last=False)
                logger.debug(f"Autonomy: evicted approval pattern {evicted}")
        return pattern

    def get(self, action: str, params: Params) -> ApprovalPattern | None:
        with self._lock:
            return self._live(pattern_hash(action, params), self.clock.now())

    def has_learned_approval(self, action: str, params: Params, context: PatternContext) -> bool:
        """Approved often enough, and in a context that resembles this one."""
        pattern = self.get(action, params)
        if pattern is None or pattern.approval_count < self.min_approvals:
            return False
        return any(c.time_of_day == context.time_of_day or c.mode == context.mode for c in pattern.contexts)

    def forget(self, action: str, params: Params) -> bool:
        with self._lock:
            return self._patterns.pop(pattern_hash(action, params), None) is not None

    def clear(self) -> None:
        with self._lock:
            self._patterns.clear()

    def _live(self, key: str, now: datetime) -> ApprovalPattern | None:
        pattern = self._patterns.get(key)
        if pattern is None:
            return None
        if pattern.last_approved and now - pattern.last_approved > self.ttl:
            del self._patterns[key]
            return None
        self._patterns.move_to_end(key)
        return pattern
