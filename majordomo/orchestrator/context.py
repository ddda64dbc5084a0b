"""Service wiring: every store and manager the orchestrator talks to, built once."""

from dataclasses import dataclass, field
from datetime import timedelta

from majordomo.autonomy import ApprovalPatternCache, AutonomyEngine
from majordomo.bus.queue import EventBus
from majordomo.config.schema import Config
from majordomo.executors import ExecutorRegistry
from majordomo.executors.builtin import GoalExecutor, MemoryExecutor
from majordomo.goals.store import GoalStore
from majordomo.interruption import InterruptionBudget, InterruptionManager
from majordomo.memory.store import MemoryStore
from majordomo.perception import PerceptionSource, StaticPerceptionSource
from majordomo.preferences.store import PreferenceStore
from majordomo.providers.base import LLMProvider
from majordomo.simulation import ActionSimulator
from majordomo.snapshots import SnapshotManager
from majordomo.storage.base import RowStore
from majordomo.storage.sqlite import SQLiteRowStore
from majordomo.transparency import TrustSignals
from majordomo.utils.clock import Clock, SystemClock


@dataclass
class Services:
    config: Config
    clock: Clock
    storage: RowStore
    registry: ExecutorRegistry
    goals: GoalStore
    memory: MemoryStore
    preferences: PreferenceStore
    interruptions: InterruptionManager
    snapshots: SnapshotManager
    simulator: ActionSimulator
    autonomy: AutonomyEngine
    trust: TrustSignals
    perception: PerceptionSource
    bus: EventBus = field(default_factory=EventBus)

    def close(self) -> None:
        self.storage.close()


def build_services(
    config: Config | None = None,
    *,
    clock: Clock | None = None,
    storage: RowStore | None = None,
    provider: LLMProvider | None = None,
    perception: PerceptionSource | None = None,
) -> Services:
    """
    Construct the full service graph from configuration.

    Args:
        config: Settings; defaults are used when omitted.
        clock: Time source shared by every component.
        storage: Row store; a SQLite file at ``config.db_path`` when omitted.
        provider: Embedding/chat provider. Memory works without one.
        perception: Perception source; a static one when omitted.
    """
    config = config or Config()
    clock = clock or SystemClock()
    storage = storage or SQLiteRowStore(config.db_path)
    user_id = config.orchestrator.default_user_id

    goals = GoalStore(
        storage,
        clock,
        decay_rate=config.goals.decay_rate,
        default_ttl_hours=config.goals.default_ttl_hours,
    )
    memory = MemoryStore(
        storage,
        provider,
        clock,
        decay_rates=config.memory.decay_rates,
        reinforce_boosts=config.memory.reinforce_boosts,
        min_strength=config.memory.min_strength,
        dedup_threshold=config.memory.dedup_threshold,
        promote_to_working=config.memory.promote_to_working,
        promote_to_long_term=config.memory.promote_to_long_term,
    )
    preferences = PreferenceStore(storage, clock)

    registry = ExecutorRegistry()
    registry.register(MemoryExecutor(memory, default_user_id=user_id))
    registry.register(GoalExecutor(goals, default_user_id=user_id))

    ic = config.interruptions
    interruptions = InterruptionManager(
        InterruptionBudget(
            max_per_hour=ic.max_per_hour,
            max_per_minute=ic.max_per_minute,
            cooldown_ms=ic.cooldown_ms,
            urgency_bypass_threshold=ic.urgency_bypass_threshold,
        ),
        clock,
        focus_protection_minutes=ic.focus_protection_minutes,
        focus_urgency_threshold=ic.focus_urgency_threshold,
    )

    ac = config.autonomy
    patterns = ApprovalPatternCache(
        max_patterns=ac.pattern_cache_size,
        ttl=timedelta(hours=ac.pattern_ttl_hours),
        contexts_per_pattern=ac.contexts_per_pattern,
        min_approvals=ac.pattern_min_approvals,
        clock=clock,
    )

    return Services(
        config=config,
        clock=clock,
        storage=storage,
        registry=registry,
        goals=goals,
        memory=memory,
        preferences=preferences,
        interruptions=interruptions,
        snapshots=SnapshotManager(config.snapshots.max_snapshots, config.snapshots.max_changes, clock),
        simulator=ActionSimulator(registry),
        autonomy=AutonomyEngine(patterns, preferences),
        trust=TrustSignals(storage, clock),
        perception=perception or StaticPerceptionSource(clock),
    )
