"""Configuration schema using Pydantic."""

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class OrchestratorConfig(BaseModel):
    """Loop cadences and defaults for the orchestrator."""
    perception_interval_ms: int = Field(default=500, ge=10, description="Perception tick cadence")
    cognition_interval_ms: int = Field(default=1000, ge=10, description="Cognition tick cadence")
    action_interval_ms: int = Field(default=100, ge=10, description="Action tick cadence")
    heartbeat_interval_s: float = Field(default=5.0, gt=0, description="Seconds between heartbeat events")
    default_user_id: str = "default"
    proactive_priority: int = Field(default=5, ge=1, le=10)


class MemoryConfig(BaseModel):
    """Memory decay, reinforcement and de-duplication."""
    decay_rates: dict[str, float] = Field(
        default_factory=lambda: {"ephemeral": 0.2, "working": 0.05, "long_term": 0.002, "permanent": 0.0}
    )
    reinforce_boosts: dict[str, float] = Field(
        default_factory=lambda: {"ephemeral": 0.3, "working": 0.2, "long_term": 0.1, "permanent": 0.0}
    )
    min_strength: float = Field(default=0.1, ge=0.0, le=1.0, description="Prune threshold")
    dedup_threshold: float = Field(default=0.95, ge=0.0, le=1.0, description="Cosine similarity treated as duplicate")
    promote_to_working: int = Field(default=5, ge=1, description="Reinforcements before ephemeral -> working")
    promote_to_long_term: int = Field(default=10, ge=1, description="Reinforcements before working -> long_term")
    recall_limit: int = Field(default=10, ge=1, le=1000)


class GoalConfig(BaseModel):
    """Goal attention decay."""
    decay_rate: float = Field(default=0.05, ge=0.0, le=1.0, description="Attention lost per hour without interaction")
    default_ttl_hours: float = Field(default=168, gt=0)
    attention_threshold: float = Field(default=0.3, ge=0.0, le=1.0)


class InterruptionConfig(BaseModel):
    """Interruption budget."""
    max_per_hour: int = Field(default=10, ge=0)
    max_per_minute: int = Field(default=2, ge=0)
    cooldown_ms: int = Field(default=30_000, ge=0)
    urgency_bypass_threshold: int = Field(default=9, ge=1, le=10)
    focus_protection_minutes: float = Field(default=15, ge=0)
    focus_urgency_threshold: int = Field(default=7, ge=1, le=10)


class SnapshotConfig(BaseModel):
    """Snapshot retention."""
    max_snapshots: int = Field(default=100, ge=1)
    max_changes: int = Field(default=500, ge=1)


class AutonomyConfig(BaseModel):
    """Learned approval pattern bounds."""
    pattern_min_approvals: int = Field(default=3, ge=1)
    pattern_cache_size: int = Field(default=512, ge=1, description="Max distinct patterns kept (LRU)")
    pattern_ttl_hours: float = Field(default=720, gt=0, description="Patterns unused this long are dropped")
    contexts_per_pattern: int = Field(default=10, ge=1)


class StorageConfig(BaseModel):
    """Durable row store."""
    db_path: str = "~/.majordomo/majordomo.db"


class ProviderConfig(BaseModel):
    """LLM provider configuration."""
    model_config = ConfigDict(extra="ignore")

    model: str = "anthropic/claude-opus-4-5"
    embedding_model: str = "text-embedding-3-small"
    api_key: str = ""
    api_base: str | None = None
    timeout_s: float = Field(default=30.0, gt=0)


class Config(BaseSettings):
    """Root configuration for majordomo."""
    model_config = SettingsConfigDict(env_prefix="MAJORDOMO_", env_nested_delimiter="__")

    orchestrator: OrchestratorConfig = Field(default_factory=OrchestratorConfig)
    memory: MemoryConfig = Field(default_factory=MemoryConfig)
    goals: GoalConfig = Field(default_factory=GoalConfig)
    interruptions: InterruptionConfig = Field(default_factory=InterruptionConfig)
    snapshots: SnapshotConfig = Field(default_factory=SnapshotConfig)
    autonomy: AutonomyConfig = Field(default_factory=AutonomyConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    provider: ProviderConfig = Field(default_factory=ProviderConfig)

    @property
    def db_path(self) -> Path:
        """Get expanded database path."""
        return Path(self.storage.db_path).expanduser()
