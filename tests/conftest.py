"""Shared fixtures: a manual clock, a throwaway SQLite store and fake tools."""

import hashlib
import random

import pytest

from majordomo.executors.base import ExecutionResult, Executor, SimulationPreview, ToolCapability, make_side_effect
from majordomo.executors.registry import ExecutorRegistry
from majordomo.goals.store import GoalStore
from majordomo.memory.store import MemoryStore
from majordomo.params import Params
from majordomo.providers.base import LLMProvider
from majordomo.storage.sqlite import SQLiteRowStore
from majordomo.utils.clock import ManualClock


class FakeEmbedder(LLMProvider):
    """Deterministic pseudo-random vectors; ``vectors`` pins exact ones per text."""

    def __init__(self, vectors: dict[str, list[float]] | None = None, fail: bool = False):
        super().__init__()
        self.vectors = vectors or {}
        self.fail = fail
        self.calls: list[str] = []

    async def chat(self, messages, **options) -> str:
        return "ok"

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.fail:
            raise RuntimeError("embedding service down")
        if text in self.vectors:
            return self.vectors[text]
        seed = int(hashlib.sha256(text.encode()).hexdigest()[:8], 16)
        rng = random.Random(seed)
        return [rng.uniform(-1, 1) for _ in range(64)]

    async def health_check(self) -> bool:
        return not self.fail


class FakeHomeExecutor(Executor):
    """A handful of home-automation style tools with canned results."""

    id = "home"
    name = "Home"

    def __init__(self):
        self.executed: list[tuple[str, Params]] = []

    def capabilities(self) -> list[ToolCapability]:
        return [
            ToolCapability(name="getTime", risk_level="none", safety_level="safe", supports_simulation=True),
            ToolCapability(
                name="setTimer",
                schema={
                    "properties": {"durationSeconds": {"type": "integer", "minimum": 1}},
                    "required": ["durationSeconds"],
                },
                risk_level="low",
                supports_simulation=True,
                supports_auto_approval=True,
            ),
            ToolCapability(
                name="playMusic",
                schema={"properties": {"query": {"type": "string"}}},
                risk_level="low",
                supports_simulation=True,
                supports_auto_approval=True,
            ),
            ToolCapability(
                name="controlDevice",
                schema={
                    "properties": {
                        "entityId": {"type": "string"},
                        "action": {"type": "string", "enum": ["on", "off"]},
                    },
                    "required": ["entityId", "action"],
                },
                risk_level="medium",
                supports_simulation=True,
                supports_auto_approval=True,
            ),
            ToolCapability(
                name="wipeDisk",
                risk_level="critical",
                reversible=False,
                blast_radius="local",
                supports_simulation=True,
            ),
            ToolCapability(name="explode", risk_level="none", safety_level="safe"),
        ]

    async def simulate(self, action: str, params: Params) -> SimulationPreview:
        validation = self.validate(action, params)
        if not validation.valid:
            return SimulationPreview(would_succeed=False, warnings=validation.errors)
        if action == "controlDevice":
            return SimulationPreview(
                would_succeed=True,
                predicted_side_effects=[make_side_effect(
                    "device_control", str(params["entityId"]), f"Turn {params['action']} {params['entityId']}",
                )],
            )
        if action == "wipeDisk":
            return SimulationPreview(
                would_succeed=True,
                predicted_side_effects=[make_side_effect("file_delete", "/", "Delete everything", reversible=False)],
            )
        return SimulationPreview(would_succeed=True)

    async def execute(self, action: str, params: Params) -> ExecutionResult:
        self.executed.append((action, params))
        if action == "explode":
            raise RuntimeError("kaboom")
        if action == "getTime":
            return ExecutionResult(success=True, output="12:00", message="It is noon")
        return ExecutionResult(
            success=True,
            output={"action": action},
            message=f"Did {action}",
            side_effects=[make_side_effect("state_change", action, f"Ran {action}")],
        )


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def storage(tmp_path):
    store = SQLiteRowStore(tmp_path / "majordomo.db")
    yield store
    store.close()


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def memory(storage, clock):
    return MemoryStore(storage, None, clock)


@pytest.fixture
def goals(storage, clock):
    return GoalStore(storage, clock)


@pytest.fixture
def home():
    return FakeHomeExecutor()


@pytest.fixture
def registry(home):
    reg = ExecutorRegistry()
    reg.register(home)
    return reg
