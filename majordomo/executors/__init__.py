"""Executor contract and registry."""

from majordomo.executors.base import (
    ExecutionError,
    ExecutionResult,
    Executor,
    SideEffect,
    SimulationPreview,
    ToolCapability,
    ValidationResult,
    make_side_effect,
)
from majordomo.executors.registry import ExecutorRegistry

__all__ = [
    "ExecutionError",
    "ExecutionResult",
    "Executor",
    "ExecutorRegistry",
    "SideEffect",
    "SimulationPreview",
    "ToolCapability",
    "ValidationResult",
    "make_side_effect",
]
