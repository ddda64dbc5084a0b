"""Executor registry for dynamic tool dispatch."""

import time

from loguru import logger

from majordomo.executors.base import ExecutionResult, Executor, SimulationPreview, ToolCapability
from majordomo.params import Params


class ExecutorRegistry:
    """Maps tool names to the executor that owns them."""

    def __init__(self):
        self._executors: dict[str, Executor] = {}
        self._tool_to_executor: dict[str, str] = {}

    def register(self, executor: Executor) -> None:
        """Register an executor and every tool it declares."""
        self._executors[executor.id] = executor
        caps = executor.capabilities()
        for cap in caps:
            if cap.name in self._tool_to_executor and self._tool_to_executor[cap.name] != executor.id:
                logger.warning(f"Executors: {cap.name} re-bound from {self._tool_to_executor[cap.name]} to {executor.id}")
            self._tool_to_executor[cap.name] = executor.id
        logger.info(f"Executors: registered {executor.name} with {len(caps)} capabilities")

    def unregister(self, executor_id: str) -> None:
        self._executors.pop(executor_id, None)
        self._tool_to_executor = {t: e for t, e in self._tool_to_executor.items() if e != executor_id}

    def get_executor(self, tool_name: str) -> Executor | None:
        executor_id = self._tool_to_executor.get(tool_name)
        return self._executors.get(executor_id) if executor_id else None

    def get_capability(self, tool_name: str) -> ToolCapability | None:
        executor = self.get_executor(tool_name)
        return executor.capability(tool_name) if executor else None

    def all_capabilities(self) -> list[ToolCapability]:
        return [cap for executor in self._executors.values() for cap in executor.capabilities()]

    @property
    def tool_names(self) -> list[str]:
        return list(self._tool_to_executor.keys())

    def __contains__(self, tool_name: str) -> bool:
        return tool_name in self._tool_to_executor

    async def execute(self, tool_name: str, params: Params) -> ExecutionResult:
        """Validate and run a tool. Never raises; failures come back as results."""
        executor = self.get_executor(tool_name)
        if executor is None:
            return ExecutionResult.failure("NO_EXECUTOR", f"Tool '{tool_name}' is not registered", recoverable=False)

        validation = executor.validate(tool_name, params)
        if not validation.valid:
            return ExecutionResult.failure(
                "VALIDATION_FAILED",
                f"Validation failed: {', '.join(validation.errors)}",
                recoverable=True,
                executor=executor.id,
            )

        start = time.perf_counter()
        try:
            result = await executor.execute(tool_name, validation.sanitized_params or params)
        except Exception as e:
            logger.error(f"Executors: {tool_name} raised: {e}")
            result = ExecutionResult.failure("EXECUTION_ERROR", f"Error executing {tool_name}: {e}", executor=executor.id)

        result.duration_ms = (time.perf_counter() - start) * 1000
        result.executor = executor.id
        return result

    async def simulate(self, tool_name: str, params: Params) -> SimulationPreview:
        """Dry-run a tool. Executor failures become a warning, never an exception."""
        executor = self.get_executor(tool_name)
        if executor is None:
            return SimulationPreview(would_succeed=False, warnings=[f"No executor found for tool: {tool_name}"])

        cap = executor.capability(tool_name)
        if cap is None or not cap.supports_simulation:
            return SimulationPreview(would_succeed=False, warnings=[f"Tool '{tool_name}' does not support simulation"])

        try:
            return await executor.simulate(tool_name, params)
        except Exception as e:
            logger.warning(f"Executors: simulation of {tool_name} failed: {e}")
            return SimulationPreview(would_succeed=False, warnings=[f"Simulation failed: {e}"])
