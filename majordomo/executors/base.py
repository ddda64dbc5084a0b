"""Executor contract: capability metadata, results and the executor base class."""

from abc import ABC, abstractmethod
from typing import Any, Literal

from pydantic import BaseModel, Field

from majordomo.params import Params, ParamValue, validate_against_schema

RiskLevel = Literal["none", "low", "medium", "high", "critical"]
BlastRadius = Literal["local", "network", "external"]
SafetyLevel = Literal["safe", "low_risk", "medium", "high_risk", "critical"]
Severity = Literal["trivial", "minor", "moderate", "major", "critical"]

_SEVERITY_BY_TYPE: dict[str, Severity] = {
    "notification": "trivial",
    "audio_played": "trivial",
    "ui_displayed": "trivial",
    "file_read": "trivial",
    "state_change": "minor",
    "timer_created": "minor",
    "timer_cancelled": "minor",
    "reminder_set": "minor",
    "data_created": "minor",
    "data_modified": "moderate",
    "api_call": "moderate",
    "network_request": "moderate",
    "file_write": "moderate",
    "device_control": "major",
    "service_invoked": "major",
    "process_spawn": "major",
    "data_deleted": "major",
    "file_delete": "critical",
    "process_kill": "critical",
}


class ToolCapability(BaseModel):
    """Static metadata describing what a tool can do and how dangerous it is."""

    name: str
    description: str = ""
    schema_: dict[str, Any] = Field(default_factory=dict, alias="schema")
    risk_level: RiskLevel = Field("medium", alias="riskLevel")
    reversible: bool = True
    external_impact: bool = Field(False, alias="externalImpact")
    blast_radius: BlastRadius = Field("local", alias="blastRadius")
    supports_simulation: bool = Field(False, alias="supportsSimulation")
    supports_auto_approval: bool = Field(False, alias="supportsAutoApproval")
    safety_level: SafetyLevel | None = Field(None, alias="safetyLevel")
    required_permissions: list[str] = Field(default_factory=list, alias="requiredPermissions")

    model_config = {"populate_by_name": True}


class SideEffect(BaseModel):
    type: str
    target: str
    description: str
    reversible: bool = True
    rollback_action: str | None = Field(None, alias="rollbackAction")
    severity: Severity = "minor"
    details: dict[str, Any] = Field(default_factory=dict)

    model_config = {"populate_by_name": True}


class ExecutionError(BaseModel):
    code: str
    message: str
    recoverable: bool = True


class ExecutionResult(BaseModel):
    success: bool
    output: ParamValue = None
    message: str = ""
    side_effects: list[SideEffect] = Field(default_factory=list, alias="sideEffects")
    error: ExecutionError | None = None
    duration_ms: float = Field(0.0, alias="durationMs")
    executor: str = "none"

    model_config = {"populate_by_name": True}

    @classmethod
    def failure(cls, code: str, message: str, recoverable: bool = True, executor: str = "none") -> "ExecutionResult":
        return cls(
            success=False,
            message=message,
            error=ExecutionError(code=code, message=message, recoverable=recoverable),
            executor=executor,
        )


class SimulationPreview(BaseModel):
    would_succeed: bool = Field(alias="wouldSucceed")
    predicted_output: ParamValue = Field(None, alias="predictedOutput")
    predicted_side_effects: list[SideEffect] = Field(default_factory=list, alias="predictedSideEffects")
    warnings: list[str] = Field(default_factory=list)

    model_config = {"populate_by_name": True}


class ValidationResult(BaseModel):
    valid: bool
    errors: list[str] = Field(default_factory=list)
    sanitized_params: Params | None = None


def make_side_effect(
    type: str,
    target: str,
    description: str,
    *,
    reversible: bool = True,
    rollback_action: str | None = None,
    severity: Severity | None = None,
    details: dict[str, Any] | None = None,
) -> SideEffect:
    """Build a side effect, inferring severity from its type when not given."""
    return SideEffect(
        type=type,
        target=target,
        description=description,
        reversible=reversible,
        rollback_action=rollback_action,
        severity=severity or _SEVERITY_BY_TYPE.get(type, "minor"),
        details=details or {},
    )


class Executor(ABC):
    """
    Runs a family of tools.

    Subclasses declare capabilities and implement ``execute``. Validation
    defaults to checking params against each capability's JSON schema.
    """

    id: str = "executor"
    name: str = "Executor"

    @abstractmethod
    def capabilities(self) -> list[ToolCapability]:
        """Capabilities this executor provides."""

    @abstractmethod
    async def execute(self, action: str, params: Params) -> ExecutionResult:
        """Run the action for real."""

    def capability(self, action: str) -> ToolCapability | None:
        return next((c for c in self.capabilities() if c.name == action), None)

    def can_execute(self, action: str) -> bool:
        return self.capability(action) is not None

    def validate(self, action: str, params: Params) -> ValidationResult:
        cap = self.capability(action)
        if cap is None:
            return ValidationResult(valid=False, errors=[f"Unknown action: {action}"])
        errors = validate_against_schema(params, cap.schema_)
        return ValidationResult(valid=not errors, errors=errors, sanitized_params=params if not errors else None)

    async def simulate(self, action: str, params: Params) -> SimulationPreview:
        """Predict the outcome without side effects. Default: validation only."""
        validation = self.validate(action, params)
        return SimulationPreview(
            would_succeed=validation.valid,
            warnings=validation.errors,
        )

    async def rollback(self, action: str, params: Params) -> ExecutionResult:
        return ExecutionResult.failure(
            "ROLLBACK_UNSUPPORTED", f"{self.name} cannot roll back {action}", executor=self.id,
        )
