"""Action simulator: predict what an action would do before doing it."""

import re
import time
from typing import Any

from loguru import logger

from majordomo.executors.base import SideEffect, SimulationPreview, ToolCapability
from majordomo.executors.registry import ExecutorRegistry
from majordomo.params import Params, canonical_json
from majordomo.preferences.models import RISK_ORDER
from majordomo.simulation.models import (
    DurationEstimate,
    Recommendation,
    Reversibility,
    RiskAssessment,
    SimulationReport,
    SimulationResult,
)
from majordomo.snapshots.diff import ChangeType, StateDiff

_INSTANT = {"getTime", "getDate", "getMode"}
_DESTRUCTIVE_PARAM_PATTERNS = ("delete", "remove all")
_DATA_LOSS_WORDS = ("delete", "remove", "clear")

_DIFF_PREFIXES: list[tuple[tuple[str, ...], ChangeType]] = [
    (("set", "update"), ChangeType.MODIFIED),
    (("create", "add"), ChangeType.ADDED),
    (("delete", "remove"), ChangeType.REMOVED),
]
_CAMEL = re.compile(r"([A-Z])")


def escalate(level: str) -> str:
    """One step up the risk ladder, saturating at critical."""
    return RISK_ORDER[min(RISK_ORDER.index(level) + 1, len(RISK_ORDER) - 1)]


class ActionSimulator:
    """
    Dry-runs actions through their executors and scores the risk.

    Never raises: unknown actions get an abort report and executor
    failures become warnings.
    """

    def __init__(self, registry: ExecutorRegistry):
        self.registry = registry

    async def simulate(self, action: str, params: Params, current_state: dict[str, Any] | None = None) -> SimulationReport:
        start = time.perf_counter()
        capability = self.registry.get_capability(action)
        executor = self.registry.get_executor(action)
        if capability is None or executor is None:
            logger.warning(f"Simulator: unknown action {action}")
            return self._unknown_action_report(action, params)

        preview = SimulationPreview(would_succeed=True)
        if capability.supports_simulation:
            try:
                preview = await executor.simulate(action, params)
            except Exception as e:
                logger.warning(f"Simulator: {action} simulation raised: {e}")
                preview = SimulationPreview(would_succeed=False, warnings=[f"Simulation error: {e}"])

        result = SimulationResult(
            would_succeed=preview.would_succeed,
            predicted_output=preview.predicted_output,
            predicted_effects=preview.predicted_side_effects,
            state_diffs=predict_state_diffs(action, params, current_state),
            warnings=list(preview.warnings),
            risk=analyze_risk(capability, params, preview.warnings),
            reversibility=analyze_reversibility(capability, preview.predicted_side_effects),
            estimated_duration=estimate_duration(action, capability),
            confidence=calculate_confidence(capability, preview.warnings),
        )
        report = build_report(action, params, result)
        logger.info(
            f"Simulator: {action} -> {report.recommendation.value} "
            f"(risk {result.risk.level}, {(time.perf_counter() - start) * 1000:.1f}ms)"
        )
        return report

    async def simulate_batch(self, actions: list[tuple[str, Params]]) -> list[SimulationReport]:
        return [await self.simulate(action, params) for action, params in actions]

    @staticmethod
    def _unknown_action_report(action: str, params: Params) -> SimulationReport:
        return SimulationReport(
            action=action,
            params=params,
            simulation=SimulationResult(
                would_succeed=False,
                predicted_output=None,
                predicted_effects=[],
                state_diffs=[],
                warnings=[f"Unknown action: {action}"],
                risk=RiskAssessment(
                    level="high",
                    factors=["Unknown action cannot be simulated"],
                    mitigations=["Verify the action name is correct"],
                ),
                reversibility=Reversibility(reversible=False),
                estimated_duration=DurationEstimate(0, 0),
                confidence=0.0,
            ),
            summary=f'I don\'t recognize the action "{action}". Please verify this is a valid command.',
            explanation=["This action is not registered in my capabilities."],
            recommendation=Recommendation.ABORT,
            questions=["Did you mean a different action?"],
        )


def analyze_risk(capability: ToolCapability, params: Params, warnings: list[str]) -> RiskAssessment:
    level: str = capability.risk_level
    factors: list[str] = []
    mitigations: list[str] = []

    if capability.external_impact:
        factors.append("Affects external systems")
        mitigations.append("Verify external system state first")

    if capability.blast_radius == "network":
        factors.append("May affect multiple network devices")
        mitigations.append("Consider limiting scope")
    elif capability.blast_radius == "external":
        factors.append("Affects systems outside your control")
        level = escalate(level)

    if not capability.reversible:
        factors.append("Cannot be undone")
        mitigations.append("Double-check parameters before proceeding")

    factors.extend(warnings)

    serialized = canonical_json(params).lower()
    if any(p in serialized for p in _DESTRUCTIVE_PARAM_PATTERNS):
        factors.append("Destructive operation detected")
        level = escalate(level)

    return RiskAssessment(level=level, factors=factors, mitigations=mitigations)


def analyze_reversibility(capability: ToolCapability, effects: list[SideEffect]) -> Reversibility:
    irreversible = [e for e in effects if not e.reversible]
    reversible = capability.reversible and not irreversible

    rollback = None
    if reversible:
        methods = [e.rollback_action for e in effects if e.rollback_action]
        rollback = ", ".join(methods) or None

    data_loss = any(w in e.description.lower() for e in irreversible for w in _DATA_LOSS_WORDS)
    return Reversibility(reversible=reversible, data_loss=data_loss, rollback_method=rollback)


def predict_state_diffs(action: str, params: Params, current_state: dict[str, Any] | None = None) -> list[StateDiff]:
    """Guess the state change from the action's verb. Best effort only."""
    state = current_state or {}
    for prefixes, change in _DIFF_PREFIXES:
        prefix = next((p for p in prefixes if action.startswith(p)), None)
        if prefix is None:
            continue
        subject = action[len(prefix):].lower() or action.lower()
        if change == ChangeType.MODIFIED:
            return [
                StateDiff((subject, key), state.get(key, "unknown"), value, ChangeType.MODIFIED)
                for key, value in params.items()
            ]
        if change == ChangeType.ADDED:
            return [StateDiff((subject,), None, dict(params), ChangeType.ADDED)]
        return [StateDiff((subject,), "existing item", None, ChangeType.REMOVED)]
    return []


def estimate_duration(action: str, capability: ToolCapability) -> DurationEstimate:
    lowered = action.lower()
    if action in _INSTANT:
        return DurationEstimate(1, 10)
    if "get" in lowered or "list" in lowered:
        return DurationEstimate(10, 100)
    if capability.external_impact or capability.blast_radius != "local":
        return DurationEstimate(100, 2000)
    return DurationEstimate(50, 500)


def calculate_confidence(capability: ToolCapability, warnings: list[str]) -> float:
    confidence = 0.8
    if capability.supports_simulation:
        confidence += 0.1
    confidence -= 0.1 * len(warnings)
    if capability.external_impact:
        confidence -= 0.15
    if not capability.reversible:
        confidence -= 0.1
    return max(0.1, min(1.0, round(confidence, 4)))


def recommend(result: SimulationResult) -> tuple[Recommendation, list[str]]:
    questions: list[str] = []
    level = result.risk.level

    if level == "critical":
        return Recommendation.ABORT, ["Are you absolutely sure you want to proceed with this high-risk action?"]

    if level == "high":
        recommendation = Recommendation.RECONSIDER
        questions.append("This is a high-risk action. Can you confirm the parameters are correct?")
    elif level == "medium" or not result.reversibility.reversible:
        recommendation = Recommendation.CAUTION
    else:
        recommendation = Recommendation.PROCEED

    if not result.would_succeed:
        recommendation = Recommendation.RECONSIDER
        questions.append("The simulation suggests this may fail. Would you like to try different parameters?")

    return recommendation, questions


def build_report(action: str, params: Params, result: SimulationResult) -> SimulationReport:
    explanation = ["This action should succeed." if result.would_succeed else "This action may fail."]
    if result.predicted_effects:
        explanation.append("Effects: " + "; ".join(e.description for e in result.predicted_effects))
    if result.risk.factors:
        explanation.append("Risk factors: " + ", ".join(result.risk.factors))
    if result.reversibility.reversible:
        via = f" via {result.reversibility.rollback_method}" if result.reversibility.rollback_method else ""
        explanation.append(f"This can be undone{via}.")
    else:
        explanation.append("⚠️ This cannot be undone.")
    if result.reversibility.data_loss:
        explanation.append("⚠️ This may result in data loss.")

    recommendation, questions = recommend(result)
    return SimulationReport(
        action=action,
        params=params,
        simulation=result,
        summary=build_summary(action, params, result, recommendation),
        explanation=explanation,
        recommendation=recommendation,
        questions=questions,
    )


_CLOSING = {
    Recommendation.PROCEED: "Ready to proceed when you are.",
    Recommendation.CAUTION: "Please confirm you'd like to proceed.",
    Recommendation.RECONSIDER: "I'd recommend reconsidering this action.",
    Recommendation.ABORT: "I strongly advise against this action.",
}


def build_summary(action: str, params: Params, result: SimulationResult, recommendation: Recommendation) -> str:
    parts = [f"I'm about to {humanize_action(action, params)}."]
    if result.predicted_effects:
        parts.append("This will " + " and ".join(e.description.lower() for e in result.predicted_effects) + ".")
    if result.risk.level not in ("none", "low"):
        parts.append(f"Risk level: {result.risk.level}.")
    if not result.reversibility.reversible:
        parts.append("Note: This action cannot be undone.")
    parts.append(_CLOSING[recommendation])
    return " ".join(parts)


def humanize_action(action: str, params: Params) -> str:
    """``setVolume`` + params -> ``set volume (volume: 30)``."""
    words = _CAMEL.sub(r" \1", action).lower().strip()
    shown = ", ".join(f"{k}: {canonical_json(v)[:30]}" for k, v in list(params.items())[:3])
    return f"{words} ({shown})" if shown else words


def format_simulation_for_user(report: SimulationReport) -> str:
    lines = ["**Simulation Preview**", "", report.summary, ""]

    if report.simulation.predicted_effects:
        lines.append("**What will happen:**")
        for effect in report.simulation.predicted_effects:
            icon = "↩️" if effect.reversible else "⚠️"
            lines.append(f"{icon} {effect.description}")
        lines.append("")

    if report.simulation.risk.factors:
        lines.append("**Risk factors:**")
        lines.extend(f"• {factor}" for factor in report.simulation.risk.factors)
        lines.append("")

    lines.extend(f"❓ {q}" for q in report.questions)
    return "\n".join(lines)
