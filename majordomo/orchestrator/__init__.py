"""Orchestrator: lifecycle, loops and intent governance."""

from majordomo.orchestrator.context import Services, build_services
from majordomo.orchestrator.models import ActionOutcome, Intent, OrchestratorState, PendingConfirmation
from majordomo.orchestrator.queue import IntentQueue
from majordomo.orchestrator.scheduler import IntervalTicker, LoopHealth, ManualTicker, PeriodicLoop, Ticker
from majordomo.orchestrator.service import Orchestrator

__all__ = [
    "ActionOutcome",
    "Intent",
    "IntentQueue",
    "IntervalTicker",
    "LoopHealth",
    "ManualTicker",
    "Orchestrator",
    "OrchestratorState",
    "PendingConfirmation",
    "PeriodicLoop",
    "Services",
    "Ticker",
    "build_services",
]
