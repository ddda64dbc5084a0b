"""Pre-execution dry runs."""

from majordomo.simulation.models import Recommendation, SimulationReport, SimulationResult
from majordomo.simulation.simulator import ActionSimulator, format_simulation_for_user

__all__ = [
    "ActionSimulator",
    "Recommendation",
    "SimulationReport",
    "SimulationResult",
    "format_simulation_for_user",
]
