"""Diagnostics: invariant checklist and tournament simulator."""

from .checklist import ChecklistIssue, run_checklist
from .simulator import SimulationResult, TournamentSimulator

__all__ = ["ChecklistIssue", "run_checklist", "SimulationResult", "TournamentSimulator"]
