"""Scheduling algorithms and solvers."""

from opsplanner.scheduling.cpsat_solver import CPSATSolver, SolverResult
from opsplanner.scheduling.engine import (
    GenerationMode,
    GenerationResult,
    GenerationStatus,
    ScheduleEngine,
    generate_schedule,
    validate_schedule,
)
from opsplanner.scheduling.explorer import (
    ExplorationResult,
    GridPoint,
    MultiObjectiveExplorer,
)
from opsplanner.scheduling.greedy import (
    ConstructionResult,
    EnforcementResult,
    GreedyConstructor,
)
from opsplanner.scheduling.objectives import (
    dominates,
    evaluate,
    explain_tradeoff,
    pareto_front,
    select_diverse,
)
from opsplanner.scheduling.scorer import AssignmentScorer, WeekContext, tie_break
from opsplanner.scheduling.tabu import RefinementResult, StopReason, TabuSearchRefiner

__all__ = [
    # Engine
    "GenerationMode",
    "GenerationResult",
    "GenerationStatus",
    "ScheduleEngine",
    "generate_schedule",
    "validate_schedule",
    # Scoring
    "AssignmentScorer",
    "WeekContext",
    "tie_break",
    # Construction
    "ConstructionResult",
    "EnforcementResult",
    "GreedyConstructor",
    # Refinement
    "RefinementResult",
    "StopReason",
    "TabuSearchRefiner",
    # Exploration
    "ExplorationResult",
    "GridPoint",
    "MultiObjectiveExplorer",
    "dominates",
    "evaluate",
    "explain_tradeoff",
    "pareto_front",
    "select_diverse",
    # Max coverage
    "CPSATSolver",
    "SolverResult",
]
