"""OR-Tools CP-SAT solver for the max-coverage generation mode.

Formulates the weekly assignment as a 0/1 program that fills as many
required slots as possible, then prefers higher-scoring assignments and a
flatter per-operator load.
"""

from dataclasses import dataclass
from typing import Optional

from ortools.sat.python import cp_model

from opsplanner.config import SolverConfig
from opsplanner.domain.models import (
    WEEKDAYS,
    Domain,
    SchedulingRules,
    Weekday,
    WeeklySchedule,
)
from opsplanner.logging_config import get_logger
from opsplanner.scheduling.greedy import GreedyConstructor
from opsplanner.scheduling.scorer import AssignmentScorer, WeekContext

logger = get_logger(__name__)


@dataclass
class SolverResult:
    """Result from the CP-SAT solver.

    Attributes:
        schedule: The generated schedule (None if no solution was found).
        status: Solver status (OPTIMAL, FEASIBLE, etc.).
        objective_value: Final objective value.
        solve_time_seconds: Time taken to solve.
        num_branches: Number of branches explored.
        num_conflicts: Number of conflicts encountered.
        num_variables: Number of assignment variables in the model.
        used_fallback: Whether the greedy constructor produced the schedule.
    """

    schedule: Optional[WeeklySchedule]
    status: str
    objective_value: int = 0
    solve_time_seconds: float = 0.0
    num_branches: int = 0
    num_conflicts: int = 0
    num_variables: int = 0
    used_fallback: bool = False

    @property
    def is_optimal(self) -> bool:
        return self.status == "OPTIMAL"

    @property
    def is_feasible(self) -> bool:
        return self.status in ("OPTIMAL", "FEASIBLE")


class CPSATSolver:
    """Constraint programming solver using OR-Tools CP-SAT.

    Decision variable x[o, d, t] = 1 if operator o does task t on day d.
    Only hard-eligible triples get a variable, so availability, skill and
    Coordinator restrictions hold by construction.
    """

    def __init__(self, config: Optional[SolverConfig] = None):
        self.config = config or SolverConfig()

    def solve(
        self,
        domain: Domain,
        rules: SchedulingRules,
        seed: int = 0,
    ) -> SolverResult:
        """Solve the max-coverage problem.

        Args:
            domain: The domain. Locked assignments are kept as constants.
            rules: Rules in force.
            seed: Seed for the static assignment scores and the solver.

        Returns:
            SolverResult with schedule and solver statistics.
        """
        config = self.config
        scorer = AssignmentScorer(domain, rules, seed)
        base = domain.locked_schedule()
        ctx = WeekContext.build(base, domain)
        model = cp_model.CpModel()

        x: dict[tuple[str, Weekday, str], cp_model.IntVar] = {}
        coefficients: dict[tuple[str, Weekday, str], int] = {}
        for day in WEEKDAYS:
            for op in domain.operators:
                if base.is_locked(op.id, day):
                    continue
                for task in domain.tasks:
                    if domain.required(task.id, day) <= 0:
                        continue
                    if not scorer.can_place(op, task, day):
                        continue
                    if not domain.is_type_compatible(op, task, day):
                        continue
                    key = (op.id, day, task.id)
                    x[key] = model.NewBoolVar(f"x_{op.id}_{day.value}_{task.id}")
                    fallback = not domain.is_exact_type(op, task, day)
                    score = scorer.score(op, task, day, base, fallback, ctx)
                    coefficients[key] = int(round(score * config.score_scale))

        by_operator_day: dict[tuple[str, Weekday], list] = {}
        by_task_day: dict[tuple[str, Weekday], list] = {}
        by_operator: dict[str, list] = {}
        for (operator_id, day, task_id), var in x.items():
            by_operator_day.setdefault((operator_id, day), []).append(var)
            by_task_day.setdefault((task_id, day), []).append(var)
            by_operator.setdefault(operator_id, []).append(var)

        # Constraint 1: at most one task per operator per day
        for own in by_operator_day.values():
            if len(own) > 1:
                model.AddAtMostOne(own)

        # Constraint 2: never exceed the requirement (locked slots count first)
        for (task_id, day), own in by_task_day.items():
            room = max(0, domain.required(task_id, day) - base.count(task_id, day))
            model.Add(sum(own) <= room)

        # Constraint 3: no same-task run longer than the maximum
        window = rules.max_consecutive_days_same_task + 1
        if window <= len(WEEKDAYS):
            for op in domain.operators:
                if op.is_rotation_exempt:
                    continue
                for task in domain.tasks:
                    for start in range(len(WEEKDAYS) - window + 1):
                        days = WEEKDAYS[start:start + window]
                        own = [x[(op.id, d, task.id)] for d in days if (op.id, d, task.id) in x]
                        if not own:
                            continue
                        fixed = sum(1 for d in days if base.task_of(op.id, d) == task.id)
                        limit = rules.max_consecutive_days_same_task - fixed
                        if limit >= 0:
                            model.Add(sum(own) <= limit)

        # Fairness: bound the heaviest weekly load
        max_load = model.NewIntVar(0, len(WEEKDAYS), "max_load")
        for operator_id, own in by_operator.items():
            locked_days = len(base.operator_tasks(operator_id))
            model.Add(sum(own) + locked_days <= max_load)

        objective_terms = [config.coverage_weight * var for var in x.values()]
        objective_terms += [coefficients[key] * var for key, var in x.items()]
        if config.fairness_weight > 0:
            objective_terms.append(-config.fairness_weight * max_load)
        if objective_terms:
            model.Maximize(sum(objective_terms))

        solver = cp_model.CpSolver()
        solver.parameters.max_time_in_seconds = config.time_limit_seconds
        solver.parameters.random_seed = seed % (2**31)
        if config.num_workers > 0:
            solver.parameters.num_workers = config.num_workers

        status = solver.Solve(model)

        status_map = {
            cp_model.OPTIMAL: "OPTIMAL",
            cp_model.FEASIBLE: "FEASIBLE",
            cp_model.INFEASIBLE: "INFEASIBLE",
            cp_model.MODEL_INVALID: "MODEL_INVALID",
            cp_model.UNKNOWN: "UNKNOWN",
        }
        status_str = status_map.get(status, "UNKNOWN")
        logger.info("CP-SAT finished with status %s over %d variables", status_str, len(x))

        if status not in (cp_model.OPTIMAL, cp_model.FEASIBLE):
            return SolverResult(
                schedule=None,
                status=status_str,
                solve_time_seconds=solver.WallTime(),
                num_variables=len(x),
            )

        schedule = base.copy()
        for (operator_id, day, task_id), var in sorted(
            x.items(), key=lambda item: (item[0][1].index, item[0][0], item[0][2])
        ):
            if solver.Value(var) == 1:
                schedule.assign(operator_id, day, task_id)

        return SolverResult(
            schedule=schedule,
            status=status_str,
            objective_value=int(solver.ObjectiveValue()),
            solve_time_seconds=solver.WallTime(),
            num_branches=solver.NumBranches(),
            num_conflicts=solver.NumConflicts(),
            num_variables=len(x),
        )

    def solve_with_fallback(
        self,
        domain: Domain,
        rules: SchedulingRules,
        seed: int = 0,
    ) -> SolverResult:
        """Solve with fallback to the greedy constructor if CP-SAT fails.

        Returns:
            SolverResult whose schedule is always set; used_fallback tells
            which algorithm produced it.
        """
        result = self.solve(domain, rules, seed)

        if result.is_feasible and result.schedule is not None:
            return result

        logger.warning("CP-SAT status %s; falling back to greedy construction", result.status)
        construction = GreedyConstructor().construct(domain, rules, seed)
        result.schedule = construction.schedule
        result.used_fallback = True
        return result
