"""Main scheduling interface.

This module provides the entry points that orchestrate domain checks,
construction, refinement, exploration and validation.

Callers own the write-back: the returned schedule is a complete
replacement for every non-locked slot of the week, and a caller that
persists schedules must clear the old non-locked assignments before
applying it.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional, Union

from opsplanner.config import GenerationConfig
from opsplanner.domain.checks import ConfigurationIssue, check_domain
from opsplanner.domain.models import (
    Assignment,
    Domain,
    ScoredCandidate,
    SchedulingRules,
    WeeklySchedule,
)
from opsplanner.logging_config import get_logger
from opsplanner.scheduling.cpsat_solver import CPSATSolver
from opsplanner.scheduling.explorer import MultiObjectiveExplorer
from opsplanner.scheduling.greedy import GreedyConstructor
from opsplanner.scheduling.objectives import coverage_rate, fairness_score
from opsplanner.scheduling.tabu import TabuSearchRefiner
from opsplanner.validation.validator import Diagnostic, ScheduleValidator

logger = get_logger(__name__)


class GenerationMode(Enum):
    """Algorithm used to generate a schedule."""

    GREEDY = "greedy"
    GREEDY_TABU = "greedy+tabu"
    MULTI_OBJECTIVE = "multi-objective"
    MAX_COVERAGE = "max-coverage"


class GenerationStatus(Enum):
    """Outcome of a generation request."""

    OK = "ok"
    CONFIG_ERROR = "config_error"


@dataclass
class GenerationResult:
    """Result of a generation request.

    Attributes:
        status: OK, or CONFIG_ERROR when the domain or rules are malformed.
        mode: Mode that was requested.
        schedule: The schedule (greedy, greedy+tabu and max-coverage modes).
        candidates: Ranked alternatives (multi-objective mode).
        diagnostics: Validator output for the schedule, or for the top
            candidate in multi-objective mode.
        configuration_issues: Why generation was aborted.
        trace: Execution details. Not semantically load-bearing.
    """

    status: GenerationStatus
    mode: GenerationMode
    schedule: Optional[WeeklySchedule] = None
    candidates: list[ScoredCandidate] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)
    configuration_issues: list[ConfigurationIssue] = field(default_factory=list)
    trace: dict = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == GenerationStatus.OK


class ScheduleEngine:
    """High-level scheduler for generating weekly schedules.

    Example:
        >>> engine = ScheduleEngine()
        >>> result = engine.generate(domain, SchedulingRules(), "greedy+tabu", seed=3)
        >>> for diagnostic in result.diagnostics:
        ...     print(diagnostic)
    """

    def __init__(self, config: Optional[GenerationConfig] = None):
        """Initialize the engine.

        Args:
            config: Tabu, exploration and solver settings. The rules in the
                config are used when generate() is called without rules.
        """
        self.config = config or GenerationConfig()
        self.constructor = GreedyConstructor()
        self.refiner = TabuSearchRefiner(self.config.tabu)
        self.explorer = MultiObjectiveExplorer(self.config.exploration, self.config.tabu)
        self.solver = CPSATSolver(self.config.solver)

    def generate(
        self,
        domain: Domain,
        rules: Optional[SchedulingRules] = None,
        mode: Union[GenerationMode, str] = GenerationMode.GREEDY,
        seed: int = 0,
    ) -> GenerationResult:
        """Generate a schedule (or candidates) for the domain.

        Args:
            domain: Operators, tasks, requirements and locked assignments.
            rules: Rules in force. Defaults to the configured rules.
            mode: Generation mode.
            seed: Seed threaded through all scoring.

        Returns:
            GenerationResult. Malformed input yields status CONFIG_ERROR
            and no schedule; infeasible staffing yields diagnostics.

        Raises:
            ValueError: If mode is not a known generation mode.
        """
        mode = GenerationMode(mode)
        rules = rules or self.config.rules
        started = time.perf_counter()

        issues = check_domain(domain, rules)
        if issues:
            logger.error("Generation aborted: %d configuration issue(s)", len(issues))
            for issue in issues:
                logger.debug("%s", issue)
            return GenerationResult(
                status=GenerationStatus.CONFIG_ERROR,
                mode=mode,
                configuration_issues=issues,
            )

        validator = ScheduleValidator()
        trace: dict = {"seed": seed}

        if mode == GenerationMode.MULTI_OBJECTIVE:
            exploration = self.explorer.explore(domain, rules, seed=seed)
            trace.update(
                generated=exploration.generated,
                unique=exploration.unique,
                front_size=len(exploration.front),
                timed_out=exploration.timed_out,
            )
            candidates = exploration.candidates
            trace["elapsed_seconds"] = time.perf_counter() - started
            return GenerationResult(
                status=GenerationStatus.OK,
                mode=mode,
                candidates=candidates,
                diagnostics=list(candidates[0].diagnostics) if candidates else [],
                trace=trace,
            )

        if mode == GenerationMode.MAX_COVERAGE:
            solved = self.solver.solve_with_fallback(domain, rules, seed)
            trace.update(solver_status=solved.status, used_fallback=solved.used_fallback)
            schedule = self.constructor.enforce(solved.schedule, domain, rules, seed).schedule
        else:
            construction = self.constructor.construct(domain, rules, seed)
            schedule = construction.schedule
            trace.update(
                fallback_assignments=construction.fallback_assignments,
                unmet_slots=len(construction.diagnostics),
            )
            if mode == GenerationMode.GREEDY_TABU:
                refinement = self.refiner.refine(schedule, domain, rules, seed)
                schedule = refinement.schedule
                trace.update(
                    tabu_iterations=refinement.iterations,
                    tabu_stop_reason=refinement.stop_reason.value,
                    initial_score=refinement.initial_score,
                    refined_score=refinement.score,
                )

        diagnostics = validator.validate(schedule, domain, rules).diagnostics
        trace["elapsed_seconds"] = time.perf_counter() - started
        logger.info(
            "Generated %s schedule: %d assignments, %d diagnostics",
            mode.value,
            len(schedule),
            len(diagnostics),
        )
        return GenerationResult(
            status=GenerationStatus.OK,
            mode=mode,
            schedule=schedule,
            diagnostics=diagnostics,
            trace=trace,
        )

    def generate_with_stats(
        self,
        domain: Domain,
        rules: Optional[SchedulingRules] = None,
        mode: Union[GenerationMode, str] = GenerationMode.GREEDY,
        seed: int = 0,
    ) -> tuple[GenerationResult, dict]:
        """Generate and return summary statistics of the chosen schedule.

        Returns:
            Tuple of (result, stats_dict). Stats are empty when no schedule
            was produced.
        """
        result = self.generate(domain, rules, mode, seed)
        schedule = result.schedule
        if schedule is None and result.candidates:
            schedule = result.candidates[0].schedule
        stats = schedule_stats(schedule, domain) if schedule is not None else {}
        return result, stats

    def validate(
        self,
        schedule: Union[WeeklySchedule, Iterable[Assignment]],
        domain: Domain,
        rules: Optional[SchedulingRules] = None,
        include_staffing: bool = True,
    ) -> list[Diagnostic]:
        """Validate a schedule. Read-only."""
        validator = ScheduleValidator(include_staffing=include_staffing)
        return validator.validate(schedule, domain, rules or self.config.rules).diagnostics


def schedule_stats(schedule: WeeklySchedule, domain: Domain) -> dict:
    """Calculate schedule statistics."""
    per_operator = {op.id: len(schedule.operator_tasks(op.id)) for op in domain.operators}
    loads = list(per_operator.values())
    required = sum(req.count for req in domain.requirements if req.count > 0)
    return {
        "total_operators": len(domain.operators),
        "scheduled_operators": sum(1 for n in loads if n > 0),
        "total_assignments": len(schedule),
        "required_slots": required,
        "coverage_rate": coverage_rate(schedule, domain),
        "fairness": fairness_score(schedule, domain),
        "min_load": min(loads) if loads else 0,
        "max_load": max(loads) if loads else 0,
        "assignments_per_operator": per_operator,
    }


def generate_schedule(
    domain: Domain,
    rules: Optional[SchedulingRules] = None,
    mode: Union[GenerationMode, str] = GenerationMode.GREEDY,
    seed: int = 0,
    config: Optional[GenerationConfig] = None,
) -> GenerationResult:
    """Generate a schedule. See ScheduleEngine.generate()."""
    return ScheduleEngine(config).generate(domain, rules, mode, seed)


def validate_schedule(
    schedule: Union[WeeklySchedule, Iterable[Assignment]],
    domain: Domain,
    rules: Optional[SchedulingRules] = None,
    include_staffing: bool = True,
) -> list[Diagnostic]:
    """Validate a schedule and return its diagnostics. Never mutates input."""
    validator = ScheduleValidator(include_staffing=include_staffing)
    return validator.validate(schedule, domain, rules).diagnostics
