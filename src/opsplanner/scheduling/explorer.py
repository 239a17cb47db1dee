"""Multi-objective exploration of alternative schedules.

Runs the greedy constructor (optionally followed by tabu refinement) over
a grid of rule profiles, randomization factors and seeds, then reduces the
population to a small, diverse set of Pareto-optimal candidates.

Candidate generation is embarrassingly parallel. Each grid point is
dispatched to a concurrent.futures executor and writes only its own result
slot; dominance filtering starts after the join barrier.
"""

import time
from concurrent.futures import (
    Executor,
    Future,
    ProcessPoolExecutor,
    ThreadPoolExecutor,
    TimeoutError as FuturesTimeoutError,
    as_completed,
)
from dataclasses import dataclass, field
from itertools import product
from typing import Optional

from opsplanner.config import ExplorationConfig, RuleProfile, TabuConfig
from opsplanner.domain.models import Domain, ScoredCandidate, SchedulingRules
from opsplanner.logging_config import get_logger
from opsplanner.scheduling.greedy import GreedyConstructor
from opsplanner.scheduling.objectives import evaluate, pareto_front, select_diverse
from opsplanner.scheduling.scorer import AssignmentScorer
from opsplanner.scheduling.tabu import TabuSearchRefiner
from opsplanner.validation.validator import ScheduleValidator

logger = get_logger(__name__)


@dataclass(frozen=True)
class GridPoint:
    """One combination of rule profile, randomization factor and seed."""

    index: int
    profile: str
    rules: SchedulingRules
    seed: int

    @property
    def label(self) -> str:
        return f"{self.profile}/r{self.rules.randomization_factor:g}/s{self.seed}"


@dataclass
class ExplorationResult:
    """Result of a multi-objective exploration.

    Attributes:
        candidates: Selected candidates, ordered by descending total score.
        front: Full Pareto front (after de-duplication).
        generated: Number of candidates generated.
        unique: Number of distinct schedules among them.
        timed_out: Whether the wall-clock cap cut generation short.
        elapsed_seconds: Wall-clock time spent.
    """

    candidates: list[ScoredCandidate] = field(default_factory=list)
    front: list[ScoredCandidate] = field(default_factory=list)
    generated: int = 0
    unique: int = 0
    timed_out: bool = False
    elapsed_seconds: float = 0.0


def evaluation_rules(base_rules: SchedulingRules) -> SchedulingRules:
    """Rules all candidates are compared under.

    Skill mismatches are scored softly and jitter is off, so candidates
    built with different profiles share one scale.
    """
    return base_rules.with_overrides(strict_skill_matching=False, randomization_factor=0.0)


def generate_candidate(
    domain: Domain,
    point: GridPoint,
    base_rules: SchedulingRules,
    refine: bool = False,
    tabu_config: Optional[TabuConfig] = None,
) -> ScoredCandidate:
    """Build and evaluate one candidate.

    Module-level so it can be pickled for process pools.
    """
    started = time.perf_counter()
    construction = GreedyConstructor().construct(domain, point.rules, point.seed)
    schedule = construction.schedule
    trace = {
        "grid_index": point.index,
        "fallback_assignments": construction.fallback_assignments,
        "unmet_slots": len(construction.diagnostics),
    }

    if refine:
        refinement = TabuSearchRefiner(tabu_config).refine(
            schedule, domain, point.rules, point.seed
        )
        schedule = refinement.schedule
        trace["tabu_iterations"] = refinement.iterations
        trace["tabu_stop_reason"] = refinement.stop_reason.value

    eval_rules = evaluation_rules(base_rules)
    objectives = evaluate(schedule, domain, AssignmentScorer(domain, eval_rules, seed=0))
    diagnostics = ScheduleValidator().validate(schedule, domain, point.rules).diagnostics
    trace["elapsed_seconds"] = time.perf_counter() - started

    return ScoredCandidate(
        candidate_id=point.label,
        schedule=schedule,
        objectives=objectives,
        profile=point.profile,
        seed=point.seed,
        rules=point.rules,
        diagnostics=diagnostics,
        trace=trace,
    )


class MultiObjectiveExplorer:
    """Generates a diverse set of Pareto-optimal schedules.

    Example:
        >>> explorer = MultiObjectiveExplorer(ExplorationConfig(seeds=[1, 2]))
        >>> result = explorer.explore(domain, SchedulingRules(), population_target=3)
        >>> len(result.candidates) <= 3
        True
    """

    def __init__(
        self,
        config: Optional[ExplorationConfig] = None,
        tabu_config: Optional[TabuConfig] = None,
    ):
        self.config = config or ExplorationConfig()
        self.tabu_config = tabu_config or TabuConfig()

    def build_grid(
        self,
        base_rules: SchedulingRules,
        profiles: Optional[list[RuleProfile]] = None,
        seed: int = 0,
    ) -> list[GridPoint]:
        """Expand profiles x randomization factors x seeds into grid points.

        The configured seeds are offsets from the caller's seed.
        """
        config = self.config
        profiles = profiles if profiles is not None else config.profiles
        factors = config.randomization_factors or [base_rules.randomization_factor]
        seeds = [seed + offset for offset in (config.seeds or [0])]

        grid = []
        for profile, factor, point_seed in product(profiles, factors, seeds):
            rules = profile.apply(base_rules).with_overrides(randomization_factor=factor)
            grid.append(
                GridPoint(index=len(grid), profile=profile.name, rules=rules, seed=point_seed)
            )
            if config.max_candidates is not None and len(grid) >= config.max_candidates:
                break
        return grid

    def explore(
        self,
        domain: Domain,
        base_rules: SchedulingRules,
        parameter_grid: Optional[list[GridPoint]] = None,
        population_target: Optional[int] = None,
        seed: int = 0,
    ) -> ExplorationResult:
        """Generate candidates and select a diverse Pareto subset.

        Args:
            domain: The domain.
            base_rules: Rules the profiles are applied to; also the rules
                used to compare candidates.
            parameter_grid: Grid points to run. Defaults to build_grid().
            population_target: Maximum number of candidates returned.
            seed: Base seed for the default grid.

        Returns:
            ExplorationResult. A time-limit overrun or a failed candidate
            keeps the candidates that finished.
        """
        config = self.config
        target = population_target if population_target is not None else config.population_target
        grid = parameter_grid
        if grid is None:
            grid = self.build_grid(base_rules, seed=seed)
        started = time.monotonic()

        results, timed_out = self._run_grid(domain, base_rules, grid)
        population = [candidate for candidate in results if candidate is not None]

        unique = []
        seen = set()
        for candidate in population:
            fingerprint = candidate.schedule.fingerprint()
            if fingerprint not in seen:
                seen.add(fingerprint)
                unique.append(candidate)

        front = pareto_front(unique)
        selected = select_diverse(front, target, config.diversity_threshold)
        selected.sort(key=lambda c: (-c.objectives.total_score, c.candidate_id))

        elapsed = time.monotonic() - started
        logger.info(
            "Explored %d/%d grid points: %d unique, front %d, selected %d (%.2fs)",
            len(population),
            len(grid),
            len(unique),
            len(front),
            len(selected),
            elapsed,
        )
        return ExplorationResult(
            candidates=selected,
            front=front,
            generated=len(population),
            unique=len(unique),
            timed_out=timed_out,
            elapsed_seconds=elapsed,
        )

    def _make_executor(self) -> Executor:
        if self.config.executor == "process":
            return ProcessPoolExecutor(max_workers=self.config.max_workers)
        return ThreadPoolExecutor(max_workers=self.config.max_workers)

    def _run_grid(
        self,
        domain: Domain,
        base_rules: SchedulingRules,
        grid: list[GridPoint],
    ) -> tuple[list[Optional[ScoredCandidate]], bool]:
        """Run every grid point; results are stored by grid position."""
        results: list[Optional[ScoredCandidate]] = [None] * len(grid)
        if not grid:
            return results, False

        timed_out = False
        collected: set[int] = set()
        executor = self._make_executor()
        try:
            futures = {
                executor.submit(
                    generate_candidate,
                    domain,
                    point,
                    base_rules,
                    self.config.refine,
                    self.tabu_config,
                ): position
                for position, point in enumerate(grid)
            }
            try:
                for future in as_completed(futures, timeout=self.config.time_limit_seconds):
                    position = futures[future]
                    collected.add(position)
                    results[position] = self._collect(future, grid[position])
            except FuturesTimeoutError:
                timed_out = True
                cancelled = sum(1 for future in futures if future.cancel())
                logger.warning(
                    "Exploration time limit reached; %d pending candidates cancelled",
                    cancelled,
                )
        finally:
            executor.shutdown(wait=True)

        if timed_out:
            # Candidates already running when the cap hit have finished now.
            for future, position in futures.items():
                if position not in collected and not future.cancelled():
                    results[position] = self._collect(future, grid[position])
        return results, timed_out

    @staticmethod
    def _collect(future: Future, point: GridPoint) -> Optional[ScoredCandidate]:
        """Return a finished candidate, or None when its generation failed."""
        try:
            return future.result()
        except Exception:
            logger.exception("Candidate %s failed; continuing without it", point.label)
            return None
