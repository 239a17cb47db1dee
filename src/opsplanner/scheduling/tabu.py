"""Tabu search refinement of a constructed schedule.

The refiner works on a private copy of its input. Each iteration it
enumerates a bounded neighbourhood of moves around the weakest
assignments and the mis-staffed tasks, applies the best admissible move and
records its reverse as tabu. The best schedule seen is returned, so the
result never scores below the input.
"""

import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from opsplanner.config import TabuConfig
from opsplanner.domain.models import (
    WEEKDAYS,
    Domain,
    SchedulingRules,
    TaskType,
    Weekday,
    WeeklySchedule,
)
from opsplanner.logging_config import get_logger
from opsplanner.scheduling.objectives import aggregate_score
from opsplanner.scheduling.scorer import AssignmentScorer, WeekContext

logger = get_logger(__name__)

# Improvements smaller than this are treated as no improvement.
IMPROVEMENT_EPSILON = 1e-9


class StopReason(Enum):
    """Why the search terminated."""

    NO_VALID_NEIGHBOR = "no_valid_neighbor"
    MAX_ITERATIONS = "max_iterations"
    LOCAL_OPTIMUM = "local_optimum"
    TIME_LIMIT = "time_limit"


@dataclass(frozen=True)
class Move:
    """A neighbourhood move on one weekday.

    A swap exchanges the tasks of two operators (either may be idle). A
    transfer moves one operator from one task to another.

    Attributes:
        kind: "swap" or "transfer".
        weekday: Day the move applies to.
        operator_a: First operator.
        operator_b: Swap partner (None for transfers).
        task_a: Task operator_a holds before the move.
        task_b: Task operator_a holds after the move.
    """

    kind: str
    weekday: Weekday
    operator_a: str
    operator_b: Optional[str]
    task_a: Optional[str]
    task_b: Optional[str]

    def signature(self) -> str:
        if self.kind == "swap":
            first, second = sorted((self.operator_a, self.operator_b))
            return f"swap:{self.weekday.value}:{first}:{second}"
        return f"transfer:{self.weekday.value}:{self.operator_a}:{self.task_a}->{self.task_b}"

    def reverse_signature(self) -> str:
        if self.kind == "swap":
            return self.signature()
        return f"transfer:{self.weekday.value}:{self.operator_a}:{self.task_b}->{self.task_a}"


@dataclass
class RefinementResult:
    """Result of tabu refinement.

    Attributes:
        schedule: Best schedule seen (a copy; never the caller's object).
        score: Aggregate score of schedule.
        initial_score: Aggregate score of the input.
        iterations: Iterations performed.
        improvements: Number of times the best score improved.
        stop_reason: Why the search ended.
    """

    schedule: WeeklySchedule
    score: float
    initial_score: float
    iterations: int = 0
    improvements: int = 0
    stop_reason: StopReason = StopReason.MAX_ITERATIONS
    history: list[float] = field(default_factory=list)

    @property
    def improved(self) -> bool:
        return self.score > self.initial_score + IMPROVEMENT_EPSILON


class TabuSearchRefiner:
    """Improves a schedule with tabu search over same-day moves."""

    def __init__(self, config: Optional[TabuConfig] = None):
        self.config = config or TabuConfig()

    def refine(
        self,
        schedule: WeeklySchedule,
        domain: Domain,
        rules: SchedulingRules,
        seed: int = 0,
        targets: Optional[dict[tuple[str, Weekday], int]] = None,
    ) -> RefinementResult:
        """Refine a schedule.

        Args:
            schedule: Schedule to improve. It is not modified.
            domain: The domain.
            rules: Rules in force; scoring and hard constraints follow them.
            seed: Seed for scoring.
            targets: Staffing targets. Defaults to domain.staffing_targets().

        Returns:
            RefinementResult with the best schedule found.
        """
        config = self.config
        scorer = AssignmentScorer(domain, rules, seed)
        targets = domain.staffing_targets() if targets is None else targets

        current = schedule.copy()
        current_score = aggregate_score(current, domain, scorer, targets)
        best = current.copy()
        best_score = current_score
        result = RefinementResult(schedule=best, score=best_score, initial_score=current_score)

        tabu: deque = deque(maxlen=max(1, config.tabu_list_size))
        no_improve = 0
        started = time.monotonic()
        stop_reason = StopReason.MAX_ITERATIONS

        for iteration in range(config.max_iterations):
            if (
                config.time_limit_seconds is not None
                and time.monotonic() - started >= config.time_limit_seconds
            ):
                stop_reason = StopReason.TIME_LIMIT
                break

            chosen = None
            chosen_score = None
            for move in self._neighbourhood(current, domain, scorer, targets):
                self._apply(current, move)
                score = aggregate_score(current, domain, scorer, targets)
                self._undo(current, move)

                if move.signature() in tabu and score <= best_score + IMPROVEMENT_EPSILON:
                    continue
                if chosen_score is None or score > chosen_score + IMPROVEMENT_EPSILON:
                    chosen = move
                    chosen_score = score

            result.iterations = iteration + 1
            if chosen is None:
                stop_reason = StopReason.NO_VALID_NEIGHBOR
                break

            self._apply(current, chosen)
            current_score = chosen_score
            tabu.append(chosen.reverse_signature())
            result.history.append(current_score)

            if current_score > best_score + IMPROVEMENT_EPSILON:
                best = current.copy()
                best_score = current_score
                result.improvements += 1
                no_improve = 0
            else:
                no_improve += 1
                if no_improve >= config.max_no_improve:
                    stop_reason = StopReason.LOCAL_OPTIMUM
                    break

        result.schedule = best
        result.score = best_score
        result.stop_reason = stop_reason
        logger.info(
            "Tabu search stopped (%s) after %d iterations: %.1f -> %.1f",
            stop_reason.value,
            result.iterations,
            result.initial_score,
            best_score,
        )
        return result

    def _neighbourhood(
        self,
        schedule: WeeklySchedule,
        domain: Domain,
        scorer: AssignmentScorer,
        targets: dict[tuple[str, Weekday], int],
    ) -> list[Move]:
        """Enumerate admissible moves around the weakest assignments.

        Moves are generated in a fixed order so the search is reproducible.
        """
        ctx = WeekContext.build(schedule, domain)
        weakest = []
        for day in WEEKDAYS:
            for operator_id in schedule.day(day).assignments:
                if schedule.is_locked(operator_id, day):
                    continue
                score = scorer.score_assignment(operator_id, day, schedule, ctx)
                weakest.append((score, day.index, operator_id, day))
        weakest.sort(key=lambda item: item[:3])
        flagged = [(item[3], item[2]) for item in weakest[: self.config.candidate_pool_size]]

        moves: list[Move] = []
        seen: set[str] = set()

        for day, operator_id in flagged:
            task_a = schedule.task_of(operator_id, day)
            for partner in domain.operators:
                if partner.id == operator_id or schedule.is_locked(partner.id, day):
                    continue
                task_b = schedule.task_of(partner.id, day)
                if task_a == task_b:
                    continue
                move = Move("swap", day, operator_id, partner.id, task_a, task_b)
                if move.signature() not in seen and self._is_valid(schedule, domain, scorer, move):
                    seen.add(move.signature())
                    moves.append(move)

        for day in WEEKDAYS:
            counts = schedule.day(day).task_counts()
            over = sorted(
                t for (t, d), n in targets.items() if d == day and counts.get(t, 0) > n
            )
            under = sorted(
                t for (t, d), n in targets.items() if d == day and counts.get(t, 0) < n
            )
            for task_from in over:
                for operator_id in schedule.day(day).operators_on(task_from):
                    if schedule.is_locked(operator_id, day):
                        continue
                    for task_to in under:
                        move = Move("transfer", day, operator_id, None, task_from, task_to)
                        if self._is_valid(schedule, domain, scorer, move):
                            moves.append(move)

        return moves

    def _is_valid(
        self,
        schedule: WeeklySchedule,
        domain: Domain,
        scorer: AssignmentScorer,
        move: Move,
    ) -> bool:
        """Check that a move keeps every hard constraint.

        Type quotas apply as in construction: a Regular operator may take a
        Flex-designated slot only where the task allows fallback and no
        free Flex operator could fill it.
        """
        day = move.weekday
        changes = [(move.operator_a, move.task_b)]
        if move.kind == "swap":
            changes.append((move.operator_b, move.task_a))

        idle = {op.id for op in domain.operators if schedule.task_of(op.id, day) is None}
        for operator_id, new_task in changes:
            if new_task is None:
                idle.add(operator_id)
            else:
                idle.discard(operator_id)

        for operator_id, new_task in changes:
            if schedule.is_locked(operator_id, day):
                return False
            if new_task is None:
                continue
            operator = domain.operator(operator_id)
            task = domain.task(new_task)
            if operator is None or task is None:
                return False
            if not scorer.can_place(operator, task, day):
                return False
            if not domain.is_type_compatible(operator, task, day):
                return False
            if not domain.is_exact_type(operator, task, day) and self._has_exact_supply(
                idle, domain, scorer, task, day
            ):
                return False
        return True

    @staticmethod
    def _has_exact_supply(
        idle: set[str],
        domain: Domain,
        scorer: AssignmentScorer,
        task: TaskType,
        day: Weekday,
    ) -> bool:
        for operator_id in sorted(idle):
            operator = domain.operator(operator_id)
            if (
                operator is not None
                and domain.is_exact_type(operator, task, day)
                and scorer.can_place(operator, task, day)
            ):
                return True
        return False

    @staticmethod
    def _apply(schedule: WeeklySchedule, move: Move) -> None:
        TabuSearchRefiner._set(schedule, move.operator_a, move.weekday, move.task_b)
        if move.kind == "swap":
            TabuSearchRefiner._set(schedule, move.operator_b, move.weekday, move.task_a)

    @staticmethod
    def _undo(schedule: WeeklySchedule, move: Move) -> None:
        TabuSearchRefiner._set(schedule, move.operator_a, move.weekday, move.task_a)
        if move.kind == "swap":
            TabuSearchRefiner._set(schedule, move.operator_b, move.weekday, move.task_b)

    @staticmethod
    def _set(
        schedule: WeeklySchedule, operator_id: str, weekday: Weekday, task_id: Optional[str]
    ) -> None:
        if task_id is None:
            schedule.unassign(operator_id, weekday)
        else:
            schedule.assign(operator_id, weekday, task_id)
