"""Assignment scoring.

Scores how good it is to give an operator a task on a given weekday, in
the context of the rest of the week. Every term looks only at the other
weekdays, so a complete schedule can be re-scored consistently (the tabu
refiner depends on this).

The scorer is deterministic: the tie-break and randomization terms are
derived from a SHA-256 hash of (operator, task, weekday, seed), never from
a random number generator.
"""

import hashlib
from dataclasses import dataclass, field
from typing import Optional

from opsplanner.domain.models import (
    WEEKDAYS,
    Domain,
    Operator,
    OperatorType,
    SchedulingRules,
    TaskType,
    Weekday,
    WeeklySchedule,
)

BASE_SCORE = 100.0
SKILL_MATCH_BONUS = 50.0
SKILL_MISMATCH_PENALTY = 50.0
PREFERENCE_BONUS = 50.0
PREFERENCE_RANK_STEP = 5.0
WORKLOAD_STEP = 5.0
WORKLOAD_CAP = 10.0
HEAVY_SHARE_PENALTY = 15.0
HEAVY_SHARE_BONUS = 10.0
CONSECUTIVE_HEAVY_PENALTY = 30.0
STREAK_PENALTY = 80.0
FLEX_EXCEPTIONS_BONUS = 20.0
NON_FLEX_EXCEPTIONS_PENALTY = 10.0
FALLBACK_PENALTY = 5.0
COORDINATOR_REPEAT_PENALTY = 100.0

# Score returned for assignments that break a hard constraint.
EXCLUDED_SCORE = -1_000_000.0

# Tie-break values lie in [0, TIE_BREAK_SCALE), below any real score gap.
TIE_BREAK_SCALE = 1e-3


def stable_unit(*parts) -> float:
    """Map the parts to a reproducible value in [0, 1)."""
    key = "|".join(str(part) for part in parts).encode("utf-8")
    digest = hashlib.sha256(key).digest()
    return int.from_bytes(digest[:8], "big") / 2**64


def tie_break(operator_id: str, task_id: str, weekday: Weekday, seed: int) -> float:
    """Deterministic tie-break term in [0, TIE_BREAK_SCALE)."""
    return stable_unit(operator_id, task_id, weekday.value, seed) * TIE_BREAK_SCALE


@dataclass
class WeekContext:
    """Week-level counts used by the scorer.

    Built once from a schedule so that each score lookup is constant time.

    Attributes:
        grid: operator ID -> weekday -> task ID.
        load: Assignments per operator over the week.
        heavy_load: Heavy-task assignments per operator over the week.
        day_totals: Assignments across the team per weekday.
        day_heavy_totals: Heavy-task assignments across the team per weekday.
        team_size: Number of active operators (at least 1).
    """

    grid: dict[str, dict[Weekday, str]] = field(default_factory=dict)
    load: dict[str, int] = field(default_factory=dict)
    heavy_load: dict[str, int] = field(default_factory=dict)
    day_totals: dict[Weekday, int] = field(default_factory=dict)
    day_heavy_totals: dict[Weekday, int] = field(default_factory=dict)
    team_size: int = 1

    @classmethod
    def build(cls, schedule: WeeklySchedule, domain: Domain) -> "WeekContext":
        heavy_tasks = {task.id for task in domain.tasks if task.heavy}
        ctx = cls(team_size=max(1, len(domain.active_operators)))
        for day in WEEKDAYS:
            ctx.day_totals[day] = 0
            ctx.day_heavy_totals[day] = 0
            for operator_id, task_id in schedule.day(day).assignments.items():
                ctx.grid.setdefault(operator_id, {})[day] = task_id
                ctx.load[operator_id] = ctx.load.get(operator_id, 0) + 1
                ctx.day_totals[day] += 1
                if task_id in heavy_tasks:
                    ctx.heavy_load[operator_id] = ctx.heavy_load.get(operator_id, 0) + 1
                    ctx.day_heavy_totals[day] += 1
        return ctx

    def task_on(self, operator_id: str, weekday: Optional[Weekday]) -> Optional[str]:
        if weekday is None:
            return None
        return self.grid.get(operator_id, {}).get(weekday)

    def load_excluding(self, operator_id: str, weekday: Weekday) -> int:
        own = 1 if self.task_on(operator_id, weekday) is not None else 0
        return self.load.get(operator_id, 0) - own

    def heavy_excluding(self, operator_id: str, weekday: Weekday, heavy_tasks: set) -> int:
        own = 1 if self.task_on(operator_id, weekday) in heavy_tasks else 0
        return self.heavy_load.get(operator_id, 0) - own

    def average_load_excluding(self, weekday: Weekday) -> float:
        total = sum(self.day_totals.values()) - self.day_totals.get(weekday, 0)
        return total / self.team_size

    def average_heavy_excluding(self, weekday: Weekday) -> float:
        total = sum(self.day_heavy_totals.values()) - self.day_heavy_totals.get(weekday, 0)
        return total / self.team_size


class AssignmentScorer:
    """Scores (operator, task, weekday) tuples under a set of rules.

    Hard constraints are checked by is_eligible(); score() is a total
    function that returns EXCLUDED_SCORE for ineligible combinations
    instead of raising.
    """

    def __init__(self, domain: Domain, rules: SchedulingRules, seed: int = 0):
        self.domain = domain
        self.rules = rules
        self.seed = seed
        self._heavy_tasks = {task.id for task in domain.tasks if task.heavy}

    def is_eligible(
        self,
        operator: Operator,
        task: TaskType,
        weekday: Weekday,
    ) -> bool:
        """Check the hard constraints for one assignment.

        Covers availability, the Coordinator task restriction,
        coordinator-only tasks and (when strict) skill matching.
        """
        if not operator.is_available(weekday):
            return False
        if operator.is_coordinator and not task.is_coordinator_task:
            return False
        if task.coordinator_only and not operator.is_coordinator:
            return False
        if self.rules.strict_skill_matching and not operator.has_skill(task.required_skill):
            return False
        return True

    def can_place(self, operator: Operator, task: TaskType, weekday: Weekday) -> bool:
        """Whether the algorithms may newly place this assignment."""
        if operator.is_coordinator and not self.rules.auto_assign_coordinators:
            return False
        return self.is_eligible(operator, task, weekday)

    def breakdown(
        self,
        operator: Operator,
        task: TaskType,
        weekday: Weekday,
        schedule: WeeklySchedule,
        fallback: bool = False,
        context: Optional[WeekContext] = None,
    ) -> dict[str, float]:
        """Return the individual score terms for an assignment."""
        rules = self.rules
        ctx = context if context is not None else WeekContext.build(schedule, self.domain)

        if operator.is_coordinator and not task.is_coordinator_task:
            return {"excluded": EXCLUDED_SCORE}
        if task.coordinator_only and not operator.is_coordinator:
            return {"excluded": EXCLUDED_SCORE}

        terms = {"base": BASE_SCORE}

        if operator.has_skill(task.required_skill):
            terms["skill"] = SKILL_MATCH_BONUS
        elif rules.strict_skill_matching:
            return {"excluded": EXCLUDED_SCORE}
        else:
            terms["skill"] = -SKILL_MISMATCH_PENALTY

        if rules.respect_preferred_stations:
            rank = operator.preference_rank(task.id)
            if rank is not None:
                terms["preference"] = max(
                    PREFERENCE_BONUS / 2, PREFERENCE_BONUS - PREFERENCE_RANK_STEP * rank
                )

        if rules.workload_balance_weight:
            delta = ctx.average_load_excluding(weekday) - ctx.load_excluding(operator.id, weekday)
            raw = max(-WORKLOAD_CAP, min(WORKLOAD_CAP, delta * WORKLOAD_STEP))
            terms["workload"] = raw * rules.workload_balance_weight

        exempt = operator.is_rotation_exempt

        if task.heavy:
            if rules.fairness_weight:
                held = ctx.heavy_excluding(operator.id, weekday, self._heavy_tasks)
                average = ctx.average_heavy_excluding(weekday)
                if held > average + 1:
                    terms["heavy_fairness"] = -HEAVY_SHARE_PENALTY * rules.fairness_weight
                elif held < average:
                    terms["heavy_fairness"] = HEAVY_SHARE_BONUS * rules.fairness_weight

            if not rules.allow_consecutive_heavy and not exempt:
                neighbours = (weekday.previous, weekday.next)
                if any(ctx.task_on(operator.id, d) in self._heavy_tasks for d in neighbours):
                    terms["consecutive_heavy"] = -CONSECUTIVE_HEAVY_PENALTY

        if not exempt:
            streak = self._streak_with(operator.id, task.id, weekday, ctx)
            excess = streak - rules.max_consecutive_days_same_task
            if excess > 0:
                terms["streak"] = -STREAK_PENALTY * excess

        if rules.prioritize_flex_for_exceptions and task.is_exceptions:
            if operator.operator_type == OperatorType.FLEX:
                terms["flex_exceptions"] = FLEX_EXCEPTIONS_BONUS
            else:
                terms["flex_exceptions"] = -NON_FLEX_EXCEPTIONS_PENALTY

        if operator.is_coordinator and rules.rotate_coordinators_daily:
            if ctx.task_on(operator.id, weekday.previous) == task.id:
                terms["coordinator_repeat"] = -COORDINATOR_REPEAT_PENALTY

        if fallback:
            terms["fallback"] = -FALLBACK_PENALTY

        if rules.randomization_factor > 0:
            terms["jitter"] = (
                stable_unit("jitter", operator.id, task.id, weekday.value, self.seed)
                * rules.randomization_factor
            )

        terms["tie_break"] = tie_break(operator.id, task.id, weekday, self.seed)
        return terms

    def score(
        self,
        operator: Operator,
        task: TaskType,
        weekday: Weekday,
        schedule: WeeklySchedule,
        fallback: bool = False,
        context: Optional[WeekContext] = None,
    ) -> float:
        """Score an assignment of operator to task on weekday.

        Args:
            operator: Operator being considered.
            task: Task being considered.
            weekday: Day of the assignment.
            schedule: Current (possibly partial) schedule.
            fallback: The operator fills a slot designated for another type.
            context: Precomputed WeekContext for schedule.

        Returns:
            The score; EXCLUDED_SCORE when a hard constraint forbids it.
        """
        return sum(self.breakdown(operator, task, weekday, schedule, fallback, context).values())

    def score_assignment(
        self,
        operator_id: str,
        weekday: Weekday,
        schedule: WeeklySchedule,
        context: Optional[WeekContext] = None,
    ) -> float:
        """Score the task an operator already holds in schedule.

        Returns 0.0 when the operator holds nothing that day or the
        operator/task is unknown to the domain.
        """
        task_id = schedule.task_of(operator_id, weekday)
        operator = self.domain.operator(operator_id)
        task = self.domain.task(task_id) if task_id is not None else None
        if operator is None or task is None:
            return 0.0
        fallback = not self.domain.is_exact_type(operator, task, weekday)
        return self.score(operator, task, weekday, schedule, fallback, context)

    @staticmethod
    def _streak_with(
        operator_id: str, task_id: str, weekday: Weekday, ctx: WeekContext
    ) -> int:
        """Length of the same-task run if operator does task_id on weekday."""
        streak = 1
        day = weekday.previous
        while day is not None and ctx.task_on(operator_id, day) == task_id:
            streak += 1
            day = day.previous
        day = weekday.next
        while day is not None and ctx.task_on(operator_id, day) == task_id:
            streak += 1
            day = day.next
        return streak
