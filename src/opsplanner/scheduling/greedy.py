"""Greedy schedule construction.

This module builds one complete weekly schedule by repeated best-score
assignment:
1. Seed the locked assignments
2. Walk the weekdays Mon -> Fri, heavier and scarcer tasks first
3. Fill each task's per-type quotas with the best-scoring free operators,
   widening Flex quotas to Regular operators when Flex supply runs out
4. Reconcile the result to the exact staffing targets (enforcement phase)
"""

from dataclasses import dataclass, field
from typing import Optional

from opsplanner.domain.models import (
    WEEKDAYS,
    Assignment,
    Domain,
    Operator,
    OperatorType,
    SchedulingRules,
    TaskType,
    Weekday,
    WeeklySchedule,
)
from opsplanner.logging_config import get_logger
from opsplanner.scheduling.scorer import AssignmentScorer, WeekContext
from opsplanner.validation.validator import Diagnostic, understaffed

logger = get_logger(__name__)


@dataclass
class EnforcementResult:
    """Result of reconciling a schedule to exact staffing targets.

    Attributes:
        schedule: The reconciled schedule (a new object).
        added: Assignments added to understaffed slots.
        removed: Assignments removed from overstaffed slots.
        unmet: Understaffing left after reconciliation.
    """

    schedule: WeeklySchedule
    added: list[Assignment] = field(default_factory=list)
    removed: list[Assignment] = field(default_factory=list)
    unmet: list[Diagnostic] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.added or self.removed)


@dataclass
class ConstructionResult:
    """Result of greedy construction.

    Attributes:
        schedule: The constructed schedule.
        diagnostics: Understaffing that could not be resolved.
        fallback_assignments: Number of Regular operators used on Flex slots.
        enforcement: Details of the enforcement phase.
    """

    schedule: WeeklySchedule
    diagnostics: list[Diagnostic] = field(default_factory=list)
    fallback_assignments: int = 0
    enforcement: Optional[EnforcementResult] = None


class GreedyConstructor:
    """Builds weekly schedules greedily, one (day, task) slot at a time.

    Example:
        >>> constructor = GreedyConstructor()
        >>> result = constructor.construct(domain, SchedulingRules(), seed=7)
        >>> result.schedule.task_of("op-1", Weekday.MON)
        'picking'
    """

    def construct(
        self,
        domain: Domain,
        rules: SchedulingRules,
        seed: int = 0,
    ) -> ConstructionResult:
        """Build a complete weekly schedule.

        Locked assignments are kept as given, even when they break a rule;
        the validator reports them.

        Args:
            domain: Operators, tasks, requirements and locked assignments.
            rules: Rules in force.
            seed: Seed for the deterministic tie-break and jitter terms.

        Returns:
            ConstructionResult with the schedule and unmet staffing.
        """
        scorer = AssignmentScorer(domain, rules, seed)
        schedule = domain.locked_schedule()
        fallback_count = 0

        for day in WEEKDAYS:
            required = {task.id: domain.required(task.id, day) for task in domain.tasks}
            for task in self._task_order(domain, scorer, day, required):
                fallback_count += self._fill_slot(schedule, domain, scorer, task, day)

        logger.debug(
            "Initial pass placed %d assignments (%d fallback)", len(schedule), fallback_count
        )

        enforcement = self.enforce(schedule, domain, rules, seed)
        logger.info(
            "Greedy construction finished: %d assignments, %d unmet slots",
            len(enforcement.schedule),
            len(enforcement.unmet),
        )
        return ConstructionResult(
            schedule=enforcement.schedule,
            diagnostics=list(enforcement.unmet),
            fallback_assignments=fallback_count,
            enforcement=enforcement,
        )

    def enforce(
        self,
        schedule: WeeklySchedule,
        domain: Domain,
        rules: SchedulingRules,
        seed: int = 0,
        targets: Optional[dict[tuple[str, Weekday], int]] = None,
    ) -> EnforcementResult:
        """Reconcile a schedule to exact per-task, per-day counts.

        For each day, all removals happen before any addition: overstaffed
        tasks lose their lowest-scored unlocked operators, then understaffed
        tasks gain the best free eligible operators. Locked slots are never
        touched. Running this on its own output changes nothing.

        Args:
            schedule: Schedule to reconcile. It is not modified.
            domain: The domain.
            rules: Rules in force.
            seed: Seed for scoring.
            targets: Exact counts keyed by (task_id, weekday). Defaults to
                domain.staffing_targets().

        Returns:
            EnforcementResult with the reconciled copy.
        """
        scorer = AssignmentScorer(domain, rules, seed)
        targets = domain.staffing_targets() if targets is None else targets
        work = schedule.copy()
        result = EnforcementResult(schedule=work)

        for day in WEEKDAYS:
            day_targets = {
                task_id: count for (task_id, d), count in targets.items() if d == day
            }

            for task_id in sorted(day_targets):
                while work.count(task_id, day) > day_targets[task_id]:
                    removable = [
                        op_id
                        for op_id in work.day(day).operators_on(task_id)
                        if not work.is_locked(op_id, day)
                    ]
                    if not removable:
                        break
                    ctx = WeekContext.build(work, domain)
                    worst = min(
                        removable,
                        key=lambda op_id: (scorer.score_assignment(op_id, day, work, ctx), op_id),
                    )
                    work.unassign(worst, day)
                    result.removed.append(Assignment(worst, day, task_id))

            for task in self._task_order(domain, scorer, day, day_targets):
                target = day_targets[task.id]
                while work.count(task.id, day) < target:
                    ctx = WeekContext.build(work, domain)
                    ranked = self._rank(
                        self._free_operators(work, domain, scorer, task, day),
                        task,
                        day,
                        work,
                        domain,
                        scorer,
                        ctx,
                    )
                    if not ranked:
                        break
                    best = ranked[0]
                    work.assign(best.id, day, task.id)
                    result.added.append(Assignment(best.id, day, task.id))

            for task_id in sorted(day_targets):
                have = work.count(task_id, day)
                if have < day_targets[task_id]:
                    result.unmet.append(understaffed(task_id, day, have, day_targets[task_id]))

        if result.changed:
            logger.debug(
                "Enforcement added %d and removed %d assignments",
                len(result.added),
                len(result.removed),
            )
        return result

    def _task_order(
        self,
        domain: Domain,
        scorer: AssignmentScorer,
        day: Weekday,
        counts: dict[str, int],
    ) -> list[TaskType]:
        """Tasks needed on day, heavy first, then by least spare supply."""
        tasks = []
        for task_id, count in counts.items():
            task = domain.task(task_id)
            if task is None or count <= 0:
                continue
            supply = sum(
                1
                for op in domain.operators
                if scorer.can_place(op, task, day) and domain.is_type_compatible(op, task, day)
            )
            tasks.append((not task.heavy, supply - count, task.id, task))
        tasks.sort(key=lambda item: item[:3])
        return [item[3] for item in tasks]

    def _free_operators(
        self,
        schedule: WeeklySchedule,
        domain: Domain,
        scorer: AssignmentScorer,
        task: TaskType,
        day: Weekday,
    ) -> list[Operator]:
        return [
            op
            for op in domain.operators
            if schedule.task_of(op.id, day) is None
            and scorer.can_place(op, task, day)
            and domain.is_type_compatible(op, task, day)
        ]

    def _rank(
        self,
        operators: list[Operator],
        task: TaskType,
        day: Weekday,
        schedule: WeeklySchedule,
        domain: Domain,
        scorer: AssignmentScorer,
        ctx: WeekContext,
        fallback: Optional[bool] = None,
    ) -> list[Operator]:
        """Sort operators by descending score, then by ID."""
        scored = []
        for op in operators:
            is_fallback = (
                fallback if fallback is not None else not domain.is_exact_type(op, task, day)
            )
            scored.append((-scorer.score(op, task, day, schedule, is_fallback, ctx), op.id, op))
        scored.sort(key=lambda item: (item[0], item[1]))
        return [item[2] for item in scored]

    def _fill_slot(
        self,
        schedule: WeeklySchedule,
        domain: Domain,
        scorer: AssignmentScorer,
        task: TaskType,
        day: Weekday,
    ) -> int:
        """Fill the type quotas of one (day, task) slot.

        Returns:
            Number of fallback assignments made.
        """
        quotas = domain.slot_quotas(task, day)
        remaining = [count for _, count in quotas]

        # Operators already present (locked) use up quota: exact type first,
        # then whatever room is left.
        leftovers = 0
        for op_id in schedule.day(day).operators_on(task.id):
            op = domain.operator(op_id)
            for i, (slot_type, _) in enumerate(quotas):
                matches = slot_type is None or (op is not None and op.operator_type == slot_type)
                if remaining[i] > 0 and matches:
                    remaining[i] -= 1
                    break
            else:
                leftovers += 1
        for i in range(len(remaining)):
            used = min(leftovers, remaining[i])
            remaining[i] -= used
            leftovers -= used

        # Exact-type operators for every quota first.
        for i, (slot_type, _) in enumerate(quotas):
            if remaining[i] <= 0:
                continue
            ctx = WeekContext.build(schedule, domain)
            free = self._free_operators(schedule, domain, scorer, task, day)
            exact = [op for op in free if slot_type is None or op.operator_type == slot_type]
            picks = self._rank(exact, task, day, schedule, domain, scorer, ctx, fallback=False)
            for op in picks[: remaining[i]]:
                schedule.assign(op.id, day, task.id)
                remaining[i] -= 1

        # Then Regular operators as fallback for short Flex quotas.
        fallback_count = 0
        for i, (slot_type, _) in enumerate(quotas):
            if remaining[i] <= 0:
                continue
            if slot_type == OperatorType.FLEX and task.allows_fallback:
                ctx = WeekContext.build(schedule, domain)
                free = self._free_operators(schedule, domain, scorer, task, day)
                regulars = [op for op in free if op.operator_type == OperatorType.REGULAR]
                picks = self._rank(regulars, task, day, schedule, domain, scorer, ctx, fallback=True)
                for op in picks[: remaining[i]]:
                    schedule.assign(op.id, day, task.id)
                    remaining[i] -= 1
                    fallback_count += 1
            if remaining[i] > 0:
                logger.debug(
                    "%s %s: %s quota short by %d",
                    day.value,
                    task.id,
                    slot_type.value if slot_type else "any",
                    remaining[i],
                )
        return fallback_count
