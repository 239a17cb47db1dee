"""Domain models for the operator scheduling system.

This module contains all core data structures used throughout the scheduling
system, including operators, task types, staffing requirements, rule
configuration, and the weekly schedule outputs.
"""

import hashlib
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Iterable, Optional, Union


class Weekday(Enum):
    """Working days covered by a weekly schedule."""

    MON = "Mon"
    TUE = "Tue"
    WED = "Wed"
    THU = "Thu"
    FRI = "Fri"

    @property
    def index(self) -> int:
        """Position of the day within the week (Mon = 0)."""
        return WEEKDAYS.index(self)

    @property
    def previous(self) -> Optional["Weekday"]:
        return WEEKDAYS[self.index - 1] if self.index > 0 else None

    @property
    def next(self) -> Optional["Weekday"]:
        return WEEKDAYS[self.index + 1] if self.index < len(WEEKDAYS) - 1 else None

    @classmethod
    def parse(cls, value: Union["Weekday", str, int]) -> "Weekday":
        """Parse a weekday from its short name, full name or index.

        Raises:
            ValueError: If the value does not name a working day.
        """
        if isinstance(value, Weekday):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            if 0 <= value < len(WEEKDAYS):
                return WEEKDAYS[value]
            raise ValueError(f"Weekday index out of range: {value}")
        if isinstance(value, str):
            key = value.strip()[:3].capitalize()
            for day in cls:
                if day.value == key:
                    return day
        raise ValueError(f"Unknown weekday: {value!r}")


WEEKDAYS = [Weekday.MON, Weekday.TUE, Weekday.WED, Weekday.THU, Weekday.FRI]


class OperatorType(Enum):
    """Employment type of an operator."""

    REGULAR = "Regular"
    FLEX = "Flex"
    COORDINATOR = "Coordinator"


class OperatorStatus(Enum):
    """Current status of an operator."""

    ACTIVE = "Active"
    SICK = "Sick"
    LEAVE = "Leave"


# Task keys (normalized) that Coordinators are permitted to hold.
COORDINATOR_TASKS = frozenset({"people", "process", "off process"})

EXCEPTIONS_TASK = "exceptions"


def normalize_task_key(value: str) -> str:
    """Normalize a task name or skill for comparison.

    "Off-Process", "off_process" and "OFF PROCESS" all become "off process".
    """
    return " ".join(value.replace("-", " ").replace("_", " ").lower().split())


def is_coordinator_skill(skill: str) -> bool:
    return normalize_task_key(skill) in COORDINATOR_TASKS


@dataclass
class Operator:
    """A warehouse operator who can be assigned to tasks.

    Attributes:
        id: Unique identifier for the operator.
        name: Display name.
        operator_type: Regular, Flex or Coordinator.
        skills: Skill identifiers the operator holds.
        availability: Per-weekday availability. Days missing from the
            mapping count as unavailable.
        recurring_unavailability: Weekdays the operator is never available
            (e.g. a standing day off).
        preferred_tasks: Ordered task identifiers, most preferred first.
        status: Active, Sick or Leave. Only Active operators are scheduled.
    """

    id: str
    name: str = ""
    operator_type: OperatorType = OperatorType.REGULAR
    skills: frozenset = frozenset()
    availability: dict[Weekday, bool] = field(
        default_factory=lambda: {day: True for day in WEEKDAYS}
    )
    recurring_unavailability: frozenset = frozenset()
    preferred_tasks: tuple[str, ...] = ()
    status: OperatorStatus = OperatorStatus.ACTIVE

    def __post_init__(self):
        self.skills = frozenset(self.skills)
        self.recurring_unavailability = frozenset(self.recurring_unavailability)
        self.preferred_tasks = tuple(self.preferred_tasks)
        if not self.name:
            self.name = self.id

    @property
    def is_coordinator(self) -> bool:
        return self.operator_type == OperatorType.COORDINATOR

    @property
    def is_flex(self) -> bool:
        return self.operator_type == OperatorType.FLEX

    @property
    def is_active(self) -> bool:
        return self.status == OperatorStatus.ACTIVE

    def is_available(self, weekday: Weekday) -> bool:
        """Check if the operator can work on a given weekday."""
        if not self.is_active:
            return False
        if weekday in self.recurring_unavailability:
            return False
        return self.availability.get(weekday, False)

    def available_days(self) -> list[Weekday]:
        return [day for day in WEEKDAYS if self.is_available(day)]

    @property
    def is_rotation_exempt(self) -> bool:
        """Single-skill Flex operators can only ever do one task."""
        return self.is_flex and len(self.skills) == 1

    def has_skill(self, skill: str) -> bool:
        return skill in self.skills

    def preference_rank(self, task_id: str) -> Optional[int]:
        """Return the 0-based rank of a task in the preference list, if present."""
        try:
            return self.preferred_tasks.index(task_id)
        except ValueError:
            return None


@dataclass
class TaskType:
    """A kind of work operators are assigned to for a full day.

    Attributes:
        id: Unique identifier for the task.
        name: Display name (e.g. "Exceptions", "Process").
        required_skill: Skill an operator must hold to do the task.
        heavy: Whether the task is physically or cognitively demanding.
        preferred_type: Operator type designated for the task's slots when
            a requirement carries no per-type breakdown.
        allows_fallback: Whether Regular operators may fill Flex-designated
            slots when Flex supply runs out.
        coordinator_only: Only Coordinators may hold this task.
        display: Presentation metadata (colour, ordering). Ignored here.
    """

    id: str
    name: str = ""
    required_skill: str = ""
    heavy: bool = False
    preferred_type: Optional[OperatorType] = None
    allows_fallback: bool = True
    coordinator_only: bool = False
    display: dict = field(default_factory=dict)

    def __post_init__(self):
        if not self.name:
            self.name = self.id
        if not self.required_skill:
            self.required_skill = self.name

    @property
    def is_coordinator_task(self) -> bool:
        """Whether Coordinators are permitted to hold this task."""
        if self.coordinator_only:
            return True
        return (
            normalize_task_key(self.name) in COORDINATOR_TASKS
            or normalize_task_key(self.required_skill) in COORDINATOR_TASKS
        )

    @property
    def is_exceptions(self) -> bool:
        return normalize_task_key(self.name) == EXCEPTIONS_TASK


@dataclass
class DailyRequirement:
    """Required operator count for one task on one weekday.

    Attributes:
        task_id: Task the requirement applies to.
        weekday: Day the requirement applies to.
        count: Total number of operators required. Zero is valid.
        by_type: Optional breakdown of the count by operator type. When
            given, count is the sum of the breakdown.
    """

    task_id: str
    weekday: Weekday
    count: int = 0
    by_type: dict[OperatorType, int] = field(default_factory=dict)

    def __post_init__(self):
        if self.by_type:
            self.count = sum(self.by_type.values())


@dataclass(frozen=True)
class SchedulingRules:
    """Rule configuration for one generation run.

    Rules are immutable; use with_overrides() to derive a variant.

    Attributes:
        strict_skill_matching: Exclude operators lacking the required skill.
        allow_consecutive_heavy: Permit heavy tasks on adjacent days
            without penalty.
        prioritize_flex_for_exceptions: Favour Flex operators on Exceptions.
        respect_preferred_stations: Reward tasks on the operator's
            preference list.
        max_consecutive_days_same_task: Longest allowed run of the same task.
        fairness_weight: Scale of the heavy-task fairness term.
        workload_balance_weight: Scale of the workload balance term.
        auto_assign_coordinators: Let the algorithms place Coordinators.
        rotate_coordinators_daily: Penalize a Coordinator repeating
            yesterday's task.
        randomization_factor: Upper bound of the seeded score jitter.
    """

    strict_skill_matching: bool = True
    allow_consecutive_heavy: bool = False
    prioritize_flex_for_exceptions: bool = True
    respect_preferred_stations: bool = True
    max_consecutive_days_same_task: int = 2
    fairness_weight: float = 1.0
    workload_balance_weight: float = 1.0
    auto_assign_coordinators: bool = True
    rotate_coordinators_daily: bool = True
    randomization_factor: float = 0.0

    def with_overrides(self, **overrides) -> "SchedulingRules":
        """Return a copy of the rules with some fields replaced.

        Raises:
            ValueError: If an override names an unknown rule.
        """
        known = {f.name for f in fields(self)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ValueError(f"Unknown scheduling rule(s): {', '.join(unknown)}")
        return replace(self, **overrides)

    def to_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class Assignment:
    """One operator holding one task on one weekday."""

    operator_id: str
    weekday: Weekday
    task_id: str
    locked: bool = False


@dataclass
class DailySchedule:
    """Assignments for a single weekday.

    Attributes:
        weekday: The day this schedule covers.
        assignments: Mapping from operator ID to the task ID held that day.
    """

    weekday: Weekday
    assignments: dict[str, str] = field(default_factory=dict)

    def task_counts(self) -> dict[str, int]:
        """Number of operators on each task."""
        counts: dict[str, int] = {}
        for task_id in self.assignments.values():
            counts[task_id] = counts.get(task_id, 0) + 1
        return counts

    def operators_on(self, task_id: str) -> list[str]:
        return sorted(op for op, task in self.assignments.items() if task == task_id)


@dataclass
class WeeklySchedule:
    """A Mon-Fri schedule plus the set of locked (pinned) slots.

    Locked slots cannot be changed through assign() or unassign(); the
    algorithms treat them as fixed.

    Attributes:
        days: One DailySchedule per weekday.
        locked: (operator_id, weekday) pairs that are pinned.
    """

    days: dict[Weekday, DailySchedule] = field(
        default_factory=lambda: {day: DailySchedule(weekday=day) for day in WEEKDAYS}
    )
    locked: set = field(default_factory=set)

    @classmethod
    def from_assignments(cls, assignments: Iterable[Assignment]) -> "WeeklySchedule":
        """Build a schedule from assignment records.

        Raises:
            ValueError: If an operator appears twice on the same weekday.
        """
        schedule = cls()
        for assignment in assignments:
            current = schedule.task_of(assignment.operator_id, assignment.weekday)
            if current is not None:
                raise ValueError(
                    f"Operator {assignment.operator_id} assigned twice on "
                    f"{assignment.weekday.value}"
                )
            schedule.assign(
                assignment.operator_id,
                assignment.weekday,
                assignment.task_id,
                locked=assignment.locked,
            )
        return schedule

    def day(self, weekday: Weekday) -> DailySchedule:
        return self.days[weekday]

    def task_of(self, operator_id: str, weekday: Weekday) -> Optional[str]:
        return self.days[weekday].assignments.get(operator_id)

    def is_locked(self, operator_id: str, weekday: Weekday) -> bool:
        return (operator_id, weekday) in self.locked

    def assign(
        self,
        operator_id: str,
        weekday: Weekday,
        task_id: str,
        locked: bool = False,
    ) -> None:
        """Assign an operator to a task, replacing any task held that day.

        Raises:
            ValueError: If the slot is locked to a different task.
        """
        if self.is_locked(operator_id, weekday):
            if self.task_of(operator_id, weekday) != task_id:
                raise ValueError(
                    f"Slot {operator_id}/{weekday.value} is locked"
                )
            return
        self.days[weekday].assignments[operator_id] = task_id
        if locked:
            self.locked.add((operator_id, weekday))

    def unassign(self, operator_id: str, weekday: Weekday) -> None:
        """Remove an operator's task for a day.

        Raises:
            ValueError: If the slot is locked.
        """
        if self.is_locked(operator_id, weekday):
            raise ValueError(f"Slot {operator_id}/{weekday.value} is locked")
        self.days[weekday].assignments.pop(operator_id, None)

    def count(self, task_id: str, weekday: Weekday) -> int:
        return sum(1 for task in self.days[weekday].assignments.values() if task == task_id)

    def operator_tasks(self, operator_id: str) -> dict[Weekday, str]:
        """Tasks held by one operator, keyed by weekday."""
        return {
            day: self.days[day].assignments[operator_id]
            for day in WEEKDAYS
            if operator_id in self.days[day].assignments
        }

    def assignments(self) -> list[Assignment]:
        """All assignments ordered by weekday, then operator ID."""
        result = []
        for day in WEEKDAYS:
            for operator_id in sorted(self.days[day].assignments):
                result.append(
                    Assignment(
                        operator_id=operator_id,
                        weekday=day,
                        task_id=self.days[day].assignments[operator_id],
                        locked=self.is_locked(operator_id, day),
                    )
                )
        return result

    def assignment_set(self) -> tuple[tuple[str, str, str], ...]:
        """Canonical (weekday, operator, task) tuples for comparison."""
        return tuple(
            (a.weekday.value, a.operator_id, a.task_id) for a in self.assignments()
        )

    def fingerprint(self) -> str:
        """Stable hash of the assignment set."""
        payload = ";".join("|".join(item) for item in self.assignment_set())
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]

    def copy(self) -> "WeeklySchedule":
        return WeeklySchedule(
            days={
                day: DailySchedule(weekday=day, assignments=dict(daily.assignments))
                for day, daily in self.days.items()
            },
            locked=set(self.locked),
        )

    def __len__(self) -> int:
        return sum(len(daily.assignments) for daily in self.days.values())


@dataclass
class Domain:
    """Read-only snapshot of everything a generation run needs.

    Attributes:
        operators: Operators that may be scheduled.
        tasks: Task types.
        requirements: Per-task, per-day staffing requirements.
        locked_assignments: Pinned assignments from a prior schedule.
        enforcement_targets: Optional exact (task_id, weekday) counts the
            enforcement phase reconciles to. Defaults to the requirements.
    """

    operators: list[Operator]
    tasks: list[TaskType]
    requirements: list[DailyRequirement] = field(default_factory=list)
    locked_assignments: list[Assignment] = field(default_factory=list)
    enforcement_targets: Optional[dict[tuple[str, Weekday], int]] = None
    _operator_index: dict = field(default_factory=dict, init=False, repr=False)
    _task_index: dict = field(default_factory=dict, init=False, repr=False)
    _requirement_index: dict = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self):
        self._operator_index = {op.id: op for op in self.operators}
        self._task_index = {task.id: task for task in self.tasks}
        self._requirement_index = {}
        for req in self.requirements:
            key = (req.task_id, req.weekday)
            if key in self._requirement_index:
                # Repeated entries add up.
                existing = self._requirement_index[key]
                merged = dict(existing.by_type)
                for op_type, n in req.by_type.items():
                    merged[op_type] = merged.get(op_type, 0) + n
                self._requirement_index[key] = DailyRequirement(
                    task_id=req.task_id,
                    weekday=req.weekday,
                    count=existing.count + req.count,
                    by_type=merged if existing.by_type and req.by_type else {},
                )
            else:
                self._requirement_index[key] = req

    def operator(self, operator_id: str) -> Optional[Operator]:
        return self._operator_index.get(operator_id)

    def task(self, task_id: str) -> Optional[TaskType]:
        return self._task_index.get(task_id)

    def requirement(self, task_id: str, weekday: Weekday) -> Optional[DailyRequirement]:
        return self._requirement_index.get((task_id, weekday))

    def required(self, task_id: str, weekday: Weekday) -> int:
        """Required count for a task on a day (0 when nothing is required)."""
        req = self._requirement_index.get((task_id, weekday))
        return req.count if req else 0

    @property
    def active_operators(self) -> list[Operator]:
        return [op for op in self.operators if op.is_active]

    def slot_quotas(
        self, task: TaskType, weekday: Weekday
    ) -> list[tuple[Optional[OperatorType], int]]:
        """Split a day's requirement into per-type quotas.

        A type of None means any type-compatible operator counts as exact.
        Flex quotas come first so fallback only happens after exact supply
        is used up.
        """
        req = self.requirement(task.id, weekday)
        if req is None or req.count <= 0:
            return []
        if req.by_type:
            order = [OperatorType.FLEX, OperatorType.REGULAR, OperatorType.COORDINATOR]
            return [(t, req.by_type[t]) for t in order if req.by_type.get(t, 0) > 0]
        return [(task.preferred_type, req.count)]

    def is_exact_type(self, operator: Operator, task: TaskType, weekday: Weekday) -> bool:
        """Whether the operator's type matches the slot types designated for the day."""
        designated = {t for t, _ in self.slot_quotas(task, weekday)}
        if not designated or None in designated:
            return True
        return operator.operator_type in designated

    def is_type_compatible(
        self, operator: Operator, task: TaskType, weekday: Weekday
    ) -> bool:
        """Exact type, or a Regular operator usable as fallback on a Flex slot."""
        if self.is_exact_type(operator, task, weekday):
            return True
        designated = {t for t, _ in self.slot_quotas(task, weekday)}
        return (
            task.allows_fallback
            and operator.operator_type == OperatorType.REGULAR
            and OperatorType.FLEX in designated
        )

    def staffing_targets(self) -> dict[tuple[str, Weekday], int]:
        """Exact counts the enforcement phase reconciles to."""
        if self.enforcement_targets is not None:
            return dict(self.enforcement_targets)
        return {key: req.count for key, req in self._requirement_index.items()}

    def locked_schedule(self) -> WeeklySchedule:
        """A schedule holding only the locked assignments."""
        return WeeklySchedule.from_assignments(
            replace(a, locked=True) for a in self.locked_assignments
        )


# Names of the objective vector components, in dominance order.
OBJECTIVE_NAMES = (
    "total_score",
    "fairness",
    "skill_match_rate",
    "preference_rate",
    "coverage_rate",
)


@dataclass(frozen=True)
class ObjectiveVector:
    """Objective values of one candidate. Higher is better for every field.

    Attributes:
        total_score: Aggregate assignment score under the base rules.
        fairness: 1 / (1 + std-dev of per-operator assignment counts).
        skill_match_rate: Fraction of assignments whose operator has the skill.
        preference_rate: Fraction of assignments, among operators with
            preferences, that land on a preferred task.
        coverage_rate: Fraction of required slots that are filled.
    """

    total_score: float
    fairness: float
    skill_match_rate: float
    preference_rate: float
    coverage_rate: float

    def as_tuple(self) -> tuple[float, ...]:
        return tuple(getattr(self, name) for name in OBJECTIVE_NAMES)

    def to_dict(self) -> dict[str, float]:
        return {name: getattr(self, name) for name in OBJECTIVE_NAMES}


@dataclass
class ScoredCandidate:
    """A candidate schedule with its objective vector and trace.

    Attributes:
        candidate_id: Label of the grid point that produced the candidate.
        schedule: The weekly schedule.
        objectives: Objective values.
        profile: Name of the rule profile used.
        seed: Seed used for generation.
        rules: Rules the candidate was generated under.
        diagnostics: Validator output for the schedule.
        trace: Execution details (timings, tabu stop reason, ...).
    """

    candidate_id: str
    schedule: WeeklySchedule
    objectives: ObjectiveVector
    profile: str = ""
    seed: int = 0
    rules: Optional[SchedulingRules] = None
    diagnostics: list = field(default_factory=list)
    trace: dict = field(default_factory=dict)
