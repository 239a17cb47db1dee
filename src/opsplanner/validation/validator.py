"""Validation module for verifying schedule correctness.

This module is the single source of truth for schedule diagnostics. It is
used by the generation engine as a self-check and by external callers as a
read-only audit. Validation never mutates its input.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional, Union

from opsplanner.domain.models import (
    WEEKDAYS,
    Assignment,
    Domain,
    SchedulingRules,
    Weekday,
    WeeklySchedule,
)


class DiagnosticKind(Enum):
    """Types of schedule diagnostics."""

    SKILL_MISMATCH = "skill_mismatch"
    AVAILABILITY_CONFLICT = "availability_conflict"
    DOUBLE_ASSIGNMENT = "double_assignment"
    UNDERSTAFFED = "understaffed"
    OVERSTAFFED = "overstaffed"
    COORDINATOR_RESTRICTION = "coordinator_restriction"
    CONSECUTIVE_HEAVY = "consecutive_heavy"
    UNKNOWN_OPERATOR = "unknown_operator"
    UNKNOWN_TASK = "unknown_task"


class Severity(Enum):
    """How serious a diagnostic is."""

    ERROR = "error"
    WARNING = "warning"


@dataclass
class Diagnostic:
    """A single schedule diagnostic."""

    kind: DiagnosticKind
    message: str
    severity: Severity = Severity.ERROR
    weekday: Optional[Weekday] = None
    operator_id: Optional[str] = None
    task_id: Optional[str] = None
    have: Optional[int] = None
    need: Optional[int] = None

    def __str__(self) -> str:
        parts = [f"[{self.kind.value}]"]
        if self.weekday is not None:
            parts.append(f"{self.weekday.value}")
        if self.operator_id:
            parts.append(f"Operator {self.operator_id}:")
        parts.append(self.message)
        if self.have is not None and self.need is not None:
            parts.append(f"(have {self.have}, need {self.need})")
        return " ".join(parts)

    def key(self) -> tuple:
        """Identity of the diagnostic, ignoring the message text."""
        return (
            self.kind.value,
            self.weekday.index if self.weekday else -1,
            self.operator_id or "",
            self.task_id or "",
        )


def understaffed(task_id: str, weekday: Weekday, have: int, need: int) -> Diagnostic:
    return Diagnostic(
        kind=DiagnosticKind.UNDERSTAFFED,
        message=f"Task {task_id} is understaffed",
        severity=Severity.WARNING,
        weekday=weekday,
        task_id=task_id,
        have=have,
        need=need,
    )


def overstaffed(task_id: str, weekday: Weekday, have: int, need: int) -> Diagnostic:
    return Diagnostic(
        kind=DiagnosticKind.OVERSTAFFED,
        message=f"Task {task_id} is overstaffed",
        severity=Severity.WARNING,
        weekday=weekday,
        task_id=task_id,
        have=have,
        need=need,
    )


@dataclass
class ValidationResult:
    """Result of validating a schedule."""

    is_valid: bool = True
    diagnostics: list[Diagnostic] = field(default_factory=list)

    def add(self, diagnostic: Diagnostic) -> None:
        """Add a diagnostic. Errors mark the result as invalid."""
        self.diagnostics.append(diagnostic)
        if diagnostic.severity == Severity.ERROR:
            self.is_valid = False

    @property
    def errors(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == Severity.ERROR]

    @property
    def warnings(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == Severity.WARNING]

    def of_kind(self, kind: DiagnosticKind) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.kind == kind]


class ScheduleValidator:
    """Validates schedules against the domain and rules.

    Example:
        >>> validator = ScheduleValidator()
        >>> result = validator.validate(schedule, domain, rules)
        >>> for diagnostic in result.diagnostics:
        ...     print(diagnostic)
    """

    def __init__(self, include_staffing: bool = True):
        self.include_staffing = include_staffing

    def validate(
        self,
        schedule: Union[WeeklySchedule, Iterable[Assignment]],
        domain: Domain,
        rules: Optional[SchedulingRules] = None,
    ) -> ValidationResult:
        """Validate a schedule.

        Args:
            schedule: A WeeklySchedule, or raw assignment records (which may
                contain double bookings).
            domain: Domain the schedule was built for.
            rules: Rules in force. Defaults to SchedulingRules().

        Returns:
            ValidationResult listing every violation found.
        """
        rules = rules or SchedulingRules()
        result = ValidationResult()
        by_day = self._group(schedule)

        for day in WEEKDAYS:
            for operator_id in sorted(by_day[day]):
                tasks = by_day[day][operator_id]
                if len(tasks) > 1:
                    result.add(
                        Diagnostic(
                            kind=DiagnosticKind.DOUBLE_ASSIGNMENT,
                            message=f"Assigned to {len(tasks)} tasks: {', '.join(tasks)}",
                            weekday=day,
                            operator_id=operator_id,
                        )
                    )
                for task_id in tasks:
                    self._validate_assignment(operator_id, day, task_id, domain, rules, result)

        self._validate_consecutive_heavy(by_day, domain, rules, result)

        if self.include_staffing:
            self._validate_staffing(by_day, domain, result)

        return result

    @staticmethod
    def _group(
        schedule: Union[WeeklySchedule, Iterable[Assignment]],
    ) -> dict[Weekday, dict[str, list[str]]]:
        by_day: dict[Weekday, dict[str, list[str]]] = {day: {} for day in WEEKDAYS}
        if isinstance(schedule, WeeklySchedule):
            for day in WEEKDAYS:
                for operator_id, task_id in schedule.day(day).assignments.items():
                    by_day[day][operator_id] = [task_id]
        else:
            for a in schedule:
                by_day[a.weekday].setdefault(a.operator_id, []).append(a.task_id)
        return by_day

    def _validate_assignment(
        self,
        operator_id: str,
        day: Weekday,
        task_id: str,
        domain: Domain,
        rules: SchedulingRules,
        result: ValidationResult,
    ) -> None:
        """Validate a single assignment."""
        operator = domain.operator(operator_id)
        task = domain.task(task_id)
        if operator is None:
            result.add(
                Diagnostic(
                    kind=DiagnosticKind.UNKNOWN_OPERATOR,
                    message=f"Unknown operator ID: {operator_id}",
                    weekday=day,
                    operator_id=operator_id,
                    task_id=task_id,
                )
            )
            return
        if task is None:
            result.add(
                Diagnostic(
                    kind=DiagnosticKind.UNKNOWN_TASK,
                    message=f"Unknown task ID: {task_id}",
                    weekday=day,
                    operator_id=operator_id,
                    task_id=task_id,
                )
            )
            return

        if not operator.has_skill(task.required_skill):
            result.add(
                Diagnostic(
                    kind=DiagnosticKind.SKILL_MISMATCH,
                    message=f"Lacks skill '{task.required_skill}' for {task.name}",
                    severity=Severity.ERROR if rules.strict_skill_matching else Severity.WARNING,
                    weekday=day,
                    operator_id=operator_id,
                    task_id=task_id,
                )
            )

        if not operator.is_available(day):
            reason = (
                f"status is {operator.status.value}"
                if not operator.is_active
                else "not available"
            )
            result.add(
                Diagnostic(
                    kind=DiagnosticKind.AVAILABILITY_CONFLICT,
                    message=f"Assigned to {task.name} but {reason}",
                    weekday=day,
                    operator_id=operator_id,
                    task_id=task_id,
                )
            )

        if operator.is_coordinator and not task.is_coordinator_task:
            result.add(
                Diagnostic(
                    kind=DiagnosticKind.COORDINATOR_RESTRICTION,
                    message=f"Coordinator assigned to {task.name}",
                    weekday=day,
                    operator_id=operator_id,
                    task_id=task_id,
                )
            )
        elif task.coordinator_only and not operator.is_coordinator:
            result.add(
                Diagnostic(
                    kind=DiagnosticKind.COORDINATOR_RESTRICTION,
                    message=f"{task.name} is reserved for Coordinators",
                    weekday=day,
                    operator_id=operator_id,
                    task_id=task_id,
                )
            )

    def _validate_consecutive_heavy(
        self,
        by_day: dict[Weekday, dict[str, list[str]]],
        domain: Domain,
        rules: SchedulingRules,
        result: ValidationResult,
    ) -> None:
        """Warn about heavy tasks on adjacent days."""
        if rules.allow_consecutive_heavy:
            return
        heavy = {task.id for task in domain.tasks if task.heavy}
        for operator in domain.operators:
            if operator.is_rotation_exempt:
                continue
            for day in WEEKDAYS[1:]:
                today = by_day[day].get(operator.id, [])
                yesterday = by_day[day.previous].get(operator.id, [])
                if any(t in heavy for t in today) and any(t in heavy for t in yesterday):
                    result.add(
                        Diagnostic(
                            kind=DiagnosticKind.CONSECUTIVE_HEAVY,
                            message=f"Heavy tasks on {day.previous.value} and {day.value}",
                            severity=Severity.WARNING,
                            weekday=day,
                            operator_id=operator.id,
                        )
                    )

    def _validate_staffing(
        self,
        by_day: dict[Weekday, dict[str, list[str]]],
        domain: Domain,
        result: ValidationResult,
    ) -> None:
        """Compare per-task counts with the staffing targets.

        Explicit enforcement targets replace the requirement for the slots
        they name; other slots are compared with the requirement.
        """
        targets = domain.staffing_targets()
        for day in WEEKDAYS:
            counts: dict[str, int] = {}
            for tasks in by_day[day].values():
                for task_id in tasks:
                    counts[task_id] = counts.get(task_id, 0) + 1

            task_ids = [task.id for task in domain.tasks]
            task_ids += sorted(t for t in counts if domain.task(t) is None)
            for task_id in task_ids:
                have = counts.get(task_id, 0)
                need = targets.get((task_id, day), domain.required(task_id, day))
                if have < need:
                    result.add(understaffed(task_id, day, have, need))
                elif have > need:
                    result.add(overstaffed(task_id, day, have, need))
