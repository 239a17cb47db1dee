"""Configuration checks run before any scheduling.

A malformed domain would make the algorithms produce schedules that break
hard invariants (e.g. a Coordinator on a forbidden task), so these checks
abort generation instead of producing diagnostics.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from opsplanner.domain.models import (
    Domain,
    OperatorType,
    SchedulingRules,
    is_coordinator_skill,
)


class ConfigurationIssueType(Enum):
    """Types of fatal configuration problems."""

    DUPLICATE_OPERATOR = "duplicate_operator"
    DUPLICATE_TASK = "duplicate_task"
    UNKNOWN_TASK = "unknown_task"
    UNKNOWN_OPERATOR = "unknown_operator"
    NEGATIVE_REQUIREMENT = "negative_requirement"
    COORDINATOR_SKILL = "coordinator_skill"
    COORDINATOR_LOCKED_TASK = "coordinator_locked_task"
    DUPLICATE_LOCK = "duplicate_lock"
    INVALID_RULE = "invalid_rule"


@dataclass
class ConfigurationIssue:
    """A single fatal configuration problem."""

    issue_type: ConfigurationIssueType
    message: str
    operator_id: Optional[str] = None
    task_id: Optional[str] = None

    def __str__(self) -> str:
        return f"[{self.issue_type.value}] {self.message}"


def check_rules(rules: SchedulingRules) -> list[ConfigurationIssue]:
    """Validate rule values."""
    issues = []
    if rules.max_consecutive_days_same_task < 1:
        issues.append(
            ConfigurationIssue(
                ConfigurationIssueType.INVALID_RULE,
                "max_consecutive_days_same_task must be at least 1, got "
                f"{rules.max_consecutive_days_same_task}",
            )
        )
    for name in ("fairness_weight", "workload_balance_weight", "randomization_factor"):
        value = getattr(rules, name)
        if value < 0:
            issues.append(
                ConfigurationIssue(
                    ConfigurationIssueType.INVALID_RULE,
                    f"{name} must not be negative, got {value}",
                )
            )
    return issues


def check_domain(
    domain: Domain, rules: Optional[SchedulingRules] = None
) -> list[ConfigurationIssue]:
    """Check a domain snapshot (and optionally rules) for fatal problems.

    Args:
        domain: The domain to check.
        rules: Rules to check alongside the domain.

    Returns:
        List of issues. An empty list means generation may proceed.
    """
    issues: list[ConfigurationIssue] = []

    seen_ops: set[str] = set()
    for op in domain.operators:
        if op.id in seen_ops:
            issues.append(
                ConfigurationIssue(
                    ConfigurationIssueType.DUPLICATE_OPERATOR,
                    f"Operator {op.id} is defined more than once",
                    operator_id=op.id,
                )
            )
        seen_ops.add(op.id)

        if op.operator_type == OperatorType.COORDINATOR:
            bad = sorted(s for s in op.skills if not is_coordinator_skill(s))
            if bad:
                issues.append(
                    ConfigurationIssue(
                        ConfigurationIssueType.COORDINATOR_SKILL,
                        f"Coordinator {op.id} has skills outside People/Process/"
                        f"Off-Process: {', '.join(bad)}",
                        operator_id=op.id,
                    )
                )

    seen_tasks: set[str] = set()
    for task in domain.tasks:
        if task.id in seen_tasks:
            issues.append(
                ConfigurationIssue(
                    ConfigurationIssueType.DUPLICATE_TASK,
                    f"Task {task.id} is defined more than once",
                    task_id=task.id,
                )
            )
        seen_tasks.add(task.id)

    for req in domain.requirements:
        if req.task_id not in seen_tasks:
            issues.append(
                ConfigurationIssue(
                    ConfigurationIssueType.UNKNOWN_TASK,
                    f"Requirement for {req.weekday.value} references unknown task "
                    f"{req.task_id}",
                    task_id=req.task_id,
                )
            )
        negative = req.count < 0 or any(n < 0 for n in req.by_type.values())
        if negative:
            issues.append(
                ConfigurationIssue(
                    ConfigurationIssueType.NEGATIVE_REQUIREMENT,
                    f"Requirement for {req.task_id} on {req.weekday.value} is negative",
                    task_id=req.task_id,
                )
            )

    if domain.enforcement_targets:
        for (task_id, day), count in sorted(
            domain.enforcement_targets.items(), key=lambda kv: (kv[0][0], kv[0][1].index)
        ):
            if task_id not in seen_tasks:
                issues.append(
                    ConfigurationIssue(
                        ConfigurationIssueType.UNKNOWN_TASK,
                        f"Enforcement target for {day.value} references unknown task "
                        f"{task_id}",
                        task_id=task_id,
                    )
                )
            if count < 0:
                issues.append(
                    ConfigurationIssue(
                        ConfigurationIssueType.NEGATIVE_REQUIREMENT,
                        f"Enforcement target for {task_id} on {day.value} is negative",
                        task_id=task_id,
                    )
                )

    locked_slots: set = set()
    for lock in domain.locked_assignments:
        op = domain.operator(lock.operator_id)
        task = domain.task(lock.task_id)
        if op is None:
            issues.append(
                ConfigurationIssue(
                    ConfigurationIssueType.UNKNOWN_OPERATOR,
                    f"Locked assignment references unknown operator {lock.operator_id}",
                    operator_id=lock.operator_id,
                )
            )
        if task is None:
            issues.append(
                ConfigurationIssue(
                    ConfigurationIssueType.UNKNOWN_TASK,
                    f"Locked assignment references unknown task {lock.task_id}",
                    task_id=lock.task_id,
                )
            )
        if op is not None and task is not None and op.is_coordinator:
            if not task.is_coordinator_task:
                issues.append(
                    ConfigurationIssue(
                        ConfigurationIssueType.COORDINATOR_LOCKED_TASK,
                        f"Coordinator {op.id} is locked to {task.name} on "
                        f"{lock.weekday.value}",
                        operator_id=op.id,
                        task_id=task.id,
                    )
                )
        slot = (lock.operator_id, lock.weekday)
        if slot in locked_slots:
            issues.append(
                ConfigurationIssue(
                    ConfigurationIssueType.DUPLICATE_LOCK,
                    f"Operator {lock.operator_id} has more than one locked "
                    f"assignment on {lock.weekday.value}",
                    operator_id=lock.operator_id,
                )
            )
        locked_slots.add(slot)

    if rules is not None:
        issues.extend(check_rules(rules))

    return issues
