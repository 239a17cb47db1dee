"""Domain models and configuration checks for scheduling."""

from opsplanner.domain.checks import (
    ConfigurationIssue,
    ConfigurationIssueType,
    check_domain,
    check_rules,
)
from opsplanner.domain.loader import (
    domain_from_dict,
    load_assignments,
    load_domain,
    schedule_from_dict,
    schedule_to_dict,
)
from opsplanner.domain.models import (
    OBJECTIVE_NAMES,
    WEEKDAYS,
    Assignment,
    DailyRequirement,
    DailySchedule,
    Domain,
    ObjectiveVector,
    Operator,
    OperatorStatus,
    OperatorType,
    ScoredCandidate,
    SchedulingRules,
    TaskType,
    Weekday,
    WeeklySchedule,
)

__all__ = [
    # Models
    "OBJECTIVE_NAMES",
    "WEEKDAYS",
    "Assignment",
    "DailyRequirement",
    "DailySchedule",
    "Domain",
    "ObjectiveVector",
    "Operator",
    "OperatorStatus",
    "OperatorType",
    "ScoredCandidate",
    "SchedulingRules",
    "TaskType",
    "Weekday",
    "WeeklySchedule",
    # Checks
    "ConfigurationIssue",
    "ConfigurationIssueType",
    "check_domain",
    "check_rules",
    # Loader
    "domain_from_dict",
    "load_assignments",
    "load_domain",
    "schedule_from_dict",
    "schedule_to_dict",
]
