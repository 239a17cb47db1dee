"""JSON snapshot adapter for domains and schedules.

Builds Domain objects from plain dictionaries (as read from JSON) and
converts schedules to and from their JSON form. Malformed input raises
ValueError here, at the boundary, so the algorithms only ever see
well-typed objects.

Domain document:
    {
        "operators": [{"id": "op-1", "type": "Flex", "skills": ["picking"],
                       "availability": {"Mon": true, ...},
                       "recurring_unavailability": ["Fri"],
                       "preferred_tasks": ["picking"], "status": "Active"}],
        "tasks": [{"id": "picking", "name": "Picking", "required_skill": "picking",
                   "heavy": false, "preferred_type": "Flex"}],
        "requirements": [{"task": "picking", "day": "Mon", "count": 2,
                          "by_type": {"Flex": 1, "Regular": 1}}],
        "locked": [{"operator": "op-1", "day": "Mon", "task": "picking"}],
        "enforcement_targets": [{"task": "picking", "day": "Mon", "count": 2}]
    }
"""

import json
from pathlib import Path
from typing import Any, Union

from opsplanner.domain.models import (
    WEEKDAYS,
    Assignment,
    DailyRequirement,
    Domain,
    Operator,
    OperatorStatus,
    OperatorType,
    TaskType,
    Weekday,
    WeeklySchedule,
)


def _enum(enum_cls, value: Any, what: str):
    for member in enum_cls:
        if isinstance(value, str) and value.lower() in (member.value.lower(), member.name.lower()):
            return member
    raise ValueError(f"Unknown {what}: {value!r}")


def _require(data: dict, key: str, what: str):
    if key not in data:
        raise ValueError(f"{what} is missing '{key}'")
    return data[key]


def operator_from_dict(data: dict) -> Operator:
    operator_id = str(_require(data, "id", "Operator"))
    availability = {day: True for day in WEEKDAYS}
    if "availability" in data:
        raw = data["availability"]
        if isinstance(raw, dict):
            availability = {day: False for day in WEEKDAYS}
            for key, value in raw.items():
                availability[Weekday.parse(key)] = bool(value)
        elif isinstance(raw, list):
            # A list names the available days.
            available = {Weekday.parse(d) for d in raw}
            availability = {day: day in available for day in WEEKDAYS}
        else:
            raise ValueError(f"Operator {operator_id}: availability must be an object or list")

    return Operator(
        id=operator_id,
        name=str(data.get("name", "")),
        operator_type=_enum(OperatorType, data.get("type", "Regular"), "operator type"),
        skills=frozenset(data.get("skills", [])),
        availability=availability,
        recurring_unavailability=frozenset(
            Weekday.parse(d) for d in data.get("recurring_unavailability", [])
        ),
        preferred_tasks=tuple(data.get("preferred_tasks", [])),
        status=_enum(OperatorStatus, data.get("status", "Active"), "operator status"),
    )


def task_from_dict(data: dict) -> TaskType:
    preferred = data.get("preferred_type")
    return TaskType(
        id=str(_require(data, "id", "Task")),
        name=str(data.get("name", "")),
        required_skill=str(data.get("required_skill", "")),
        heavy=bool(data.get("heavy", False)),
        preferred_type=_enum(OperatorType, preferred, "operator type") if preferred else None,
        allows_fallback=bool(data.get("allows_fallback", True)),
        coordinator_only=bool(data.get("coordinator_only", False)),
        display=dict(data.get("display", {})),
    )


def requirement_from_dict(data: dict) -> DailyRequirement:
    by_type = {
        _enum(OperatorType, key, "operator type"): int(value)
        for key, value in data.get("by_type", {}).items()
    }
    return DailyRequirement(
        task_id=str(_require(data, "task", "Requirement")),
        weekday=Weekday.parse(_require(data, "day", "Requirement")),
        count=int(data.get("count", 0)),
        by_type=by_type,
    )


def assignment_from_dict(data: dict, locked: bool = False) -> Assignment:
    return Assignment(
        operator_id=str(_require(data, "operator", "Assignment")),
        weekday=Weekday.parse(_require(data, "day", "Assignment")),
        task_id=str(_require(data, "task", "Assignment")),
        locked=bool(data.get("locked", locked)),
    )


def domain_from_dict(data: dict) -> Domain:
    """Build a Domain from a dictionary.

    Raises:
        ValueError: If required keys are missing or values are malformed.
    """
    if not isinstance(data, dict):
        raise ValueError("Domain document must be a JSON object")
    try:
        targets = None
        if "enforcement_targets" in data:
            targets = {}
            for item in data["enforcement_targets"]:
                key = (
                    str(_require(item, "task", "Enforcement target")),
                    Weekday.parse(_require(item, "day", "Enforcement target")),
                )
                targets[key] = int(_require(item, "count", "Enforcement target"))

        return Domain(
            operators=[operator_from_dict(o) for o in data.get("operators", [])],
            tasks=[task_from_dict(t) for t in data.get("tasks", [])],
            requirements=[requirement_from_dict(r) for r in data.get("requirements", [])],
            locked_assignments=[
                assignment_from_dict(a, locked=True) for a in data.get("locked", [])
            ],
            enforcement_targets=targets,
        )
    except (TypeError, AttributeError) as e:
        raise ValueError(f"Malformed domain document: {e}") from e


def _read_json(path: Union[str, Path]) -> Any:
    try:
        with open(path) as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {path}: {e}") from e


def load_domain(path: Union[str, Path]) -> Domain:
    """Load a Domain from a JSON file."""
    return domain_from_dict(_read_json(path))


def load_assignments(path: Union[str, Path]) -> list[Assignment]:
    """Load raw assignment records from a JSON file.

    Accepts either a list of assignments or an object with an
    "assignments" list. Duplicates are kept so validation can report them.
    """
    data = _read_json(path)
    if isinstance(data, dict):
        data = data.get("assignments", [])
    if not isinstance(data, list):
        raise ValueError("Schedule document must be a list of assignments")
    try:
        return [assignment_from_dict(item) for item in data]
    except (TypeError, AttributeError) as e:
        raise ValueError(f"Malformed schedule document: {e}") from e


def schedule_to_dict(schedule: WeeklySchedule) -> dict:
    """Convert a schedule to a JSON-serializable dictionary."""
    return {
        "assignments": [
            {
                "operator": a.operator_id,
                "day": a.weekday.value,
                "task": a.task_id,
                "locked": a.locked,
            }
            for a in schedule.assignments()
        ]
    }


def schedule_from_dict(data: dict) -> WeeklySchedule:
    """Build a WeeklySchedule from schedule_to_dict() output.

    Raises:
        ValueError: On malformed records or double bookings.
    """
    return WeeklySchedule.from_assignments(
        assignment_from_dict(item) for item in data.get("assignments", [])
    )
