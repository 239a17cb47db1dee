"""Shared fixtures for the scheduling tests."""

import pytest

from opsplanner.domain.models import (
    WEEKDAYS,
    DailyRequirement,
    Domain,
    Operator,
    OperatorType,
    SchedulingRules,
    TaskType,
    Weekday,
)


def create_test_operator(
    id: str,
    skills=(),
    operator_type: OperatorType = OperatorType.REGULAR,
    days=None,
    preferred=(),
) -> Operator:
    """Helper to create test operators (available every day by default)."""
    available = set(WEEKDAYS if days is None else days)
    return Operator(
        id=id,
        name=id.upper(),
        operator_type=operator_type,
        skills=frozenset(skills),
        availability={day: day in available for day in WEEKDAYS},
        preferred_tasks=tuple(preferred),
    )


def every_day(task_id: str, count: int) -> list[DailyRequirement]:
    return [DailyRequirement(task_id, day, count) for day in WEEKDAYS]


@pytest.fixture
def rules():
    """Default scheduling rules."""
    return SchedulingRules()


@pytest.fixture
def warehouse_tasks():
    return [
        TaskType("pick", "Picking", "picking"),
        TaskType("pack", "Packing", "packing"),
        TaskType("ts", "Troubleshooter", "troubleshooter", heavy=True),
        TaskType("exc", "Exceptions", "exceptions", heavy=True),
        TaskType("process", "Process", "Process", coordinator_only=True),
        TaskType("people", "People", "People", coordinator_only=True),
    ]


@pytest.fixture
def warehouse_operators():
    regular = OperatorType.REGULAR
    flex = OperatorType.FLEX
    coordinator = OperatorType.COORDINATOR
    weekdays_but_wed = [d for d in WEEKDAYS if d != Weekday.WED]
    return [
        create_test_operator("r1", ["picking", "packing", "troubleshooter"], regular),
        create_test_operator("r2", ["picking", "packing"], regular, preferred=["pack"]),
        create_test_operator("r3", ["picking", "troubleshooter", "exceptions"], regular),
        create_test_operator("r4", ["packing", "exceptions"], regular),
        create_test_operator("r5", ["picking", "packing", "troubleshooter"], regular),
        create_test_operator("r6", ["packing", "picking"], regular, days=weekdays_but_wed),
        create_test_operator("r7", ["troubleshooter", "picking"], regular, preferred=["ts"]),
        create_test_operator("r8", ["packing"], regular),
        create_test_operator("f1", ["exceptions", "picking"], flex),
        create_test_operator("f2", ["exceptions"], flex),
        create_test_operator("c1", ["Process", "People"], coordinator),
        create_test_operator("c2", ["Process", "People"], coordinator),
    ]


@pytest.fixture
def warehouse_domain(warehouse_operators, warehouse_tasks):
    """Twelve operators covering six tasks, eight slots per day."""
    requirements = (
        every_day("pick", 2)
        + every_day("pack", 2)
        + every_day("ts", 1)
        + every_day("exc", 1)
        + every_day("process", 1)
        + every_day("people", 1)
    )
    return Domain(
        operators=warehouse_operators,
        tasks=warehouse_tasks,
        requirements=requirements,
    )
