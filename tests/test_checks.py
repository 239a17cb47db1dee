"""Tests for configuration checks."""

from opsplanner.domain.checks import ConfigurationIssueType, check_domain, check_rules
from opsplanner.domain.models import (
    Assignment,
    DailyRequirement,
    Domain,
    Operator,
    OperatorType,
    SchedulingRules,
    TaskType,
    Weekday,
)


def create_test_domain(**kwargs) -> Domain:
    defaults = dict(
        operators=[
            Operator(id="a", skills={"pick"}),
            Operator(id="c", operator_type=OperatorType.COORDINATOR, skills={"People"}),
        ],
        tasks=[TaskType("pick"), TaskType("people", "People")],
        requirements=[DailyRequirement("pick", Weekday.MON, 1)],
    )
    defaults.update(kwargs)
    return Domain(**defaults)


def issue_types(issues):
    return {issue.issue_type for issue in issues}


class TestCheckDomain:
    """Tests for check_domain."""

    def test_clean_domain(self):
        assert check_domain(create_test_domain(), SchedulingRules()) == []

    def test_unknown_task_in_requirement(self):
        domain = create_test_domain(
            requirements=[DailyRequirement("missing", Weekday.TUE, 1)]
        )
        issues = check_domain(domain)
        assert issue_types(issues) == {ConfigurationIssueType.UNKNOWN_TASK}
        assert issues[0].task_id == "missing"

    def test_negative_requirement(self):
        domain = create_test_domain(requirements=[DailyRequirement("pick", Weekday.MON, -1)])
        assert ConfigurationIssueType.NEGATIVE_REQUIREMENT in issue_types(check_domain(domain))

    def test_coordinator_with_regular_skill(self):
        domain = create_test_domain(
            operators=[
                Operator(
                    id="c",
                    operator_type=OperatorType.COORDINATOR,
                    skills={"People", "picking"},
                )
            ]
        )
        issues = check_domain(domain)
        assert issue_types(issues) == {ConfigurationIssueType.COORDINATOR_SKILL}
        assert "picking" in str(issues[0])

    def test_coordinator_locked_to_regular_task(self):
        domain = create_test_domain(
            locked_assignments=[Assignment("c", Weekday.MON, "pick")]
        )
        assert issue_types(check_domain(domain)) == {
            ConfigurationIssueType.COORDINATOR_LOCKED_TASK
        }

    def test_lock_references_unknown_entities(self):
        domain = create_test_domain(
            locked_assignments=[Assignment("ghost", Weekday.MON, "nowhere")]
        )
        assert issue_types(check_domain(domain)) == {
            ConfigurationIssueType.UNKNOWN_OPERATOR,
            ConfigurationIssueType.UNKNOWN_TASK,
        }

    def test_duplicates(self):
        domain = create_test_domain(
            operators=[Operator(id="a"), Operator(id="a")],
            tasks=[TaskType("pick"), TaskType("pick")],
            locked_assignments=[
                Assignment("a", Weekday.MON, "pick"),
                Assignment("a", Weekday.MON, "pick"),
            ],
        )
        assert issue_types(check_domain(domain)) == {
            ConfigurationIssueType.DUPLICATE_OPERATOR,
            ConfigurationIssueType.DUPLICATE_TASK,
            ConfigurationIssueType.DUPLICATE_LOCK,
        }

    def test_enforcement_target_unknown_task(self):
        domain = create_test_domain(enforcement_targets={("missing", Weekday.MON): 2})
        assert issue_types(check_domain(domain)) == {ConfigurationIssueType.UNKNOWN_TASK}


class TestCheckRules:
    """Tests for check_rules."""

    def test_defaults_are_valid(self):
        assert check_rules(SchedulingRules()) == []

    def test_invalid_values(self):
        rules = SchedulingRules(max_consecutive_days_same_task=0, fairness_weight=-1.0)
        issues = check_rules(rules)
        assert len(issues) == 2
        assert issue_types(issues) == {ConfigurationIssueType.INVALID_RULE}
