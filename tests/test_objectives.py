"""Tests for objective functions, Pareto filtering and diversity selection."""

import pytest

from conftest import create_test_operator

from opsplanner.domain.models import (
    DailyRequirement,
    Domain,
    ObjectiveVector,
    ScoredCandidate,
    SchedulingRules,
    TaskType,
    Weekday,
    WeeklySchedule,
)
from opsplanner.scheduling.objectives import (
    STAFFING_PENALTY,
    aggregate_score,
    coverage_rate,
    dominates,
    evaluate,
    explain_tradeoff,
    fairness_score,
    normalize,
    pareto_front,
    preference_rate,
    select_diverse,
    skill_match_rate,
    staffing_gaps,
)
from opsplanner.scheduling.scorer import AssignmentScorer


def create_test_candidate(
    index: int,
    total: float,
    fairness: float = 0.5,
    skill: float = 1.0,
    preference: float = 1.0,
    coverage: float = 1.0,
) -> ScoredCandidate:
    """Helper to create candidates with distinct schedules."""
    schedule = WeeklySchedule()
    schedule.assign(f"op{index}", Weekday.MON, "pick")
    return ScoredCandidate(
        candidate_id=f"c{index:02d}",
        schedule=schedule,
        objectives=ObjectiveVector(total, fairness, skill, preference, coverage),
    )


def line_front(size: int) -> list[ScoredCandidate]:
    """Candidates trading total score against fairness one step at a time."""
    return [create_test_candidate(i, float(i), fairness=float(size - 1 - i)) for i in range(size)]


@pytest.fixture
def domain():
    return Domain(
        operators=[
            create_test_operator("a", ["picking"], preferred=["pick"]),
            create_test_operator("b", ["picking", "packing"], preferred=["pick"]),
            create_test_operator("c", ["packing"]),
        ],
        tasks=[TaskType("pick", "Picking", "picking"), TaskType("pack", "Packing", "packing")],
        requirements=[
            DailyRequirement("pick", Weekday.MON, 2),
            DailyRequirement("pack", Weekday.MON, 1),
            DailyRequirement("pack", Weekday.TUE, 0),
        ],
    )


class TestObjectives:
    """Tests for individual objective functions."""

    def test_empty_schedule(self, domain):
        empty = WeeklySchedule()
        assert skill_match_rate(empty, domain) == 1.0
        assert preference_rate(empty, domain) == 1.0
        assert coverage_rate(empty, domain) == 0.0
        assert fairness_score(empty, domain) == 1.0

    def test_rates(self, domain):
        schedule = WeeklySchedule()
        schedule.assign("a", Weekday.MON, "pick")
        schedule.assign("b", Weekday.MON, "pack")
        schedule.assign("c", Weekday.MON, "pick")
        # c lacks picking; b is off its preferred task; c states no preference.
        assert skill_match_rate(schedule, domain) == pytest.approx(2 / 3)
        assert preference_rate(schedule, domain) == pytest.approx(1 / 2)
        assert coverage_rate(schedule, domain) == 1.0

    def test_coverage_ignores_surplus(self, domain):
        schedule = WeeklySchedule()
        schedule.assign("a", Weekday.MON, "pack")
        schedule.assign("b", Weekday.MON, "pack")
        schedule.assign("c", Weekday.MON, "pack")
        assert coverage_rate(schedule, domain) == pytest.approx(1 / 3)

    def test_fairness(self, domain):
        even = WeeklySchedule()
        for op in ("a", "b", "c"):
            even.assign(op, Weekday.MON, "pick")
        assert fairness_score(even, domain) == 1.0

        uneven = WeeklySchedule()
        uneven.assign("a", Weekday.MON, "pick")
        uneven.assign("a", Weekday.TUE, "pick")
        assert fairness_score(uneven, domain) < 1.0

    def test_staffing_gaps(self, domain):
        schedule = WeeklySchedule()
        schedule.assign("a", Weekday.MON, "pick")
        schedule.assign("b", Weekday.TUE, "pack")
        assert staffing_gaps(schedule, domain.staffing_targets()) == (2, 1)

    def test_aggregate_score_penalizes_gaps(self, domain):
        rules = SchedulingRules()
        scorer = AssignmentScorer(domain, rules)
        schedule = WeeklySchedule()
        schedule.assign("a", Weekday.MON, "pick")
        base = scorer.score_assignment("a", Weekday.MON, schedule)
        # Missing: one picker and one packer.
        assert aggregate_score(schedule, domain, scorer) == pytest.approx(
            base - 2 * STAFFING_PENALTY
        )

    def test_evaluate(self, domain):
        schedule = WeeklySchedule()
        schedule.assign("a", Weekday.MON, "pick")
        schedule.assign("b", Weekday.MON, "pick")
        schedule.assign("c", Weekday.MON, "pack")
        vector = evaluate(schedule, domain, AssignmentScorer(domain, SchedulingRules()))
        assert vector.coverage_rate == 1.0
        assert vector.skill_match_rate == 1.0
        assert vector.preference_rate == 1.0
        assert vector.fairness == 1.0
        assert vector.total_score > 0


class TestDominance:
    """Tests for Pareto dominance."""

    def test_dominates(self):
        better = ObjectiveVector(10, 0.5, 1.0, 1.0, 1.0)
        worse = ObjectiveVector(9, 0.5, 1.0, 1.0, 1.0)
        assert dominates(better, worse)
        assert not dominates(worse, better)
        assert not dominates(better, better)

    def test_tradeoff_is_not_dominance(self):
        a = ObjectiveVector(10, 0.4, 1.0, 1.0, 1.0)
        b = ObjectiveVector(9, 0.6, 1.0, 1.0, 1.0)
        assert not dominates(a, b)
        assert not dominates(b, a)

    def test_pareto_front(self):
        candidates = [
            create_test_candidate(0, 10, fairness=0.4),
            create_test_candidate(1, 9, fairness=0.6),
            create_test_candidate(2, 8, fairness=0.3),  # dominated by 0
            create_test_candidate(3, 9, fairness=0.6, coverage=0.9),  # dominated by 1
            create_test_candidate(4, 7, fairness=0.9),
        ]
        front = pareto_front(candidates)
        assert [c.candidate_id for c in front] == ["c00", "c01", "c04"]

    def test_front_is_mutually_non_dominated(self):
        values = [(5, 0.1), (3, 0.5), (4, 0.2), (2, 0.4), (1, 0.9), (5, 0.05), (3, 0.3)]
        candidates = [create_test_candidate(i, t, fairness=f) for i, (t, f) in enumerate(values)]
        front = pareto_front(candidates)
        for c in front:
            assert not any(dominates(o.objectives, c.objectives) for o in candidates)
        for c in candidates:
            if c not in front:
                assert any(dominates(f.objectives, c.objectives) for f in front)


class TestDiversity:
    """Tests for diversity selection."""

    def test_thirteen_candidates_reduced_to_four(self):
        front = line_front(13)
        selected = select_diverse(front, 4)

        assert len(selected) == 4
        assert selected[0].candidate_id == "c12"
        assert [c.candidate_id for c in selected] == ["c12", "c00", "c06", "c03"]

    def test_small_front_returned_whole(self):
        front = line_front(3)
        assert len(select_diverse(front, 5)) == 3

    def test_near_duplicates_collapse(self):
        front = [
            create_test_candidate(0, 100.0, fairness=0.5),
            create_test_candidate(1, 100.0, fairness=0.5),
            create_test_candidate(2, 100.0, fairness=0.5),
        ]
        assert [c.candidate_id for c in select_diverse(front, 3)] == ["c00"]

    def test_zero_target(self):
        assert select_diverse(line_front(4), 0) == []
        assert select_diverse([], 3) == []

    def test_normalize(self):
        vectors = [c.objectives for c in line_front(3)]
        points = normalize(vectors)
        assert points[0][:2] == (0.0, 1.0)
        assert points[2][:2] == (1.0, 0.0)
        assert points[1][2:] == (0.0, 0.0, 0.0)


class TestExplainTradeoff:
    def test_describes_differences(self):
        a = create_test_candidate(0, 120.0, fairness=0.4, coverage=1.0)
        b = create_test_candidate(1, 100.0, fairness=0.6, coverage=0.9)
        lines = explain_tradeoff(a, b)
        assert lines == [
            "total score higher by 20.0",
            "fairness lower (0.400 vs 0.600)",
            "coverage higher (100% vs 90%)",
        ]

    def test_identical(self):
        a = create_test_candidate(0, 50.0)
        assert explain_tradeoff(a, create_test_candidate(1, 50.0)) == [
            "identical objective values"
        ]
