"""Tests for multi-objective exploration.

Tests cover:
- Grid construction from profiles, randomization factors and seeds
- End-to-end exploration on a realistic team
- Population reduction to the target size
- Wall-clock cap keeping finished candidates
- Failed candidates dropped without aborting exploration
"""

import time

import pytest

from opsplanner.config import ExplorationConfig, RuleProfile, TabuConfig
from opsplanner.domain.models import (
    ObjectiveVector,
    ScoredCandidate,
    SchedulingRules,
    Weekday,
    WeeklySchedule,
)
from opsplanner.scheduling import explorer as explorer_module
from opsplanner.scheduling.explorer import (
    MultiObjectiveExplorer,
    evaluation_rules,
    generate_candidate,
)
from opsplanner.scheduling.objectives import dominates


def fake_candidate(domain, point, base_rules, refine=False, tabu_config=None):
    """Stand-in generator placing candidates on a score/fairness line."""
    schedule = WeeklySchedule()
    schedule.assign(f"op{point.index}", Weekday.MON, "pick")
    return ScoredCandidate(
        candidate_id=f"p{point.index:02d}",
        schedule=schedule,
        objectives=ObjectiveVector(float(point.index), float(12 - point.index), 1.0, 1.0, 1.0),
        seed=point.seed,
    )


def slow_candidate(domain, point, base_rules, refine=False, tabu_config=None):
    if point.index > 0:
        time.sleep(0.5)
    return fake_candidate(domain, point, base_rules)


def failing_candidate(domain, point, base_rules, refine=False, tabu_config=None):
    if point.index == 2:
        raise RuntimeError("construction crashed")
    return fake_candidate(domain, point, base_rules)


@pytest.fixture
def small_config():
    return ExplorationConfig(
        seeds=[0, 1],
        randomization_factors=[0.0, 10.0],
        population_target=3,
        max_workers=2,
    )


class TestBuildGrid:
    """Tests for grid construction."""

    def test_full_product(self, small_config):
        grid = MultiObjectiveExplorer(small_config).build_grid(SchedulingRules())
        assert len(grid) == 4 * 2 * 2
        assert [p.index for p in grid] == list(range(16))
        assert grid[0].label == "balanced/r0/s0"
        assert grid[3].label == "balanced/r10/s1"

    def test_profiles_applied(self, small_config):
        grid = MultiObjectiveExplorer(small_config).build_grid(SchedulingRules())
        coverage = [p for p in grid if p.profile == "coverage"]
        assert all(not p.rules.strict_skill_matching for p in coverage)
        assert all(p.rules.randomization_factor in (0.0, 10.0) for p in grid)

    def test_seeds_offset_by_caller_seed(self, small_config):
        grid = MultiObjectiveExplorer(small_config).build_grid(SchedulingRules(), seed=100)
        assert sorted({p.seed for p in grid}) == [100, 101]
        assert grid[0].label == "balanced/r0/s100"

    def test_max_candidates(self):
        config = ExplorationConfig(max_candidates=5)
        assert len(MultiObjectiveExplorer(config).build_grid(SchedulingRules())) == 5

    def test_custom_profiles(self, small_config):
        profiles = [RuleProfile("strict", {"max_consecutive_days_same_task": 1})]
        grid = MultiObjectiveExplorer(small_config).build_grid(SchedulingRules(), profiles)
        assert len(grid) == 4
        assert all(p.rules.max_consecutive_days_same_task == 1 for p in grid)


class TestGenerateCandidate:
    def test_candidate_carries_objectives_and_trace(self, warehouse_domain, small_config):
        point = MultiObjectiveExplorer(small_config).build_grid(SchedulingRules())[1]
        candidate = generate_candidate(warehouse_domain, point, SchedulingRules())

        assert candidate.candidate_id == point.label
        assert candidate.seed == point.seed
        assert candidate.objectives.coverage_rate == 1.0
        assert candidate.trace["grid_index"] == 1
        assert "tabu_iterations" not in candidate.trace

    def test_refined_candidate(self, warehouse_domain, small_config):
        point = MultiObjectiveExplorer(small_config).build_grid(SchedulingRules())[0]
        candidate = generate_candidate(
            warehouse_domain, point, SchedulingRules(), refine=True,
            tabu_config=TabuConfig(max_iterations=2),
        )
        assert candidate.trace["tabu_iterations"] <= 2

    def test_evaluation_rules(self):
        rules = evaluation_rules(SchedulingRules(randomization_factor=7.0))
        assert not rules.strict_skill_matching
        assert rules.randomization_factor == 0.0


class TestExplore:
    """End-to-end exploration."""

    def test_candidates_are_a_diverse_front(self, warehouse_domain, small_config):
        result = MultiObjectiveExplorer(small_config).explore(warehouse_domain, SchedulingRules())

        assert result.generated == 16
        assert 1 <= result.unique <= 16
        assert 1 <= len(result.candidates) <= 3
        assert not result.timed_out

        scores = [c.objectives.total_score for c in result.candidates]
        assert scores == sorted(scores, reverse=True)
        front_ids = {c.candidate_id for c in result.front}
        for candidate in result.candidates:
            assert candidate.candidate_id in front_ids
        for a in result.front:
            assert not any(dominates(b.objectives, a.objectives) for b in result.front)

    def test_no_duplicate_schedules(self, warehouse_domain, small_config):
        result = MultiObjectiveExplorer(small_config).explore(warehouse_domain, SchedulingRules())
        fingerprints = [c.schedule.fingerprint() for c in result.front]
        assert len(fingerprints) == len(set(fingerprints))

    def test_deterministic(self, warehouse_domain, small_config):
        first = MultiObjectiveExplorer(small_config).explore(warehouse_domain, SchedulingRules())
        second = MultiObjectiveExplorer(small_config).explore(warehouse_domain, SchedulingRules())
        assert [c.candidate_id for c in first.candidates] == [
            c.candidate_id for c in second.candidates
        ]
        assert [c.schedule.fingerprint() for c in first.candidates] == [
            c.schedule.fingerprint() for c in second.candidates
        ]

    def test_population_target_of_four(self, monkeypatch, warehouse_domain):
        monkeypatch.setattr(explorer_module, "generate_candidate", fake_candidate)
        config = ExplorationConfig(
            seeds=list(range(13)),
            randomization_factors=[0.0],
            profiles=[RuleProfile("balanced")],
            population_target=4,
        )
        result = MultiObjectiveExplorer(config).explore(warehouse_domain, SchedulingRules())

        assert len(result.front) == 13
        assert [c.candidate_id for c in result.candidates] == ["p12", "p06", "p03", "p00"]

    def test_explicit_grid_and_target(self, monkeypatch, warehouse_domain, small_config):
        monkeypatch.setattr(explorer_module, "generate_candidate", fake_candidate)
        explorer = MultiObjectiveExplorer(small_config)
        grid = explorer.build_grid(SchedulingRules())[:5]
        result = explorer.explore(
            warehouse_domain, SchedulingRules(), parameter_grid=grid, population_target=2
        )
        assert result.generated == 5
        assert len(result.candidates) == 2

    def test_failed_candidate_is_skipped(self, monkeypatch, caplog, warehouse_domain):
        monkeypatch.setattr(explorer_module, "generate_candidate", failing_candidate)
        config = ExplorationConfig(
            seeds=list(range(5)),
            randomization_factors=[0.0],
            profiles=[RuleProfile("balanced")],
            population_target=5,
        )
        result = MultiObjectiveExplorer(config).explore(warehouse_domain, SchedulingRules())

        assert result.generated == 4
        assert "p02" not in {c.candidate_id for c in result.front}
        assert "Candidate balanced/r0/s2 failed" in caplog.text

    def test_time_limit_keeps_finished_candidates(self, monkeypatch, warehouse_domain):
        monkeypatch.setattr(explorer_module, "generate_candidate", slow_candidate)
        config = ExplorationConfig(
            seeds=list(range(5)),
            randomization_factors=[0.0],
            profiles=[RuleProfile("balanced")],
            max_workers=1,
            time_limit_seconds=0.2,
        )
        result = MultiObjectiveExplorer(config).explore(warehouse_domain, SchedulingRules())

        assert result.timed_out
        assert 1 <= result.generated < 5
        assert result.candidates
