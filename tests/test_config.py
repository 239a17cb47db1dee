"""Tests for configuration objects and logging setup."""

import json
import logging

import pytest

from opsplanner.config import (
    ExplorationConfig,
    GenerationConfig,
    RuleProfile,
    config_from_dict,
    default_profiles,
    load_config,
)
from opsplanner.domain.models import SchedulingRules
from opsplanner.logging_config import is_debug_enabled, setup_logging


class TestDefaults:
    def test_generation_config(self):
        config = GenerationConfig()
        assert config.rules == SchedulingRules()
        assert config.tabu.max_iterations == 100
        assert config.solver.num_workers == 1
        assert config.exploration.executor == "thread"
        assert not config.exploration.refine

    def test_default_grid_size(self):
        exploration = ExplorationConfig()
        assert len(exploration.profiles) * len(exploration.randomization_factors) * len(
            exploration.seeds
        ) == 48

    def test_profile_names(self):
        assert [p.name for p in default_profiles()] == [
            "balanced", "fairness", "skill", "coverage"
        ]

    def test_profile_apply(self):
        rules = RuleProfile("strict", {"max_consecutive_days_same_task": 1}).apply(
            SchedulingRules(fairness_weight=3.0)
        )
        assert rules.max_consecutive_days_same_task == 1
        assert rules.fairness_weight == 3.0

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"executor": "fork"},
            {"population_target": 0},
            {"diversity_threshold": 1.0},
            {"diversity_threshold": -0.1},
        ],
    )
    def test_invalid_exploration(self, kwargs):
        with pytest.raises(ValueError):
            ExplorationConfig(**kwargs)


class TestConfigFromDict:
    """Tests for building configuration from dictionaries."""

    def test_overrides(self):
        config = config_from_dict({
            "rules": {"strict_skill_matching": False, "randomization_factor": 4.0},
            "tabu": {"max_iterations": 7, "time_limit_seconds": 1.5},
            "exploration": {
                "seeds": [3],
                "profiles": [{"name": "loose", "overrides": {"allow_consecutive_heavy": True}}],
            },
            "solver": {"time_limit_seconds": 2.0},
        })

        assert not config.rules.strict_skill_matching
        assert config.rules.randomization_factor == 4.0
        assert config.tabu.max_iterations == 7
        assert config.tabu.time_limit_seconds == 1.5
        assert config.exploration.seeds == [3]
        assert config.exploration.profiles[0].name == "loose"
        assert config.solver.time_limit_seconds == 2.0

    def test_empty_document(self):
        assert config_from_dict({}) == GenerationConfig()

    @pytest.mark.parametrize(
        "data",
        [
            {"search": {}},
            {"tabu": {"iterations": 5}},
            {"rules": {"max_streak": 3}},
            {"exploration": {"profiles": [{"name": "x", "overrides": {"bogus": 1}}]}},
            {"exploration": {"executor": "fork"}},
            {"exploration": {"profiles": [{"overrides": {}}]}},
            {"solver": []},
            [],
        ],
    )
    def test_invalid(self, data):
        with pytest.raises(ValueError):
            config_from_dict(data)

    def test_load_config(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"tabu": {"tabu_list_size": 4}}))
        assert load_config(path).tabu.tabu_list_size == 4

    def test_load_config_invalid_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("tabu = 4")
        with pytest.raises(ValueError, match="Invalid JSON"):
            load_config(path)


class TestLogging:
    def test_debug_env_var(self, monkeypatch):
        monkeypatch.setenv("OPSPLANNER_DEBUG", "TRUE")
        assert is_debug_enabled()
        monkeypatch.setenv("OPSPLANNER_DEBUG", "no")
        assert not is_debug_enabled()

    def test_setup_logging_level(self):
        setup_logging("info")
        logger = logging.getLogger("opsplanner")
        assert logger.level == logging.INFO
        handlers = len(logger.handlers)

        setup_logging("error")
        assert logger.level == logging.ERROR
        assert len(logger.handlers) == handlers
