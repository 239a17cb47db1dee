"""Configuration objects for schedule generation.

Every generation call receives its configuration explicitly; there is no
process-wide configuration state.
"""

import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional, Union

from opsplanner.domain.models import SchedulingRules


@dataclass
class TabuConfig:
    """Configuration for the tabu search refiner.

    Attributes:
        max_iterations: Hard cap on iterations.
        tabu_list_size: Number of recent move signatures kept tabu.
        max_no_improve: Consecutive non-improving iterations before the
            search declares a local optimum.
        candidate_pool_size: Number of lowest-scoring assignments whose
            operators are considered for moves each iteration.
        time_limit_seconds: Optional wall-clock budget, checked once per
            iteration.
    """

    max_iterations: int = 100
    tabu_list_size: int = 20
    max_no_improve: int = 20
    candidate_pool_size: int = 8
    time_limit_seconds: Optional[float] = None


@dataclass
class RuleProfile:
    """A named set of rule overrides applied on top of the base rules."""

    name: str
    overrides: dict = field(default_factory=dict)

    def apply(self, rules: SchedulingRules) -> SchedulingRules:
        return rules.with_overrides(**self.overrides)


def default_profiles() -> list[RuleProfile]:
    """Rule-weight profiles shifting priority between objectives."""
    return [
        RuleProfile("balanced"),
        RuleProfile(
            "fairness",
            {
                "fairness_weight": 2.0,
                "workload_balance_weight": 2.0,
                "max_consecutive_days_same_task": 1,
            },
        ),
        RuleProfile(
            "skill",
            {
                "fairness_weight": 0.5,
                "workload_balance_weight": 0.5,
                "max_consecutive_days_same_task": 3,
                "allow_consecutive_heavy": True,
            },
        ),
        RuleProfile(
            "coverage",
            {
                "strict_skill_matching": False,
                "respect_preferred_stations": False,
            },
        ),
    ]


@dataclass
class ExplorationConfig:
    """Configuration for the multi-objective explorer.

    Attributes:
        seeds: Offsets added to the caller's seed, combined with each
            profile and randomization factor.
        randomization_factors: Jitter bounds to try.
        profiles: Rule profiles to try.
        population_target: Maximum number of candidates returned.
        refine: Run tabu search on each candidate.
        max_workers: Worker pool size (None = executor default).
        executor: "thread" or "process".
        time_limit_seconds: Wall-clock cap on candidate generation.
        max_candidates: Cap on the number of grid points generated.
        diversity_threshold: Minimum selection distance, as a fraction of
            the front's diameter in normalized objective space.
    """

    seeds: list[int] = field(default_factory=lambda: [0, 1, 2])
    randomization_factors: list[float] = field(default_factory=lambda: [5.0, 10.0, 15.0, 20.0])
    profiles: list[RuleProfile] = field(default_factory=default_profiles)
    population_target: int = 5
    refine: bool = False
    max_workers: Optional[int] = None
    executor: str = "thread"
    time_limit_seconds: Optional[float] = None
    max_candidates: Optional[int] = None
    diversity_threshold: float = 0.05

    def __post_init__(self):
        if self.executor not in ("thread", "process"):
            raise ValueError(f"executor must be 'thread' or 'process', got {self.executor!r}")
        if self.population_target < 1:
            raise ValueError("population_target must be at least 1")
        if not 0 <= self.diversity_threshold < 1:
            raise ValueError("diversity_threshold must be in [0, 1)")


@dataclass
class SolverConfig:
    """Configuration for the CP-SAT max-coverage solver.

    Attributes:
        time_limit_seconds: Maximum solver runtime.
        num_workers: Number of search workers (1 = reproducible).
        coverage_weight: Objective weight per filled slot.
        fairness_weight: Objective weight against the maximum operator load.
        score_scale: Multiplier applied to assignment scores before they
            are rounded to integer objective coefficients.
    """

    time_limit_seconds: float = 10.0
    num_workers: int = 1
    coverage_weight: int = 1000
    fairness_weight: int = 20
    score_scale: float = 1.0


@dataclass
class GenerationConfig:
    """Bundle of all generation settings."""

    rules: SchedulingRules = field(default_factory=SchedulingRules)
    tabu: TabuConfig = field(default_factory=TabuConfig)
    exploration: ExplorationConfig = field(default_factory=ExplorationConfig)
    solver: SolverConfig = field(default_factory=SolverConfig)


def _build(cls, data: dict, section: str):
    if not isinstance(data, dict):
        raise ValueError(f"Config section '{section}' must be an object")
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown key(s) in '{section}': {', '.join(unknown)}")
    return cls(**data)


def config_from_dict(data: dict) -> GenerationConfig:
    """Build a GenerationConfig from a plain dictionary.

    Keys mirror the dataclass field names:
        {"rules": {...}, "tabu": {...}, "exploration": {...}, "solver": {...}}

    Raises:
        ValueError: On unknown keys or invalid values.
    """
    if not isinstance(data, dict):
        raise ValueError("Configuration must be a JSON object")
    unknown = sorted(set(data) - {"rules", "tabu", "exploration", "solver"})
    if unknown:
        raise ValueError(f"Unknown configuration section(s): {', '.join(unknown)}")

    config = GenerationConfig()
    try:
        if "rules" in data:
            config.rules = SchedulingRules().with_overrides(**data["rules"])
        if "tabu" in data:
            config.tabu = _build(TabuConfig, data["tabu"], "tabu")
        if "exploration" in data:
            exploration = dict(data["exploration"])
            if "profiles" in exploration:
                exploration["profiles"] = [
                    _build(RuleProfile, p, "exploration.profiles")
                    for p in exploration["profiles"]
                ]
                for profile in exploration["profiles"]:
                    # Fail early on unknown rule names.
                    profile.apply(config.rules)
            config.exploration = _build(ExplorationConfig, exploration, "exploration")
        if "solver" in data:
            config.solver = _build(SolverConfig, data["solver"], "solver")
    except TypeError as e:
        raise ValueError(f"Invalid configuration: {e}") from e
    return config


def load_config(path: Union[str, Path]) -> GenerationConfig:
    """Load a GenerationConfig from a JSON file.

    Raises:
        ValueError: If the file is not valid JSON or contains unknown keys.
    """
    try:
        with open(path) as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {path}: {e}") from e
    return config_from_dict(data)
