"""Smoke tests for the command-line interface."""

import json

import pytest

from opsplanner.cli import (
    EXIT_CONFIG_ERROR,
    EXIT_OK,
    create_sample_domain,
    create_sample_operators,
    main,
)
from opsplanner.domain.checks import check_domain
from opsplanner.domain.models import OperatorType

DOMAIN = {
    "operators": [
        {"id": "a", "name": "Ana", "skills": ["picking"], "preferred_tasks": ["pick"]},
        {"id": "b", "name": "Ben", "skills": ["picking", "packing"]},
        {"id": "c", "name": "Cas", "type": "Flex", "skills": ["packing"],
         "availability": ["Mon", "Tue", "Wed"]},
    ],
    "tasks": [
        {"id": "pick", "name": "Picking", "required_skill": "picking"},
        {"id": "pack", "name": "Packing", "required_skill": "packing"},
    ],
    "requirements": [
        {"task": "pick", "day": "Mon", "count": 1},
        {"task": "pack", "day": "Mon", "count": 1},
        {"task": "pick", "day": "Tue", "count": 2},
    ],
}


@pytest.fixture
def domain_file(tmp_path):
    path = tmp_path / "week.json"
    path.write_text(json.dumps(DOMAIN))
    return path


class TestSampleData:
    """The demo data set is internally consistent."""

    def test_sample_domain_is_valid(self):
        assert check_domain(create_sample_domain()) == []

    def test_operator_types(self):
        operators = create_sample_operators(10)
        assert [op.operator_type for op in operators[:5]] == [
            OperatorType.COORDINATOR,
            OperatorType.COORDINATOR,
            OperatorType.COORDINATOR,
            OperatorType.FLEX,
            OperatorType.FLEX,
        ]
        assert len({op.id for op in operators}) == 10


class TestDemo:
    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "usage" in capsys.readouterr().out.lower()

    def test_greedy_demo(self, capsys):
        assert main(["demo", "--count", "12"]) == EXIT_OK
        out = capsys.readouterr().out
        assert "Schedule generated (greedy)" in out
        assert "Validation:" in out

    def test_multi_objective_demo(self, capsys):
        assert main(["demo", "--count", "10", "--mode", "multi-objective"]) == EXIT_OK
        out = capsys.readouterr().out
        assert "alternatives from 48 candidates" in out


class TestGenerate:
    """Tests for the generate command."""

    def test_json_output(self, capsys, domain_file):
        code = main(["generate", "--input", str(domain_file), "--json", "--seed", "2"])
        data = json.loads(capsys.readouterr().out)

        assert code == EXIT_OK
        assert data["status"] == "ok"
        days = {(a["day"], a["task"]) for a in data["schedule"]["assignments"]}
        assert ("Mon", "pick") in days
        assert ("Mon", "pack") in days

    def test_text_output_with_config(self, capsys, domain_file, tmp_path):
        config = tmp_path / "config.json"
        config.write_text(json.dumps({"tabu": {"max_iterations": 3}}))
        code = main([
            "generate", "--input", str(domain_file), "--config", str(config),
            "--mode", "greedy+tabu",
        ])
        assert code == EXIT_OK
        assert "Tabu:" in capsys.readouterr().out

    def test_configuration_error(self, capsys, tmp_path):
        broken = dict(DOMAIN, requirements=[{"task": "ghost", "day": "Mon", "count": 1}])
        path = tmp_path / "broken.json"
        path.write_text(json.dumps(broken))

        code = main(["generate", "--input", str(path), "--json"])
        data = json.loads(capsys.readouterr().out)

        assert code == EXIT_CONFIG_ERROR
        assert data["status"] == "config_error"
        assert "ghost" in data["configuration_issues"][0]

    def test_missing_file(self, capsys, tmp_path):
        code = main(["generate", "--input", str(tmp_path / "missing.json")])
        assert code == EXIT_CONFIG_ERROR
        assert "Error:" in capsys.readouterr().err

    def test_unknown_config_key(self, capsys, domain_file, tmp_path):
        config = tmp_path / "config.json"
        config.write_text(json.dumps({"tabu": {"iterations": 3}}))
        code = main(["generate", "--input", str(domain_file), "--config", str(config)])
        assert code == EXIT_CONFIG_ERROR


class TestValidate:
    def test_reports_double_booking(self, capsys, domain_file, tmp_path):
        schedule = tmp_path / "schedule.json"
        schedule.write_text(json.dumps({
            "assignments": [
                {"operator": "b", "day": "Mon", "task": "pick"},
                {"operator": "b", "day": "Mon", "task": "pack"},
            ]
        }))
        code = main([
            "validate", "--input", str(domain_file), "--schedule", str(schedule),
            "--no-staffing",
        ])
        out = capsys.readouterr().out

        assert code == EXIT_OK
        assert "Validated 2 assignments" in out
        assert "[double_assignment]" in out
