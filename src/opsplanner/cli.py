"""Command-line interface for the opsplanner scheduling tool."""

import argparse
import json
import sys
from typing import Optional

from opsplanner.config import GenerationConfig, load_config
from opsplanner.domain.loader import load_assignments, load_domain, schedule_to_dict
from opsplanner.domain.models import (
    WEEKDAYS,
    DailyRequirement,
    Domain,
    Operator,
    OperatorType,
    TaskType,
    WeeklySchedule,
)
from opsplanner.logging_config import setup_logging
from opsplanner.scheduling.engine import (
    GenerationMode,
    GenerationResult,
    ScheduleEngine,
    schedule_stats,
)
from opsplanner.scheduling.objectives import explain_tradeoff
from opsplanner.validation.validator import ScheduleValidator, Severity

EXIT_OK = 0
EXIT_CONFIG_ERROR = 2


def create_sample_tasks() -> list[TaskType]:
    """Create the standard warehouse task list."""
    return [
        TaskType("t1", "Troubleshooter", "Troubleshooter", heavy=True),
        TaskType("t2", "Quality checker", "Quality Checker"),
        TaskType("t3", "MONO counter", "MONO Counter"),
        TaskType("t4", "Filler", "Filler"),
        TaskType("t5", "LVB Sheet", "LVB Sheet"),
        TaskType("t6", "Decanting", "Decanting"),
        TaskType("t7", "Platform", "Platform"),
        TaskType("t8", "EST", "EST"),
        TaskType("t9", "Exceptions", "Exceptions", heavy=True),
        TaskType(
            "t15", "Exceptions/Station", "Exceptions/Station", preferred_type=OperatorType.FLEX
        ),
        TaskType("t10", "Troubleshooter AD", "Troubleshooter AD", heavy=True),
        TaskType("t11", "Process", "Process", coordinator_only=True),
        TaskType("t12", "People", "People", coordinator_only=True),
        TaskType("t13", "Off process", "Off Process", coordinator_only=True),
    ]


def create_sample_operators(count: int = 24) -> list[Operator]:
    """Create sample operators for testing.

    Args:
        count: Number of operators to create. The first three are
            Coordinators and the next two Flex operators.
    """
    names = [
        "Alesja", "Beata", "Bruno", "Erica", "Gulhatun", "Ionel", "Irma", "Jose",
        "Lukasz", "Maha", "Mihaela", "Monikka", "Nuno", "Pedro", "Susana", "Sylwia",
        "Zeynep", "Yonay", "Javier", "Giedrius", "Natalia", "Floris", "Amy", "Ben",
    ]
    skill_sets = [
        ["Troubleshooter", "Quality Checker", "MONO Counter", "Filler", "LVB Sheet"],
        ["Decanting", "Quality Checker"],
        ["Platform", "Troubleshooter", "EST", "Quality Checker"],
        ["Decanting"],
        ["LVB Sheet", "Exceptions", "MONO Counter", "Troubleshooter AD"],
        ["Quality Checker", "Troubleshooter", "Filler", "Platform", "EST"],
        ["Troubleshooter AD", "Filler", "Exceptions", "Quality Checker"],
        ["Quality Checker", "Exceptions", "Troubleshooter", "Exceptions/Station"],
    ]

    operators = []
    for i in range(count):
        name = names[i % len(names)]
        if i >= len(names):
            name = f"{name}{i // len(names) + 1}"

        if i < 3:
            op_type = OperatorType.COORDINATOR
            skills = ["Process", "People", "Off Process"]
        elif i < 5:
            op_type = OperatorType.FLEX
            skills = ["Exceptions/Station", "Exceptions"] if i == 4 else ["Exceptions/Station"]
        else:
            op_type = OperatorType.REGULAR
            skills = skill_sets[i % len(skill_sets)]

        availability = {day: True for day in WEEKDAYS}
        # Some operators have days off
        if i % 6 == 5:
            availability[WEEKDAYS[i % 5]] = False

        preferred = ()
        if op_type == OperatorType.REGULAR and i % 3 == 0:
            preferred = ("t2",)

        operators.append(
            Operator(
                id=f"op{i + 1}",
                name=name,
                operator_type=op_type,
                skills=frozenset(skills),
                availability=availability,
                preferred_tasks=preferred,
            )
        )
    return operators


def create_sample_domain(count: int = 24) -> Domain:
    """Create a sample week with one requirement per task and day."""
    tasks = create_sample_tasks()
    per_task = {"t2": 2, "t6": 2, "t15": 2}
    requirements = [
        DailyRequirement(task.id, day, per_task.get(task.id, 1))
        for day in WEEKDAYS
        for task in tasks
    ]
    return Domain(
        operators=create_sample_operators(count),
        tasks=tasks,
        requirements=requirements,
    )


def print_schedule(schedule: WeeklySchedule, domain: Domain) -> None:
    """Print an operator x weekday grid of task names."""
    width = 18
    print(f"  {'Operator':<14}" + "".join(f"{day.value:<{width}}" for day in WEEKDAYS))
    for op in domain.operators:
        tasks = schedule.operator_tasks(op.id)
        if not tasks:
            continue
        cells = []
        for day in WEEKDAYS:
            task_id = tasks.get(day)
            task = domain.task(task_id) if task_id else None
            label = task.name if task else (task_id or "-")
            if schedule.is_locked(op.id, day):
                label += "*"
            cells.append(f"{label[:width - 1]:<{width}}")
        print(f"  {op.name[:13]:<14}" + "".join(cells))


def print_diagnostics(diagnostics: list, limit: int = 10) -> None:
    errors = [d for d in diagnostics if d.severity == Severity.ERROR]
    warnings = [d for d in diagnostics if d.severity == Severity.WARNING]
    if not diagnostics:
        print("\n  Validation: PASSED")
        return
    status = "FAILED" if errors else "PASSED with warnings"
    print(f"\n  Validation: {status} ({len(errors)} errors, {len(warnings)} warnings)")
    for diagnostic in diagnostics[:limit]:
        print(f"    - {diagnostic}")
    if len(diagnostics) > limit:
        print(f"    ... and {len(diagnostics) - limit} more")


def print_result(result: GenerationResult, domain: Domain) -> int:
    """Print a generation result and return the exit code."""
    if not result.ok:
        print("Configuration error; generation aborted:")
        for issue in result.configuration_issues:
            print(f"  - {issue}")
        return EXIT_CONFIG_ERROR

    if result.schedule is not None:
        stats = schedule_stats(result.schedule, domain)
        print(f"\nSchedule generated ({result.mode.value})")
        print(f"  Assignments: {stats['total_assignments']}/{stats['required_slots']} required")
        print(f"  Scheduled: {stats['scheduled_operators']}/{stats['total_operators']} operators")
        print(f"  Coverage: {stats['coverage_rate']:.0%}, fairness: {stats['fairness']:.3f}")
        print(f"  Load: min={stats['min_load']}, max={stats['max_load']}")
        if "tabu_stop_reason" in result.trace:
            print(
                f"  Tabu: {result.trace['tabu_iterations']} iterations "
                f"({result.trace['tabu_stop_reason']}), score "
                f"{result.trace['initial_score']:.1f} -> {result.trace['refined_score']:.1f}"
            )
        if "solver_status" in result.trace:
            fallback = " (greedy fallback)" if result.trace["used_fallback"] else ""
            print(f"  Solver: {result.trace['solver_status']}{fallback}")
        print()
        print_schedule(result.schedule, domain)
        print_diagnostics(result.diagnostics)
        return EXIT_OK

    print(
        f"\n{len(result.candidates)} alternatives from {result.trace.get('generated', 0)} "
        f"candidates (front of {result.trace.get('front_size', 0)})"
    )
    best = result.candidates[0] if result.candidates else None
    for rank, candidate in enumerate(result.candidates, 1):
        o = candidate.objectives
        print(
            f"  {rank}. {candidate.candidate_id:<24} score={o.total_score:8.1f} "
            f"fair={o.fairness:.3f} skill={o.skill_match_rate:.0%} "
            f"pref={o.preference_rate:.0%} cover={o.coverage_rate:.0%}"
        )
        if best is not None and candidate is not best:
            print(f"       vs #1: {'; '.join(explain_tradeoff(candidate, best))}")
    if best is not None:
        print()
        print_schedule(best.schedule, domain)
        print_diagnostics(best.diagnostics)
    return EXIT_OK


def result_to_dict(result: GenerationResult) -> dict:
    """Convert a generation result to a JSON-serializable dictionary."""
    data = {
        "status": result.status.value,
        "mode": result.mode.value,
        "configuration_issues": [str(issue) for issue in result.configuration_issues],
        "diagnostics": [
            {
                "kind": d.kind.value,
                "severity": d.severity.value,
                "day": d.weekday.value if d.weekday else None,
                "operator": d.operator_id,
                "task": d.task_id,
                "have": d.have,
                "need": d.need,
                "message": d.message,
            }
            for d in result.diagnostics
        ],
    }
    if result.schedule is not None:
        data["schedule"] = schedule_to_dict(result.schedule)
    if result.candidates:
        data["candidates"] = [
            {
                "id": c.candidate_id,
                "objectives": c.objectives.to_dict(),
                "schedule": schedule_to_dict(c.schedule),
            }
            for c in result.candidates
        ]
    return data


def run_demo(operator_count: int = 24, mode: str = "greedy", seed: int = 0) -> int:
    """Run a demo schedule generation."""
    print(f"Generating {mode} schedule for {operator_count} operators (seed {seed})...")
    domain = create_sample_domain(operator_count)
    result = ScheduleEngine().generate(domain, mode=mode, seed=seed)
    return print_result(result, domain)


def run_generate(
    input_path: str,
    config_path: Optional[str] = None,
    mode: str = "greedy",
    seed: int = 0,
    as_json: bool = False,
) -> int:
    """Generate a schedule from a domain file."""
    try:
        domain = load_domain(input_path)
        config = load_config(config_path) if config_path else GenerationConfig()
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    result = ScheduleEngine(config).generate(domain, mode=mode, seed=seed)
    if as_json:
        print(json.dumps(result_to_dict(result), indent=2))
        return EXIT_OK if result.ok else EXIT_CONFIG_ERROR
    return print_result(result, domain)


def run_validate(input_path: str, schedule_path: str, include_staffing: bool = True) -> int:
    """Validate a schedule file against a domain file."""
    try:
        domain = load_domain(input_path)
        assignments = load_assignments(schedule_path)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    validator = ScheduleValidator(include_staffing=include_staffing)
    result = validator.validate(assignments, domain)
    print(f"Validated {len(assignments)} assignments")
    print_diagnostics(result.diagnostics, limit=50)
    return EXIT_OK


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for CLI."""
    parser = argparse.ArgumentParser(
        description="opsplanner - Weekly Warehouse Operator Scheduling",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s demo                               Greedy demo with 24 operators
  %(prog)s demo --mode greedy+tabu --seed 3   Refine with tabu search
  %(prog)s demo --mode multi-objective        Show trade-off alternatives

  %(prog)s generate --input week.json --json  Generate and print JSON
  %(prog)s validate --input week.json --schedule schedule.json
        """,
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: OPSPLANNER_DEBUG decides)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")
    modes = [m.value for m in GenerationMode]

    # Demo command
    demo_parser = subparsers.add_parser("demo", help="Run demo schedule generation")
    demo_parser.add_argument(
        "--count", "-c",
        type=int,
        default=24,
        help="Number of operators to generate (default: 24)",
    )
    demo_parser.add_argument(
        "--mode", "-m",
        type=str,
        default="greedy",
        choices=modes,
        help="Generation mode (default: greedy)",
    )
    demo_parser.add_argument("--seed", "-s", type=int, default=0, help="Seed (default: 0)")

    # Generate command
    generate_parser = subparsers.add_parser("generate", help="Generate from a domain file")
    generate_parser.add_argument("--input", "-i", required=True, help="Domain JSON file")
    generate_parser.add_argument("--config", type=str, help="Configuration JSON file")
    generate_parser.add_argument(
        "--mode", "-m",
        type=str,
        default="greedy",
        choices=modes,
        help="Generation mode (default: greedy)",
    )
    generate_parser.add_argument("--seed", "-s", type=int, default=0, help="Seed (default: 0)")
    generate_parser.add_argument("--json", action="store_true", help="Print JSON output")

    # Validate command
    validate_parser = subparsers.add_parser("validate", help="Validate a schedule file")
    validate_parser.add_argument("--input", "-i", required=True, help="Domain JSON file")
    validate_parser.add_argument("--schedule", required=True, help="Schedule JSON file")
    validate_parser.add_argument(
        "--no-staffing",
        action="store_true",
        help="Skip under/overstaffing checks",
    )

    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    if args.command == "demo":
        return run_demo(args.count, args.mode, args.seed)
    elif args.command == "generate":
        return run_generate(args.input, args.config, args.mode, args.seed, args.json)
    elif args.command == "validate":
        return run_validate(args.input, args.schedule, not args.no_staffing)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
