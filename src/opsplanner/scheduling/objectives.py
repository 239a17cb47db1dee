"""Objective functions, Pareto dominance and diversity selection.

All objectives are oriented so that higher is better:
- total_score: aggregate assignment score minus a staffing-gap penalty
- fairness: 1 / (1 + std-dev of per-operator assignment counts)
- skill_match_rate: share of assignments whose operator holds the skill
- preference_rate: share of preferred-task hits among operators with
  preferences
- coverage_rate: share of required slots that are filled
"""

import math
from typing import Optional, Sequence

from opsplanner.domain.models import (
    OBJECTIVE_NAMES,
    WEEKDAYS,
    Domain,
    ObjectiveVector,
    ScoredCandidate,
    Weekday,
    WeeklySchedule,
)
from opsplanner.scheduling.scorer import AssignmentScorer, WeekContext

# Score lost per missing or surplus operator against the staffing targets.
STAFFING_PENALTY = 100.0


def staffing_gaps(
    schedule: WeeklySchedule, targets: dict[tuple[str, Weekday], int]
) -> tuple[int, int]:
    """Return (shortfall, excess) summed over all target slots."""
    shortfall = 0
    excess = 0
    for (task_id, day), target in targets.items():
        have = schedule.count(task_id, day)
        shortfall += max(0, target - have)
        excess += max(0, have - target)
    return shortfall, excess


def aggregate_score(
    schedule: WeeklySchedule,
    domain: Domain,
    scorer: AssignmentScorer,
    targets: Optional[dict[tuple[str, Weekday], int]] = None,
) -> float:
    """Sum of all assignment scores minus the staffing-gap penalty."""
    ctx = WeekContext.build(schedule, domain)
    total = 0.0
    for day in WEEKDAYS:
        for operator_id in schedule.day(day).assignments:
            total += scorer.score_assignment(operator_id, day, schedule, ctx)
    targets = domain.staffing_targets() if targets is None else targets
    shortfall, excess = staffing_gaps(schedule, targets)
    return total - STAFFING_PENALTY * (shortfall + excess)


def fairness_score(schedule: WeeklySchedule, domain: Domain) -> float:
    """1 / (1 + population std-dev of assignment counts over active operators)."""
    operators = [op for op in domain.active_operators if op.available_days()]
    if not operators:
        return 1.0
    counts = [len(schedule.operator_tasks(op.id)) for op in operators]
    mean = sum(counts) / len(counts)
    variance = sum((c - mean) ** 2 for c in counts) / len(counts)
    return 1.0 / (1.0 + math.sqrt(variance))


def skill_match_rate(schedule: WeeklySchedule, domain: Domain) -> float:
    total = 0
    matched = 0
    for a in schedule.assignments():
        op = domain.operator(a.operator_id)
        task = domain.task(a.task_id)
        if op is None or task is None:
            continue
        total += 1
        if op.has_skill(task.required_skill):
            matched += 1
    return matched / total if total else 1.0


def preference_rate(schedule: WeeklySchedule, domain: Domain) -> float:
    """Share of assignments landing on a preferred task.

    Only operators who state preferences are counted.
    """
    total = 0
    hits = 0
    for a in schedule.assignments():
        op = domain.operator(a.operator_id)
        if op is None or not op.preferred_tasks:
            continue
        total += 1
        if a.task_id in op.preferred_tasks:
            hits += 1
    return hits / total if total else 1.0


def coverage_rate(schedule: WeeklySchedule, domain: Domain) -> float:
    """Filled share of required slots; surplus operators do not count."""
    required = 0
    filled = 0
    for req in domain.requirements:
        if req.count <= 0:
            continue
        required += req.count
        filled += min(req.count, schedule.count(req.task_id, req.weekday))
    return filled / required if required else 1.0


def evaluate(
    schedule: WeeklySchedule, domain: Domain, scorer: AssignmentScorer
) -> ObjectiveVector:
    """Compute the objective vector of a schedule."""
    return ObjectiveVector(
        total_score=aggregate_score(schedule, domain, scorer),
        fairness=fairness_score(schedule, domain),
        skill_match_rate=skill_match_rate(schedule, domain),
        preference_rate=preference_rate(schedule, domain),
        coverage_rate=coverage_rate(schedule, domain),
    )


def dominates(a: ObjectiveVector, b: ObjectiveVector) -> bool:
    """True if a is at least as good as b everywhere and better somewhere."""
    better = False
    for x, y in zip(a.as_tuple(), b.as_tuple()):
        if x < y:
            return False
        if x > y:
            better = True
    return better


def pareto_front(candidates: Sequence[ScoredCandidate]) -> list[ScoredCandidate]:
    """Candidates not dominated by any other, in input order.

    Exact pairwise filter.
    """
    front = []
    for i, candidate in enumerate(candidates):
        dominated = any(
            dominates(other.objectives, candidate.objectives)
            for j, other in enumerate(candidates)
            if j != i
        )
        if not dominated:
            front.append(candidate)
    return front


def normalize(vectors: Sequence[ObjectiveVector]) -> list[tuple[float, ...]]:
    """Min-max normalize each objective over the given vectors to [0, 1].

    Objectives with no spread map to 0.
    """
    if not vectors:
        return []
    columns = list(zip(*(v.as_tuple() for v in vectors)))
    spans = [(min(col), max(col) - min(col)) for col in columns]
    return [
        tuple((x - low) / span if span > 0 else 0.0 for x, (low, span) in zip(v.as_tuple(), spans))
        for v in vectors
    ]


def distance(a: Sequence[float], b: Sequence[float]) -> float:
    return math.sqrt(sum((x - y) ** 2 for x, y in zip(a, b)))


def select_diverse(
    front: Sequence[ScoredCandidate],
    target: int,
    threshold: float = 0.05,
) -> list[ScoredCandidate]:
    """Pick up to target candidates spread out in objective space.

    Farthest-point selection starting from the highest total score. A
    candidate is only added while its distance to the nearest selected one
    exceeds threshold times the front's diameter, so the cutoff scales with
    the observed spread.

    Args:
        front: Non-dominated candidates.
        target: Maximum number of candidates to return.
        threshold: Fraction of the diameter below which candidates count as
            duplicates.

    Returns:
        Selected candidates in selection order.
    """
    if target <= 0 or not front:
        return []

    points = normalize([c.objectives for c in front])
    diameter = max(
        (distance(p, q) for i, p in enumerate(points) for q in points[i + 1:]),
        default=0.0,
    )
    cutoff = threshold * diameter

    first = max(range(len(front)), key=lambda i: (front[i].objectives.total_score, -i))
    selected = [first]
    nearest = [distance(points[i], points[first]) for i in range(len(front))]

    while len(selected) < target:
        best_index = None
        best_distance = -1.0
        for i in range(len(front)):
            if i in selected:
                continue
            if nearest[i] > best_distance:
                best_index = i
                best_distance = nearest[i]
        if best_index is None or best_distance <= cutoff:
            break
        selected.append(best_index)
        for i in range(len(front)):
            nearest[i] = min(nearest[i], distance(points[i], points[best_index]))

    return [front[i] for i in selected]


def explain_tradeoff(a: ScoredCandidate, b: ScoredCandidate) -> list[str]:
    """Describe how candidate a differs from candidate b, objective by objective."""
    labels = {
        "total_score": "total score",
        "fairness": "fairness",
        "skill_match_rate": "skill match",
        "preference_rate": "preference satisfaction",
        "coverage_rate": "coverage",
    }
    lines = []
    for name in OBJECTIVE_NAMES:
        x = getattr(a.objectives, name)
        y = getattr(b.objectives, name)
        if math.isclose(x, y, abs_tol=1e-9):
            continue
        direction = "higher" if x > y else "lower"
        if name == "total_score":
            lines.append(f"{labels[name]} {direction} by {abs(x - y):.1f}")
        elif name == "fairness":
            lines.append(f"{labels[name]} {direction} ({x:.3f} vs {y:.3f})")
        else:
            lines.append(f"{labels[name]} {direction} ({x:.0%} vs {y:.0%})")
    if not lines:
        lines.append("identical objective values")
    return lines
