from __future__ import annotations

import math
from typing import Iterable, Optional, Sequence

from demandmatrix.matrix import DataPoint, DemandMatrix, MonthDescriptor, TaskContribution


def rebuild_point(
    point: DataPoint, tasks: Optional[Iterable[TaskContribution]] = None
) -> Optional[DataPoint]:
    """
    Re-derive a cell's demand_hours / task_count / client_count from its tasks.

    `tasks` replaces the breakdown when given. Returns None for an empty cell,
    since empty cells are never kept in a matrix.
    """
    breakdown = point.task_breakdown if tasks is None else tuple(tasks)
    if not breakdown:
        return None
    return DataPoint.from_tasks(point.skill_type, point.month, breakdown)


def compute_totals(points: Sequence[DataPoint]) -> tuple[float, int, int]:
    """(total_demand, total_tasks, total_clients) over `points`."""
    total_demand = math.fsum(p.demand_hours for p in points)
    total_tasks = sum(p.task_count for p in points)
    clients = {t.client_id for p in points for t in p.task_breakdown}
    return total_demand, total_tasks, len(clients)


def present_skills(
    original: Sequence[str], points: Sequence[DataPoint]
) -> tuple[str, ...]:
    """Skills that occur in `points`, keeping `original` order, then first-seen order."""
    seen = {p.skill_type for p in points}
    out = [s for s in original if s in seen]
    known = set(out)
    for p in points:
        if p.skill_type not in known:
            known.add(p.skill_type)
            out.append(p.skill_type)
    return tuple(out)


def present_months(
    original: Sequence[MonthDescriptor], points: Sequence[DataPoint]
) -> tuple[MonthDescriptor, ...]:
    """Months that occur in `points`, in chronological (original) order."""
    used = {p.month for p in points}
    return tuple(m for m in original if m.key in used)


def recalculate(matrix: DemandMatrix) -> DemandMatrix:
    """
    Rebuild every cell from its (already filtered) breakdown, drop empty cells and
    recompute skills, months and matrix-wide totals from what remains.
    """
    points: list[DataPoint] = []
    for p in matrix.data_points:
        rebuilt = rebuild_point(p)
        if rebuilt is not None:
            points.append(rebuilt)

    total_demand, total_tasks, total_clients = compute_totals(points)
    return DemandMatrix(
        months=present_months(matrix.months, points),
        skills=present_skills(matrix.skills, points),
        data_points=tuple(points),
        total_demand=total_demand,
        total_tasks=total_tasks,
        total_clients=total_clients,
    )
