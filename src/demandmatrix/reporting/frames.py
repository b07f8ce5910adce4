from __future__ import annotations

from typing import Mapping

import pandas as pd

from demandmatrix.matrix import DemandMatrix
from demandmatrix.result_types import PerformanceStats
from demandmatrix.staff_ref import resolve_id, resolve_name

UNASSIGNED_LABEL = "Unassigned"

_TASK_COLUMNS = [
    "skill_type",
    "month",
    "client_id",
    "client_name",
    "task_id",
    "task_name",
    "monthly_hours",
    "staff_id",
    "staff_name",
]


def matrix_to_frame(matrix: DemandMatrix) -> pd.DataFrame:
    """One row per data point."""
    rows = [
        {
            "skill_type": p.skill_type,
            "month": p.month,
            "demand_hours": p.demand_hours,
            "task_count": p.task_count,
            "client_count": p.client_count,
        }
        for p in matrix.data_points
    ]
    return pd.DataFrame(
        rows,
        columns=["skill_type", "month", "demand_hours", "task_count", "client_count"],
    )


def tasks_to_frame(matrix: DemandMatrix) -> pd.DataFrame:
    """One row per task contribution, with its preferred staff resolved."""
    rows = [
        {
            "skill_type": p.skill_type,
            "month": p.month,
            "client_id": t.client_id,
            "client_name": t.client_name,
            "task_id": t.task_id,
            "task_name": t.task_name,
            "monthly_hours": t.monthly_hours,
            "staff_id": resolve_id(t.preferred_staff),
            "staff_name": resolve_name(t.preferred_staff),
        }
        for p, t in matrix.iter_tasks()
    ]
    return pd.DataFrame(rows, columns=_TASK_COLUMNS)


def demand_grid(matrix: DemandMatrix) -> pd.DataFrame:
    """
    Skill x month grid of demand hours; missing cells are 0.

    Rows follow `matrix.skills`, columns follow `matrix.months`.
    """
    df = matrix_to_frame(matrix)
    skills = list(matrix.skills)
    months = list(matrix.month_keys)
    if df.empty:
        return pd.DataFrame(0.0, index=pd.Index(skills, name="skill_type"), columns=months)
    grid = df.pivot_table(
        index="skill_type",
        columns="month",
        values="demand_hours",
        aggfunc="sum",
        fill_value=0.0,
    )
    grid = grid.reindex(index=skills, columns=months, fill_value=0.0)
    grid.columns.name = None
    return grid


def demand_by_staff(matrix: DemandMatrix) -> pd.DataFrame:
    """Demand hours and task counts per resolved preferred staff member."""
    df = tasks_to_frame(matrix)
    if df.empty:
        return pd.DataFrame(columns=["staff_id", "staff_name", "demand_hours", "tasks"])
    df["staff_id"] = df["staff_id"].fillna(UNASSIGNED_LABEL)
    df["staff_name"] = df["staff_name"].fillna(UNASSIGNED_LABEL)
    out = (
        df.groupby("staff_id", as_index=False, sort=False)
        .agg(
            staff_name=("staff_name", "first"),
            demand_hours=("monthly_hours", "sum"),
            tasks=("task_id", "count"),
        )
        .sort_values("demand_hours", ascending=False, kind="stable")
        .reset_index(drop=True)
    )
    return out


def stage_timings_frame(stats: PerformanceStats | Mapping[str, float]) -> pd.DataFrame:
    stage_ms = stats.stage_ms if isinstance(stats, PerformanceStats) else dict(stats)
    df = pd.DataFrame(
        {"stage": list(stage_ms.keys()), "ms": [float(v) for v in stage_ms.values()]}
    )
    total = df["ms"].sum()
    df["share"] = df["ms"] / total if total > 0 else 0.0
    return df
