# matrix_generation.py
from __future__ import annotations

import json
from collections import Counter
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, Mapping, Optional, Tuple

import numpy as np

from demandmatrix.matrix import DataPoint, DemandMatrix, MonthDescriptor, TaskContribution
from demandmatrix.staff_ref import resolve_id


# ----------------------------
# Configuration container
# ----------------------------
@dataclass(slots=True)
class MatrixGenConfig:
    """
    Configuration for generation of a synthetic demand matrix.
    """

    n_clients: int = 20
    n_tasks: int = 120
    n_staff: int = 8
    n_months: int = 12
    start: date = date(2025, 1, 1)

    skills: Tuple[str, ...] = ("Junior", "Senior", "CPA", "Tax", "Audit")

    # Monthly hours drawn uniformly from [min, max)
    hours_range: Tuple[float, float] = (2.0, 40.0)

    # Probability a task recurs in a given month
    monthly_activity: float = 0.6

    # Share of tasks with no preferred staff
    unassigned_pct: float = 0.35

    # Share of preferred-staff refs emitted as {"id", "name"} objects instead of bare ids
    structured_ref_pct: float = 0.5

    # RNG seed
    seed: Optional[int] = 7

    def validate(self) -> None:
        for attr in ("n_clients", "n_tasks", "n_staff", "n_months"):
            if getattr(self, attr) <= 0:
                raise ValueError(f"{attr} must be > 0.")
        if not self.skills:
            raise ValueError("skills must not be empty.")
        if len(set(self.skills)) != len(self.skills):
            raise ValueError("skills must be unique.")
        lo, hi = self.hours_range
        if lo < 0 or hi <= lo:
            raise ValueError("hours_range must satisfy 0 <= min < max.")
        for attr in ("monthly_activity", "unassigned_pct", "structured_ref_pct"):
            if not (0.0 <= getattr(self, attr) <= 1.0):
                raise ValueError(f"{attr} must be in [0,1].")
        if self.seed is not None and not isinstance(self.seed, int):
            raise ValueError("seed must be an int or None.")


# ----------------------------
# Generation helpers
# ----------------------------
def _rng(seed: Optional[int]) -> np.random.Generator:
    return np.random.default_rng(seed) if seed is not None else np.random.default_rng()


def _month_descriptors(start: date, n: int) -> list[MonthDescriptor]:
    out: list[MonthDescriptor] = []
    y, m = start.year, start.month
    for _ in range(n):
        d = date(y, m, 1)
        out.append(MonthDescriptor(key=d.strftime("%Y-%m"), label=d.strftime("%b %Y")))
        y, m = (y + 1, 1) if m == 12 else (y, m + 1)
    return out


# ----------------------------
# Core API
# ----------------------------
def create_matrix(cfg: MatrixGenConfig) -> DemandMatrix:
    """Generate a consistent demand matrix: every aggregate matches its task detail."""
    cfg.validate()
    g = _rng(cfg.seed)

    months = _month_descriptors(cfg.start, cfg.n_months)
    staff = [(f"staff-{i + 1}", f"Staff {i + 1}") for i in range(cfg.n_staff)]

    task_skills = g.choice(len(cfg.skills), size=cfg.n_tasks)
    task_clients = g.integers(0, cfg.n_clients, size=cfg.n_tasks)
    task_hours = g.uniform(*cfg.hours_range, size=cfg.n_tasks).round(1)
    unassigned = g.random(cfg.n_tasks) < cfg.unassigned_pct
    structured = g.random(cfg.n_tasks) < cfg.structured_ref_pct
    task_staff = g.integers(0, cfg.n_staff, size=cfg.n_tasks)
    active = g.random((cfg.n_tasks, cfg.n_months)) < cfg.monthly_activity

    cells: dict[tuple[str, str], list[TaskContribution]] = {}
    for t in range(cfg.n_tasks):
        skill = cfg.skills[int(task_skills[t])]
        client = int(task_clients[t])
        pref: Any = None
        if not unassigned[t]:
            sid, sname = staff[int(task_staff[t])]
            pref = {"id": sid, "name": sname} if structured[t] else sid
        for mi, month in enumerate(months):
            if not active[t, mi]:
                continue
            cells.setdefault((skill, month.key), []).append(
                TaskContribution(
                    client_id=f"client-{client + 1}",
                    client_name=f"Client {client + 1}",
                    task_id=f"task-{t + 1}",
                    task_name=f"{skill} task {t + 1}",
                    skill_type=skill,
                    monthly_hours=float(task_hours[t]),
                    recurrence_pattern="Monthly",
                    preferred_staff=pref,
                )
            )

    # row-major by skill then month, like the host grid
    points = [
        DataPoint.from_tasks(skill, month.key, cells[(skill, month.key)])
        for skill in cfg.skills
        for month in months
        if (skill, month.key) in cells
    ]
    return DemandMatrix.from_points(months, points)


def matrix_summary(matrix: DemandMatrix) -> dict:
    n_tasks = matrix.total_tasks
    staff = Counter(resolve_id(t.preferred_staff) for _, t in matrix.iter_tasks())
    unassigned = staff.pop(None, 0)
    return {
        "months": len(matrix.months),
        "skills": len(matrix.skills),
        "data_points": len(matrix.data_points),
        "total_demand": matrix.total_demand,
        "total_tasks": n_tasks,
        "total_clients": matrix.total_clients,
        "staff": dict(staff),
        "unassigned_pct": unassigned / n_tasks if n_tasks else 0.0,
    }


def matrix_from_json(path: str | Path) -> DemandMatrix:
    """
    Load a demand matrix from a JSON file on disk.

    Files may contain the matrix object itself or an object with a top-level
    `matrix`/`demandMatrix` key, using the host's camelCase field names.
    """
    file_path = Path(path).expanduser()

    if file_path.suffix.lower() != ".json":
        raise ValueError("matrix_from_json expects a path to a .json file.")
    if not file_path.exists():
        raise FileNotFoundError(f"Matrix JSON file not found: {file_path}")

    try:
        data = json.loads(file_path.read_text())
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {file_path}") from exc

    if not isinstance(data, Mapping):
        raise TypeError("JSON file must contain a matrix object.")
    inner = data.get("matrix") or data.get("demandMatrix")
    if inner is not None:
        data = inner
    if "dataPoints" not in data:
        raise ValueError("Matrix JSON must contain a 'dataPoints' array.")
    return DemandMatrix.from_dict(data)
