# tests/conftest.py
from __future__ import annotations

import os
import random
from pathlib import Path

import numpy as np
import pytest

from demandmatrix.matrix import DataPoint, DemandMatrix, MonthDescriptor, TaskContribution


# -----------------------------
# Global, deterministic seeding
# -----------------------------
@pytest.fixture(autouse=True, scope="session")
def _seed_everything() -> None:
    """
    Make tests deterministic across runs. If you need a different seed in a test,
    override locally.
    """
    seed = int(os.environ.get("PYTEST_SEED", "1234"))
    os.environ["PYTHONHASHSEED"] = str(seed)
    random.seed(seed)
    np.random.seed(seed)


# -----------------------------
# Path helpers
# -----------------------------
@pytest.fixture(scope="session")
def project_root() -> Path:
    """Repository root (where pyproject.toml lives)."""
    return Path(__file__).resolve().parents[1]


# -----------------------------
# Shared data
# -----------------------------
class FakeClock:
    """Manually advanced clock, in seconds."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def _task(client: str, task_id: str, skill: str, hours: float, staff=None) -> TaskContribution:
    return TaskContribution(
        client_id=client,
        task_id=task_id,
        skill_type=skill,
        monthly_hours=hours,
        preferred_staff=staff,
    )


@pytest.fixture
def scenario_matrix() -> DemandMatrix:
    """Two cells in Jan 2024: Tax (C1/S1 10h, C2/unassigned 5h), Audit (C1/S2 8h)."""
    tax = DataPoint.from_tasks(
        "Tax",
        "2024-01",
        [_task("C1", "T1", "Tax", 10.0, "S1"), _task("C2", "T2", "Tax", 5.0, None)],
    )
    audit = DataPoint.from_tasks("Audit", "2024-01", [_task("C1", "T3", "Audit", 8.0, "S2")])
    return DemandMatrix.from_points(
        [MonthDescriptor("2024-01", "Jan 2024")], [tax, audit], skills=["Tax", "Audit"]
    )


@pytest.fixture
def quarter_matrix() -> DemandMatrix:
    """Three months, two skills, mixed staff reference shapes."""
    months = [
        MonthDescriptor("2024-01", "Jan 2024"),
        MonthDescriptor("2024-02", "Feb 2024"),
        MonthDescriptor("2024-03", "Mar 2024"),
    ]
    points = [
        DataPoint.from_tasks(
            "Tax",
            "2024-01",
            [
                _task("C1", "T1", "Tax", 10.0, "S1"),
                _task("C2", "T2", "Tax", 5.0, None),
            ],
        ),
        DataPoint.from_tasks(
            "Tax",
            "2024-02",
            [
                _task("C1", "T1", "Tax", 10.0, {"id": "S1", "name": "Sam"}),
                _task("C3", "T4", "Tax", 4.0, {"staffId": "S3", "full_name": "Kim"}),
            ],
        ),
        DataPoint.from_tasks(
            "Audit",
            "2024-02",
            [_task("C1", "T3", "Audit", 8.0, "S2")],
        ),
        DataPoint.from_tasks(
            "Audit",
            "2024-03",
            [
                _task("C2", "T5", "Audit", 6.0, "  "),
                _task("C3", "T6", "Audit", 2.5, {"name": "S2"}),
            ],
        ),
    ]
    return DemandMatrix.from_points(months, points, skills=["Tax", "Audit"])
