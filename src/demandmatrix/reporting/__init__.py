from __future__ import annotations

from .frames import (
    demand_by_staff,
    demand_grid,
    matrix_to_frame,
    stage_timings_frame,
    tasks_to_frame,
)
from .text_report import ReportDocument, render_text_report

__all__ = [
    "ReportDocument",
    "demand_by_staff",
    "demand_grid",
    "matrix_to_frame",
    "render_text_report",
    "stage_timings_frame",
    "tasks_to_frame",
]
