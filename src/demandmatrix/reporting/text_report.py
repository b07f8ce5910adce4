from __future__ import annotations

from pathlib import Path
from typing import Optional

import pandas as pd

from demandmatrix.monitor import PerformanceMonitor
from demandmatrix.result_types import FilterResult
from demandmatrix.validation import ValidationReport

from .frames import demand_by_staff, demand_grid, stage_timings_frame


class ReportDocument:
    def __init__(self, path: Path) -> None:
        self.path = path
        self.lines: list[str] = []

    def add_text(self, text: str) -> None:
        self.lines.append(text)

    def write(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        text = "\n".join(self.lines) if self.lines else "Report contains no data."
        self.path.write_text(text + "\n")


_ACTIVE_REPORT: Optional[ReportDocument] = None


def set_active_report(doc: Optional[ReportDocument]) -> None:
    global _ACTIVE_REPORT
    _ACTIVE_REPORT = doc


def get_active_report() -> Optional[ReportDocument]:
    return _ACTIVE_REPORT


def _log_print(*args, **kwargs) -> None:
    from io import StringIO

    buf = StringIO()
    kwargs_copy = kwargs.copy()
    kwargs_copy["file"] = buf
    print(*args, **kwargs_copy)
    print(*args, **kwargs)
    if _ACTIVE_REPORT is not None:
        _ACTIVE_REPORT.add_text(buf.getvalue().rstrip("\n"))


def _fmt_float(x: float | None, nd: int = 2, as_pct: bool = False) -> str:
    if x is None:
        return "nan"
    if pd.isna(x):
        return "nan"
    return f"{float(100 * x):.{nd}f}%" if as_pct else f"{float(x):.{nd}f}"


def _print_frame(title: str, df: pd.DataFrame) -> None:
    _log_print(f"\n{title}")
    if df.empty:
        _log_print("  (no data)")
        return
    _log_print(df.to_string())


def render_text_report(
    result: FilterResult,
    report: Optional[ValidationReport] = None,
    monitor: Optional[PerformanceMonitor] = None,
    *,
    max_staff_rows: int = 10,
) -> None:
    m = result.filtered_matrix
    stats = result.performance_stats

    if result.fell_back:
        _log_print(f"Filtering FAILED, unfiltered matrix returned: {result.error}")
    elif result.early_exit:
        _log_print("No active filters: matrix returned unchanged.")
    elif result.cache_hit:
        _log_print("Result served from cache.")

    _log_print(
        f"Matrix: {len(m.data_points)} data points, {len(m.skills)} skills, "
        f"{len(m.months)} months"
    )
    _log_print(
        f"Totals: demand={_fmt_float(m.total_demand)}h  tasks={m.total_tasks}  "
        f"clients={m.total_clients}"
    )
    _log_print(
        f"Filtering: {_fmt_float(stats.total_ms)}ms  "
        f"reduction={_fmt_float(stats.data_reduction_ratio, 1, as_pct=True)}  "
        f"cache hit rate={_fmt_float(stats.cache_hit_rate, 1, as_pct=True)}"
    )

    if stats.stage_ms:
        _print_frame("Stage timings (ms):", stage_timings_frame(stats))

    _print_frame("Demand hours by skill and month:", demand_grid(m))
    _print_frame(
        f"Top {max_staff_rows} preferred staff by demand:",
        demand_by_staff(m).head(max_staff_rows),
    )

    if report is not None:
        status = "VALID" if report.is_valid else "INVALID"
        _log_print(
            f"\nValidation: {status}  integrity score="
            f"{_fmt_float(report.integrity.score, 0)}%"
        )
        for issue in report.errors:
            _log_print(f"  [{issue.severity.upper()}] {issue.code}: {issue.message}")
        for issue in report.warnings:
            _log_print(f"  [WARNING] {issue.code}: {issue.message}")

    if monitor is not None:
        stats_by_op = monitor.get_stats()
        if stats_by_op:
            _log_print("\nMonitor (rolling window):")
            for op in sorted(stats_by_op):
                s = monitor.summary(op)
                assert s.stats is not None
                _log_print(
                    f"  {op:<28} avg={_fmt_float(s.stats.avg)}ms  "
                    f"p95={_fmt_float(s.stats.p95)}ms  n={s.stats.sample_count}  "
                    f"grade={s.grade}"
                )
        alerts = monitor.alerts()
        if alerts:
            _log_print(f"\nAlerts ({len(alerts)}):")
            for a in alerts[-5:]:
                _log_print(f"  [{a.severity}] {a.message}")
