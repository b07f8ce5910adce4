"""
Post-hoc consistency checks for a filtered matrix.

The validator never raises and never mutates: every finding lands in the
returned `ValidationReport`. Severities follow a simple scale:

  critical -> aggregates disagree with the task detail they summarise
  major    -> structure or filter logic is wrong
  minor    -> cosmetic drift
  warning  -> suspicious but legal (large reductions, slow runs)
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Literal, Optional

from demandmatrix.config import Config, cfg
from demandmatrix.matrix import DemandMatrix, FilterSpec
from demandmatrix.modes import StaffFilterMode, resolve_mode, task_passes
from demandmatrix.result_types import PerformanceStats
from demandmatrix.staff_ref import resolve_id

Severity = Literal["critical", "major", "minor", "warning"]

# integrity categories
TASK_COUNT = "task_count"
DEMAND_HOURS = "demand_hours"
CLIENT_COUNT = "client_count"
TOTALS = "totals"
SKILLS = "skills"
MONTHS = "months"
PREFERRED_STAFF = "preferred_staff"
STRUCTURE = "structure"
FILTERS = "filters"


@dataclass(frozen=True)
class ValidationIssue:
    code: str
    message: str
    severity: Severity
    context: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class IntegrityCheck:
    task_count_consistent: bool
    demand_hours_consistent: bool
    client_count_consistent: bool
    totals_consistent: bool
    skills_consistent: bool
    months_consistent: bool
    preferred_staff_consistent: bool

    @property
    def score(self) -> float:
        """Percentage of passing checks (0-100)."""
        flags = (
            self.task_count_consistent,
            self.demand_hours_consistent,
            self.client_count_consistent,
            self.totals_consistent,
            self.skills_consistent,
            self.months_consistent,
            self.preferred_staff_consistent,
        )
        return 100.0 * sum(flags) / len(flags)


@dataclass(frozen=True)
class ValidationReport:
    is_valid: bool
    errors: tuple[ValidationIssue, ...]
    warnings: tuple[ValidationIssue, ...]
    integrity: IntegrityCheck

    def codes(self) -> set[str]:
        return {i.code for i in self.errors} | {i.code for i in self.warnings}


class _Collector:
    def __init__(self) -> None:
        self.errors: list[ValidationIssue] = []
        self.warnings: list[ValidationIssue] = []
        self.failed: set[str] = set()

    def error(
        self, category: str, code: str, severity: Severity, message: str, **context: Any
    ) -> None:
        self.failed.add(category)
        self.errors.append(ValidationIssue(code, message, severity, context))

    def warn(self, code: str, message: str, **context: Any) -> None:
        self.warnings.append(ValidationIssue(code, message, "warning", context))


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def validate(
    original: DemandMatrix,
    filters: FilterSpec,
    filtered: DemandMatrix,
    performance_stats: Optional[PerformanceStats] = None,
    config: Config | None = None,
) -> ValidationReport:
    """
    Check `filtered` against its own task detail, against `filters`, and
    against `original` (for reduction warnings).

    `is_valid` is True exactly when no errors were found; warnings never
    invalidate a result.
    """
    C = config or cfg
    out = _Collector()

    _check_structure(filtered, out)
    _check_points(filtered, C.TOTAL_EPSILON, out)
    _check_totals(filtered, C.TOTAL_EPSILON, out)
    _check_derived_sets(original, filtered, out)
    _check_filter_logic(filters, filtered, out)
    _check_preferred_staff(filters, filtered, out)
    _check_warnings(original, filtered, performance_stats, C, out)

    integrity = IntegrityCheck(
        task_count_consistent=TASK_COUNT not in out.failed,
        demand_hours_consistent=DEMAND_HOURS not in out.failed,
        client_count_consistent=CLIENT_COUNT not in out.failed,
        totals_consistent=TOTALS not in out.failed,
        skills_consistent=SKILLS not in out.failed,
        months_consistent=MONTHS not in out.failed,
        preferred_staff_consistent=PREFERRED_STAFF not in out.failed,
    )
    return ValidationReport(
        is_valid=not out.errors,
        errors=tuple(out.errors),
        warnings=tuple(out.warnings),
        integrity=integrity,
    )


# ----------------------------
# Individual checks
# ----------------------------
def _check_structure(m: DemandMatrix, out: _Collector) -> None:
    month_keys = set(m.month_keys)
    seen: set[tuple[str, str]] = set()
    for p in m.data_points:
        if not _is_number(p.demand_hours) or p.demand_hours < 0:
            out.error(
                STRUCTURE,
                "INVALID_DEMAND_HOURS",
                "major",
                f"Invalid demand hours {p.demand_hours!r} for {p.skill_type}/{p.month}",
                skill=p.skill_type,
                month=p.month,
            )
        if not isinstance(p.task_count, int) or p.task_count < 0:
            out.error(
                STRUCTURE,
                "INVALID_TASK_COUNT",
                "major",
                f"Invalid task count {p.task_count!r} for {p.skill_type}/{p.month}",
                skill=p.skill_type,
                month=p.month,
            )
        if p.cell in seen:
            out.error(
                STRUCTURE,
                "DUPLICATE_DATA_POINT",
                "major",
                f"Duplicate data point for {p.skill_type}/{p.month}",
                skill=p.skill_type,
                month=p.month,
            )
        seen.add(p.cell)
        if p.month not in month_keys:
            out.error(
                MONTHS,
                "UNKNOWN_MONTH",
                "major",
                f"Data point month {p.month} is not listed in matrix months",
                month=p.month,
            )


def _check_points(m: DemandMatrix, eps: float, out: _Collector) -> None:
    for p in m.data_points:
        where = f"{p.skill_type}/{p.month}"
        if len(p.task_breakdown) != p.task_count:
            out.error(
                TASK_COUNT,
                "TASK_COUNT_MISMATCH",
                "critical",
                f"{where}: task count {p.task_count} but "
                f"{len(p.task_breakdown)} tasks in breakdown",
                skill=p.skill_type,
                month=p.month,
                expected=len(p.task_breakdown),
                actual=p.task_count,
            )
        hours = math.fsum(t.monthly_hours for t in p.task_breakdown)
        if _is_number(p.demand_hours) and abs(hours - p.demand_hours) > eps:
            out.error(
                DEMAND_HOURS,
                "DEMAND_HOURS_MISMATCH",
                "critical",
                f"{where}: demand {p.demand_hours} but breakdown sums to {hours}",
                skill=p.skill_type,
                month=p.month,
                expected=hours,
                actual=p.demand_hours,
            )
        clients = len({t.client_id for t in p.task_breakdown})
        if clients != p.client_count:
            out.error(
                CLIENT_COUNT,
                "CLIENT_COUNT_MISMATCH",
                "major",
                f"{where}: client count {p.client_count} but "
                f"{clients} distinct clients in breakdown",
                skill=p.skill_type,
                month=p.month,
                expected=clients,
                actual=p.client_count,
            )


def _check_totals(m: DemandMatrix, eps: float, out: _Collector) -> None:
    demand = math.fsum(p.demand_hours for p in m.data_points if _is_number(p.demand_hours))
    if abs(demand - m.total_demand) > eps:
        out.error(
            TOTALS,
            "TOTAL_DEMAND_MISMATCH",
            "critical",
            f"Total demand {m.total_demand} but data points sum to {demand}",
            expected=demand,
            actual=m.total_demand,
        )
    tasks = sum(p.task_count for p in m.data_points if isinstance(p.task_count, int))
    if tasks != m.total_tasks:
        out.error(
            TOTALS,
            "TOTAL_TASKS_MISMATCH",
            "critical",
            f"Total tasks {m.total_tasks} but data points sum to {tasks}",
            expected=tasks,
            actual=m.total_tasks,
        )
    clients = len({t.client_id for _, t in m.iter_tasks()})
    if clients != m.total_clients:
        out.error(
            TOTALS,
            "TOTAL_CLIENTS_MISMATCH",
            "critical",
            f"Total clients {m.total_clients} but {clients} distinct clients in tasks",
            expected=clients,
            actual=m.total_clients,
        )


def _check_derived_sets(
    original: DemandMatrix, m: DemandMatrix, out: _Collector
) -> None:
    point_skills = {p.skill_type for p in m.data_points}
    if set(m.skills) != point_skills:
        out.error(
            SKILLS,
            "SKILLS_MISMATCH",
            "major",
            "Matrix skills do not match the skills present in data points",
            listed=sorted(m.skills),
            present=sorted(point_skills),
        )
    original_months = set(original.month_keys)
    extra = [k for k in m.month_keys if k not in original_months]
    if extra:
        out.error(
            MONTHS,
            "MONTH_NOT_IN_ORIGINAL",
            "major",
            f"Filtered matrix lists months absent from the input: {extra}",
            months=extra,
        )


def _check_filter_logic(filters: FilterSpec, m: DemandMatrix, out: _Collector) -> None:
    if filters.skills:
        bad = sorted({p.skill_type for p in m.data_points} - filters.skills)
        if bad:
            out.error(
                SKILLS,
                "SKILL_FILTER_VIOLATION",
                "major",
                f"Skills outside the skill filter survived: {bad}",
                skills=bad,
            )
    if filters.clients:
        bad = sorted({t.client_id for _, t in m.iter_tasks()} - filters.clients)
        if bad:
            out.error(
                FILTERS,
                "CLIENT_FILTER_VIOLATION",
                "major",
                f"Clients outside the client filter survived: {bad}",
                clients=bad,
            )
    horizon = filters.time_horizon
    if horizon is not None:
        bad = [mo.key for mo in m.months if not horizon.contains(mo.start_date)]
        if bad:
            out.error(
                MONTHS,
                "TIME_HORIZON_VIOLATION",
                "major",
                f"Months outside {horizon.start}..{horizon.end} survived: {bad}",
                months=bad,
            )


def _check_preferred_staff(
    filters: FilterSpec, m: DemandMatrix, out: _Collector
) -> None:
    ps = filters.preferred_staff
    mode = resolve_mode(ps)
    if mode is StaffFilterMode.ALL:
        return
    for p, t in m.iter_tasks():
        if task_passes(mode, ps, t):
            continue
        staff_id = resolve_id(t.preferred_staff)
        ctx = {"task": t.task_id, "skill": p.skill_type, "month": p.month}
        if mode is StaffFilterMode.NONE:
            out.error(
                PREFERRED_STAFF,
                "ASSIGNED_TASK_IN_NONE_MODE",
                "major",
                f"Task {t.task_id} is preferred to {staff_id} but only "
                "unassigned tasks were requested",
                staff=staff_id,
                **ctx,
            )
        elif staff_id is None:
            out.error(
                PREFERRED_STAFF,
                "UNASSIGNED_TASK_IN_SPECIFIC_MODE",
                "major",
                f"Unassigned task {t.task_id} survived without include_unassigned",
                **ctx,
            )
        else:
            out.error(
                PREFERRED_STAFF,
                "STAFF_FILTER_VIOLATION_SPECIFIC",
                "major",
                f"Task {t.task_id} is preferred to unselected staff {staff_id}",
                staff=staff_id,
                **ctx,
            )


def _check_warnings(
    original: DemandMatrix,
    m: DemandMatrix,
    stats: Optional[PerformanceStats],
    C: Config,
    out: _Collector,
) -> None:
    n_in = len(original.data_points)
    if n_in:
        reduction = 1.0 - len(m.data_points) / n_in
        if reduction > C.HIGH_REDUCTION_RATIO:
            out.warn(
                "HIGH_DATA_REDUCTION",
                f"Filtering removed {reduction:.1%} of data points",
                ratio=reduction,
            )
    if stats is not None and stats.total_ms > C.SLOW_FILTERING_MS:
        out.warn(
            "SLOW_FILTERING_PERFORMANCE",
            f"Filtering took {stats.total_ms:.0f}ms "
            f"(threshold: {C.SLOW_FILTERING_MS:.0f}ms)",
            total_ms=stats.total_ms,
        )
