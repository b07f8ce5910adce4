from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Any, Iterable, Mapping, Optional, Sequence

from demandmatrix.staff_ref import StaffRef


def _to_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value).date()
        except ValueError as exc:
            raise ValueError(f"Invalid date string {value!r}") from exc
    raise TypeError("Dates must be ISO strings or date/datetime objects.")


def _freeze_ids(values: Any) -> frozenset[str]:
    if values is None:
        return frozenset()
    if isinstance(values, str):
        values = [values]
    out = set()
    for v in values:
        if v is None:
            continue
        s = str(v).strip()
        if s:
            out.add(s)
    return frozenset(out)


# ----------------------------
# Matrix value objects
# ----------------------------
@dataclass(frozen=True, slots=True)
class MonthDescriptor:
    key: str  # "YYYY-MM"
    label: str = ""

    @property
    def start_date(self) -> date:
        """First day of the month described by `key`."""
        if len(self.key) == 7:
            return date.fromisoformat(self.key + "-01")
        return _to_date(self.key[:10]).replace(day=1)


@dataclass(frozen=True, slots=True)
class TaskContribution:
    """One task's hours inside a (skill, month) cell."""

    client_id: str
    task_id: str
    skill_type: str
    monthly_hours: float
    client_name: str = ""
    task_name: str = ""
    recurrence_pattern: Any = None
    preferred_staff: Any = None  # str | Mapping | StaffRef | None


@dataclass(frozen=True, slots=True)
class DataPoint:
    skill_type: str
    month: str
    demand_hours: float
    task_count: int
    client_count: int
    task_breakdown: tuple[TaskContribution, ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.task_breakdown, tuple):
            object.__setattr__(self, "task_breakdown", tuple(self.task_breakdown))

    @classmethod
    def from_tasks(
        cls, skill_type: str, month: str, tasks: Iterable[TaskContribution]
    ) -> "DataPoint":
        """Build a cell whose aggregates are derived from its task breakdown."""
        breakdown = tuple(tasks)
        return cls(
            skill_type=skill_type,
            month=month,
            demand_hours=math.fsum(t.monthly_hours for t in breakdown),
            task_count=len(breakdown),
            client_count=len({t.client_id for t in breakdown}),
            task_breakdown=breakdown,
        )

    @property
    def cell(self) -> tuple[str, str]:
        return (self.skill_type, self.month)


@dataclass(frozen=True, slots=True)
class DemandMatrix:
    """
    Immutable (skill x month) demand snapshot handed over by the host application.
    """

    months: tuple[MonthDescriptor, ...]
    skills: tuple[str, ...]
    data_points: tuple[DataPoint, ...]
    total_demand: float
    total_tasks: int
    total_clients: int

    def __post_init__(self) -> None:
        for attr in ("months", "skills", "data_points"):
            val = getattr(self, attr)
            if not isinstance(val, tuple):
                object.__setattr__(self, attr, tuple(val))
        seen: set[str] = set()
        for m in self.months:
            if m.key in seen:
                raise ValueError(f"Duplicate month key {m.key!r} in matrix months.")
            seen.add(m.key)

    @classmethod
    def from_points(
        cls,
        months: Sequence[MonthDescriptor],
        data_points: Sequence[DataPoint],
        skills: Optional[Sequence[str]] = None,
    ) -> "DemandMatrix":
        """Assemble a matrix whose totals are derived from `data_points`."""
        from demandmatrix.aggregate import compute_totals, present_skills

        points = tuple(data_points)
        total_demand, total_tasks, total_clients = compute_totals(points)
        return cls(
            months=tuple(months),
            skills=tuple(skills) if skills is not None else present_skills((), points),
            data_points=points,
            total_demand=total_demand,
            total_tasks=total_tasks,
            total_clients=total_clients,
        )

    @property
    def month_keys(self) -> tuple[str, ...]:
        return tuple(m.key for m in self.months)

    def with_points(self, data_points: Iterable[DataPoint]) -> "DemandMatrix":
        """Copy with a new data point list; totals are left for the recalculator."""
        return replace(self, data_points=tuple(data_points))

    def iter_tasks(self) -> Iterable[tuple[DataPoint, TaskContribution]]:
        for point in self.data_points:
            for task in point.task_breakdown:
                yield point, task

    # ---------- host (camelCase) codec ----------

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "DemandMatrix":
        if not isinstance(raw, Mapping):
            raise TypeError("Matrix must be an object/dict.")

        months = tuple(
            MonthDescriptor(key=str(m["key"]), label=str(m.get("label", m["key"])))
            if isinstance(m, Mapping)
            else MonthDescriptor(key=str(m), label=str(m))
            for m in raw.get("months") or []
        )
        points = tuple(_point_from_dict(p) for p in raw.get("dataPoints") or [])
        skills = raw.get("skills")

        base = cls.from_points(
            months, points, skills=[str(s) for s in skills] if skills else None
        )
        # Keep host-supplied totals verbatim so a validator can flag drift.
        return replace(
            base,
            total_demand=float(raw.get("totalDemand", base.total_demand)),
            total_tasks=int(raw.get("totalTasks", base.total_tasks)),
            total_clients=int(raw.get("totalClients", base.total_clients)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "months": [{"key": m.key, "label": m.label} for m in self.months],
            "skills": list(self.skills),
            "dataPoints": [_point_to_dict(p) for p in self.data_points],
            "totalDemand": self.total_demand,
            "totalTasks": self.total_tasks,
            "totalClients": self.total_clients,
        }


def _task_from_dict(raw: Mapping[str, Any], skill_type: str) -> TaskContribution:
    return TaskContribution(
        client_id=str(raw.get("clientId", "")),
        client_name=str(raw.get("clientName", "")),
        task_id=str(raw.get("taskId", "")),
        task_name=str(raw.get("taskName", "")),
        skill_type=str(raw.get("skillType", skill_type)),
        monthly_hours=float(raw.get("monthlyHours", 0.0) or 0.0),
        recurrence_pattern=raw.get("recurrencePattern"),
        preferred_staff=raw.get("preferredStaff"),
    )


def _point_from_dict(raw: Mapping[str, Any]) -> DataPoint:
    if not isinstance(raw, Mapping):
        raise TypeError("Each data point must be an object/dict.")
    skill = str(raw["skillType"])
    month = str(raw["month"])
    tasks = tuple(_task_from_dict(t, skill) for t in raw.get("taskBreakdown") or [])
    derived = DataPoint.from_tasks(skill, month, tasks)
    return replace(
        derived,
        demand_hours=float(raw.get("demandHours", derived.demand_hours)),
        task_count=int(raw.get("taskCount", derived.task_count)),
        client_count=int(raw.get("clientCount", derived.client_count)),
    )


def _staff_to_json(ref: Any) -> Any:
    if isinstance(ref, StaffRef):
        return ref.to_dict()
    if isinstance(ref, Mapping):
        return dict(ref)
    return ref


def _point_to_dict(p: DataPoint) -> dict[str, Any]:
    return {
        "skillType": p.skill_type,
        "month": p.month,
        "demandHours": p.demand_hours,
        "taskCount": p.task_count,
        "clientCount": p.client_count,
        "taskBreakdown": [
            {
                "clientId": t.client_id,
                "clientName": t.client_name,
                "taskId": t.task_id,
                "taskName": t.task_name,
                "skillType": t.skill_type,
                "monthlyHours": t.monthly_hours,
                "recurrencePattern": t.recurrence_pattern,
                "preferredStaff": _staff_to_json(t.preferred_staff),
            }
            for t in p.task_breakdown
        ],
    }


# ----------------------------
# Filter specification
# ----------------------------
@dataclass(frozen=True, slots=True)
class TimeHorizon:
    """Inclusive date range over month start dates."""

    start: date
    end: date

    def __post_init__(self) -> None:
        object.__setattr__(self, "start", _to_date(self.start))
        object.__setattr__(self, "end", _to_date(self.end))
        if self.start > self.end:
            raise ValueError("TimeHorizon start must not be after end.")

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


@dataclass(frozen=True, slots=True)
class PreferredStaffFilter:
    staff_ids: frozenset[str] = frozenset()
    include_unassigned: bool = False
    show_only_preferred: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "staff_ids", _freeze_ids(self.staff_ids))
        object.__setattr__(self, "include_unassigned", bool(self.include_unassigned))
        object.__setattr__(self, "show_only_preferred", bool(self.show_only_preferred))


@dataclass(frozen=True, slots=True)
class FilterSpec:
    """
    Immutable filter criteria for one filtering call.

    Empty `skills` / `clients` mean "no restriction". Preferred-staff semantics
    are derived by `demandmatrix.modes.resolve_mode`.
    """

    skills: frozenset[str] = frozenset()
    clients: frozenset[str] = frozenset()
    time_horizon: Optional[TimeHorizon] = None
    preferred_staff: PreferredStaffFilter = field(default_factory=PreferredStaffFilter)

    def __post_init__(self) -> None:
        object.__setattr__(self, "skills", _freeze_ids(self.skills))
        object.__setattr__(self, "clients", _freeze_ids(self.clients))
        if self.preferred_staff is None:
            object.__setattr__(self, "preferred_staff", PreferredStaffFilter())

    def is_unrestricted(self) -> bool:
        from demandmatrix.modes import StaffFilterMode, resolve_mode

        return (
            not self.skills
            and not self.clients
            and self.time_horizon is None
            and resolve_mode(self.preferred_staff) is StaffFilterMode.ALL
        )

    def canonical(self) -> dict[str, Any]:
        """Stable, JSON-serialisable form used for cache keys."""
        th = self.time_horizon
        ps = self.preferred_staff
        return {
            "skills": sorted(self.skills),
            "clients": sorted(self.clients),
            "timeHorizon": (
                {"start": th.start.isoformat(), "end": th.end.isoformat()}
                if th is not None
                else None
            ),
            "preferredStaff": {
                "staffIds": sorted(ps.staff_ids),
                "includeUnassigned": ps.include_unassigned,
                "showOnlyPreferred": ps.show_only_preferred,
            },
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "FilterSpec":
        if not isinstance(raw, Mapping):
            raise TypeError("Filters must be an object/dict.")
        th_raw = raw.get("timeHorizon") or raw.get("dateRange")
        ps_raw = raw.get("preferredStaff") or {}
        if not isinstance(ps_raw, Mapping):
            raise TypeError("preferredStaff must be an object/dict.")
        return cls(
            skills=_freeze_ids(raw.get("skills") or raw.get("skillTypes")),
            clients=_freeze_ids(raw.get("clients") or raw.get("clientIds")),
            time_horizon=(
                TimeHorizon(start=th_raw["start"], end=th_raw["end"])
                if th_raw
                else None
            ),
            preferred_staff=PreferredStaffFilter(
                staff_ids=_freeze_ids(
                    ps_raw.get("staffIds") or raw.get("preferredStaffIds")
                ),
                include_unassigned=bool(ps_raw.get("includeUnassigned", False)),
                show_only_preferred=bool(ps_raw.get("showOnlyPreferred", False)),
            ),
        )
