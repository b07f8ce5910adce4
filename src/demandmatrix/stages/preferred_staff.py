from __future__ import annotations

from typing import Iterable, Optional

from demandmatrix.aggregate import rebuild_point
from demandmatrix.matrix import DataPoint, FilterSpec
from demandmatrix.modes import StaffFilterMode, resolve_mode, task_passes
from demandmatrix.stages.base import FilterStage


class PreferredStaffStage(FilterStage):
    """
    Three-mode preferred-staff filter.

      ALL      -> every task passes
      SPECIFIC -> tasks preferred to a selected staff member, plus unassigned
                  tasks when include_unassigned is set
      NONE     -> unassigned tasks only

    Mode and per-task policy come from `demandmatrix.modes`, shared with the
    validator.
    """

    order = 40
    name = "preferred_staff"

    def is_active(self, spec: FilterSpec) -> bool:
        return resolve_mode(spec.preferred_staff) is not StaffFilterMode.ALL

    def _keep(
        self, point: DataPoint, spec: FilterSpec, mode: StaffFilterMode
    ) -> Optional[DataPoint]:
        ps = spec.preferred_staff
        kept = [t for t in point.task_breakdown if task_passes(mode, ps, t)]
        if len(kept) == point.task_count == len(point.task_breakdown):
            return point
        return rebuild_point(point, kept)

    def filter_point(self, point: DataPoint, spec: FilterSpec) -> Optional[DataPoint]:
        mode = resolve_mode(spec.preferred_staff)
        if mode is StaffFilterMode.ALL:
            return point
        return self._keep(point, spec, mode)

    def filter_points(
        self, points: Iterable[DataPoint], spec: FilterSpec
    ) -> list[DataPoint]:
        mode = resolve_mode(spec.preferred_staff)
        if mode is StaffFilterMode.ALL:
            return list(points)
        out: list[DataPoint] = []
        for p in points:
            kept = self._keep(p, spec, mode)
            if kept is not None:
                out.append(kept)
        return out
