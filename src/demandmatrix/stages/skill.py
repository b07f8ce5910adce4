from __future__ import annotations

from typing import Optional

from demandmatrix.matrix import DataPoint, FilterSpec
from demandmatrix.stages.base import FilterStage


class SkillStage(FilterStage):
    """Keep cells whose skill is selected. An empty selection means every skill."""

    order = 20
    name = "skills"

    def is_active(self, spec: FilterSpec) -> bool:
        return bool(spec.skills)

    def filter_point(self, point: DataPoint, spec: FilterSpec) -> Optional[DataPoint]:
        if not spec.skills:
            return point
        return point if point.skill_type in spec.skills else None
