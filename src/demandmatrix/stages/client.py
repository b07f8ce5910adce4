from __future__ import annotations

from typing import Optional

from demandmatrix.aggregate import rebuild_point
from demandmatrix.matrix import DataPoint, FilterSpec
from demandmatrix.stages.base import FilterStage


class ClientStage(FilterStage):
    """
    Narrow each cell's task breakdown to the selected clients and rebuild the
    cell's aggregates. Cells left without tasks are dropped.
    An empty client selection is a no-op.
    """

    order = 30
    name = "clients"

    def is_active(self, spec: FilterSpec) -> bool:
        return bool(spec.clients)

    def filter_point(self, point: DataPoint, spec: FilterSpec) -> Optional[DataPoint]:
        if not spec.clients:
            return point
        kept = [t for t in point.task_breakdown if t.client_id in spec.clients]
        if len(kept) == point.task_count == len(point.task_breakdown):
            return point
        return rebuild_point(point, kept)
