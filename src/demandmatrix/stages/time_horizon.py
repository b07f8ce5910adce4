from __future__ import annotations

from dataclasses import replace

from demandmatrix.matrix import DemandMatrix, FilterSpec
from demandmatrix.stages.base import FilterStage


class TimeHorizonStage(FilterStage):
    """
    Keep months whose first day falls inside the inclusive time horizon, and only
    the data points that belong to a kept month.

    Runs on the whole matrix (months are matrix-level), not chunk by chunk.
    """

    order = 10
    name = "time_horizon"
    per_point = False

    def is_active(self, spec: FilterSpec) -> bool:
        return spec.time_horizon is not None

    def apply(self, matrix: DemandMatrix, spec: FilterSpec) -> DemandMatrix:
        horizon = spec.time_horizon
        if horizon is None:
            return matrix
        months = tuple(m for m in matrix.months if horizon.contains(m.start_date))
        keys = {m.key for m in months}
        return replace(
            matrix,
            months=months,
            data_points=tuple(p for p in matrix.data_points if p.month in keys),
        )
