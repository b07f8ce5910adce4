# src/demandmatrix/stages/base.py
from __future__ import annotations

from abc import ABC
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Type

from demandmatrix.matrix import DataPoint, DemandMatrix, FilterSpec


@dataclass
class StageSpec:
    cls: Type["FilterStage"]
    order: int | None = None
    enabled: bool = True
    settings: dict[str, Any] = field(default_factory=dict)


class FilterStage(ABC):
    """
    A pure narrowing step: (matrix, spec) -> matrix'.

    Stages only rewrite data points (and, for the time horizon, months). Matrix
    totals are left stale; `demandmatrix.aggregate.recalculate` is
    the one place that derives them.

    Stages with `per_point = True` decide each data point independently, so the
    engine may feed them the points in chunks.
    """

    order: int = 100
    enabled: bool = True
    name: str = "Stage"
    per_point: bool = True

    def __init__(self, **settings: Any) -> None:
        self._settings: dict[str, Any] = settings

    def is_active(self, spec: FilterSpec) -> bool:
        """False when `spec` leaves this stage at its no-restriction value."""
        return True

    def filter_point(self, point: DataPoint, spec: FilterSpec) -> Optional[DataPoint]:
        return point

    def filter_points(
        self, points: Iterable[DataPoint], spec: FilterSpec
    ) -> list[DataPoint]:
        out: list[DataPoint] = []
        for p in points:
            kept = self.filter_point(p, spec)
            if kept is not None:
                out.append(kept)
        return out

    def apply(self, matrix: DemandMatrix, spec: FilterSpec) -> DemandMatrix:
        if not self.is_active(spec):
            return matrix
        return matrix.with_points(self.filter_points(matrix.data_points, spec))

    # Helper for subclasses to read optional settings
    def setting(self, key: str, default: Any) -> Any:
        return self._settings.get(key, default)
