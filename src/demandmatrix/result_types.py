# demandmatrix/result_types.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

from demandmatrix.matrix import DemandMatrix

if TYPE_CHECKING:
    from demandmatrix.validation import ValidationReport


@dataclass(frozen=True)
class PerformanceStats:
    """Timings and size metrics of one filtering call."""

    total_ms: float
    stage_ms: dict[str, float] = field(default_factory=dict)
    # 1 - filtered / original data points
    data_reduction_ratio: float = 0.0
    # filtered / original data points
    filter_efficiency: float = 1.0
    cache_hit_rate: float = 0.0
    memory_delta_bytes: int = 0


@dataclass(frozen=True)
class FilterResult:
    """Structured output of a filtering call."""

    filtered_matrix: DemandMatrix
    performance_stats: PerformanceStats
    cache_hit: bool = False
    # True when an error forced the unfiltered input to be returned
    fell_back: bool = False
    error: Optional[str] = None
    early_exit: bool = False


@dataclass(frozen=True)
class RunResult:
    """Output of `run_filtering`: the filter result plus its optional validation."""

    result: FilterResult
    report: Optional["ValidationReport"] = None

    @property
    def filtered_matrix(self) -> DemandMatrix:
        return self.result.filtered_matrix
