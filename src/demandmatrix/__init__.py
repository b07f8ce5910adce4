from .config import Config, FilterOptions, cfg
from .engine import FilteringEngine
from .main import run_filtering
from .matrix import (
    DataPoint,
    DemandMatrix,
    FilterSpec,
    MonthDescriptor,
    PreferredStaffFilter,
    TaskContribution,
    TimeHorizon,
)
from .result_types import FilterResult, PerformanceStats, RunResult
from .validation import ValidationReport, validate

__all__ = [
    "Config",
    "cfg",
    "FilterOptions",
    "FilteringEngine",
    "run_filtering",
    "DataPoint",
    "DemandMatrix",
    "FilterSpec",
    "MonthDescriptor",
    "PreferredStaffFilter",
    "TaskContribution",
    "TimeHorizon",
    "FilterResult",
    "PerformanceStats",
    "RunResult",
    "ValidationReport",
    "validate",
]
