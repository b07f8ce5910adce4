from __future__ import annotations

from typing import Any, Mapping

from demandmatrix.config import Config, FilterOptions, cfg
from demandmatrix.engine import FilteringEngine
from demandmatrix.generate.matrix import MatrixGenConfig, create_matrix
from demandmatrix.matrix import DemandMatrix, FilterSpec
from demandmatrix.reporting import render_text_report
from demandmatrix.result_types import RunResult
from demandmatrix.validation import validate


def run_filtering(
    matrix: DemandMatrix | Mapping[str, Any],
    filters: FilterSpec | Mapping[str, Any],
    config: Config | None = None,
    engine: FilteringEngine | None = None,
    options: FilterOptions | None = None,
    validate_config: bool = True,
    validate_result: bool = True,
    enable_reporting: bool = False,
) -> RunResult:
    """
    Filter a demand matrix and optionally validate and report on the result.

    Parameters
    ----------
    matrix:
        The matrix to filter, or the host's camelCase dict form of one.
    filters:
        The filter criteria, or the host's camelCase dict form of them.
    config:
        Engine defaults. Defaults to `demandmatrix.config.cfg` when omitted. Ignored
        when `engine` is supplied.
    engine:
        A long-lived engine to reuse (and share its cache and monitor). A fresh
        engine is built from `config` when omitted.
    options:
        Per-call overrides (caching, early exit, logging, chunk size, cache TTL).
    validate_config:
        Toggle to run `Config.validate()` before filtering.
    validate_result:
        When True, run the validator on the filtered matrix.
    enable_reporting:
        When True, print the diagnostic text report.

    Returns
    -------
    RunResult
        The engine's `FilterResult` and, when requested, a `ValidationReport`.
    """
    cfg_obj = engine.config if engine is not None else (config or cfg)
    if validate_config:
        cfg_obj.validate()

    if not isinstance(matrix, DemandMatrix):
        matrix = DemandMatrix.from_dict(matrix)
    if not isinstance(filters, FilterSpec):
        filters = FilterSpec.from_dict(filters)

    active_engine = engine or FilteringEngine(cfg_obj)
    result = active_engine.filter(matrix, filters, options)

    report = None
    if validate_result:
        report = validate(
            matrix,
            filters,
            result.filtered_matrix,
            performance_stats=result.performance_stats,
            config=cfg_obj,
        )

    if enable_reporting:
        render_text_report(result, report, active_engine.monitor)

    return RunResult(result=result, report=report)


def main() -> RunResult:
    """CLI entry point: filter a synthetic matrix down to one skill and print the report."""
    matrix = create_matrix(MatrixGenConfig())
    return run_filtering(
        matrix,
        FilterSpec(skills={matrix.skills[0]}),
        config=cfg,
        enable_reporting=True,
    )


if __name__ == "__main__":
    main()
