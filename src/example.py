"""
Module with example code for running the demand-matrix filtering engine.

There are three ways to run the code:

1. Filter a synthetic matrix generated from `MatrixGenConfig`.
2. Filter a small matrix defined via code, in each preferred-staff mode.
3. Filter a matrix pre-defined in a JSON file, twice, to show the cache.

Usage via cli:
    python3 -m src.example --option 1
"""

from __future__ import annotations

import argparse
import logging
from datetime import date
from pathlib import Path

from demandmatrix import (
    Config,
    DataPoint,
    DemandMatrix,
    FilteringEngine,
    FilterSpec,
    MonthDescriptor,
    PreferredStaffFilter,
    TaskContribution,
    TimeHorizon,
    run_filtering,
)
from demandmatrix.generate.matrix import (
    MatrixGenConfig,
    create_matrix,
    matrix_from_json,
    matrix_summary,
)

cfg = Config(
    CHUNK_SIZE=25,
    CACHE_TTL_MS=60_000,
    SLOW_OPERATION_MS=250.0,
)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run demand-matrix filtering examples.")
    parser.add_argument(
        "--option",
        type=int,
        default=3,
        choices=(1, 2, 3),
        help="Example scenario to run (default: 3).",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    return parser.parse_args()


def _small_matrix() -> DemandMatrix:
    months = [MonthDescriptor("2025-01", "Jan 2025"), MonthDescriptor("2025-02", "Feb 2025")]
    tax = [
        TaskContribution("c1", "t1", "Tax", 10.0, preferred_staff="s1"),
        TaskContribution("c2", "t2", "Tax", 5.0, preferred_staff=None),
    ]
    audit = [
        TaskContribution("c1", "t3", "Audit", 8.0, preferred_staff={"id": "s2", "name": "Sam"}),
    ]
    points = [
        DataPoint.from_tasks("Tax", "2025-01", tax),
        DataPoint.from_tasks("Audit", "2025-02", audit),
    ]
    return DemandMatrix.from_points(months, points, skills=["Tax", "Audit"])


def run_option(option: int) -> None:
    print(f"Running example code with option {option}")

    # Filter a synthetic matrix generated from the defaults.
    if option == 1:
        matrix = create_matrix(MatrixGenConfig(n_tasks=400, n_months=12))
        print(matrix_summary(matrix))
        run_filtering(
            matrix,
            FilterSpec(
                skills={"Tax", "Audit"},
                time_horizon=TimeHorizon(date(2025, 3, 1), date(2025, 8, 31)),
            ),
            config=cfg,
            enable_reporting=True,
        )

    # Filter a matrix defined via code, once per preferred-staff mode.
    elif option == 2:
        matrix = _small_matrix()
        engine = FilteringEngine(cfg)
        for label, ps in (
            ("specific (s1)", PreferredStaffFilter(staff_ids={"s1"})),
            (
                "specific (s1) + unassigned",
                PreferredStaffFilter(staff_ids={"s1"}, include_unassigned=True),
            ),
            ("unassigned only", PreferredStaffFilter(show_only_preferred=True)),
        ):
            print(f"\n=== Preferred staff: {label} ===")
            run_filtering(
                matrix,
                FilterSpec(preferred_staff=ps),
                engine=engine,
                enable_reporting=True,
            )

    # Filter a matrix loaded from JSON. Typical production use.
    elif option == 3:
        matrix = matrix_from_json(Path("src/example_matrix.json"))
        engine = FilteringEngine(cfg)
        filters = FilterSpec.from_dict(
            {"skills": ["Tax"], "preferredStaff": {"staffIds": ["s1"]}}
        )
        run_filtering(matrix, filters, engine=engine, enable_reporting=True)
        # Same call again is answered from the cache
        run_filtering(matrix, filters, engine=engine, enable_reporting=True)
    else:
        raise SystemExit(f"Unknown option {option}")


def main() -> None:
    args = parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)
    run_option(args.option)


if __name__ == "__main__":
    main()
