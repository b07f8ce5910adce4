from __future__ import annotations

import asyncio
import logging
from datetime import date

import psutil
import pytest

from demandmatrix.cache import FilterCache
from demandmatrix.config import Config, FilterOptions
from demandmatrix.engine import FilteringEngine
from demandmatrix.generate.matrix import MatrixGenConfig, create_matrix
from demandmatrix.matrix import FilterSpec, PreferredStaffFilter, TimeHorizon
from demandmatrix.monitor import PerformanceMonitor
from demandmatrix.stages.base import FilterStage, StageSpec
from demandmatrix.stages.registry import default_stage_specs
from demandmatrix.staff_ref import resolve_id
from demandmatrix.validation import validate


class ExplodingStage(FilterStage):
    order = 25
    name = "exploding"

    def filter_point(self, point, spec):
        raise RuntimeError("boom")


def make_engine(clock=None, **cfg_kwargs) -> FilteringEngine:
    C = Config(**cfg_kwargs)
    cache = FilterCache(
        max_size=C.CACHE_MAX_SIZE, default_ttl_ms=C.CACHE_TTL_MS, clock=clock or (lambda: 0.0)
    )
    return FilteringEngine(C, cache=cache)


def test_skill_scenario(scenario_matrix):
    res = make_engine().filter(scenario_matrix, FilterSpec(skills={"Tax"}))
    m = res.filtered_matrix
    assert len(m.data_points) == 1
    assert m.data_points[0].skill_type == "Tax"
    assert m.total_demand == pytest.approx(15.0)
    assert m.total_tasks == 2
    assert m.total_clients == 2
    assert m.skills == ("Tax",)
    assert not res.fell_back and not res.cache_hit


def test_preferred_staff_scenario(scenario_matrix):
    spec = FilterSpec(
        preferred_staff=PreferredStaffFilter(staff_ids={"S1"}, include_unassigned=True)
    )
    m = make_engine().filter(scenario_matrix, spec).filtered_matrix
    assert [p.skill_type for p in m.data_points] == ["Tax"]
    assert m.data_points[0].task_count == 2
    assert m.total_tasks == 2
    assert m.total_demand == pytest.approx(15.0)


def test_no_op_returns_input_unchanged(quarter_matrix):
    engine = make_engine()
    res = engine.filter(quarter_matrix, FilterSpec())
    assert res.filtered_matrix is quarter_matrix
    assert res.early_exit
    assert "filtering.no_op" in engine.monitor.get_stats()
    assert len(engine.cache) == 0


def test_idempotence(quarter_matrix):
    engine = make_engine()
    spec = FilterSpec(
        skills={"Tax", "Audit"},
        clients={"C1", "C3"},
        preferred_staff=PreferredStaffFilter(staff_ids={"S1", "S2"}),
    )
    once = engine.filter(quarter_matrix, spec, FilterOptions(enable_caching=False))
    twice = engine.filter(
        once.filtered_matrix, spec, FilterOptions(enable_caching=False)
    )
    assert twice.filtered_matrix == once.filtered_matrix


def test_totals_consistent_after_every_filter(quarter_matrix):
    engine = make_engine()
    specs = [
        FilterSpec(skills={"Audit"}),
        FilterSpec(clients={"C3"}),
        FilterSpec(time_horizon=TimeHorizon(date(2024, 2, 1), date(2024, 2, 29))),
        FilterSpec(preferred_staff=PreferredStaffFilter(show_only_preferred=True)),
    ]
    for spec in specs:
        res = engine.filter(quarter_matrix, spec)
        report = validate(quarter_matrix, spec, res.filtered_matrix)
        assert report.is_valid, report.errors


def test_mode_exclusivity(quarter_matrix):
    engine = make_engine()
    none_mode = engine.filter(
        quarter_matrix,
        FilterSpec(preferred_staff=PreferredStaffFilter(show_only_preferred=True)),
    ).filtered_matrix
    assert all(resolve_id(t.preferred_staff) is None for _, t in none_mode.iter_tasks())

    specific = engine.filter(
        quarter_matrix,
        FilterSpec(preferred_staff=PreferredStaffFilter(staff_ids={"S2"})),
    ).filtered_matrix
    assert {resolve_id(t.preferred_staff) for _, t in specific.iter_tasks()} == {"S2"}


def test_cache_hit_then_miss_after_ttl(clock, quarter_matrix):
    engine = make_engine(clock=clock, CACHE_TTL_MS=1000)
    assert len(engine.cache) == 0
    spec = FilterSpec(skills={"Tax"})

    first = engine.filter(quarter_matrix, spec)
    second = engine.filter(quarter_matrix, spec)
    assert not first.cache_hit
    assert second.cache_hit
    assert second.filtered_matrix is first.filtered_matrix
    assert second.performance_stats.cache_hit_rate == pytest.approx(0.5)

    clock.advance(2.0)
    third = engine.filter(quarter_matrix, spec)
    assert not third.cache_hit
    assert third.filtered_matrix == first.filtered_matrix


def test_caching_can_be_disabled_per_call(quarter_matrix):
    engine = make_engine()
    opts = FilterOptions(enable_caching=False)
    engine.filter(quarter_matrix, FilterSpec(skills={"Tax"}), opts)
    res = engine.filter(quarter_matrix, FilterSpec(skills={"Tax"}), opts)
    assert not res.cache_hit
    assert len(engine.cache) == 0


@pytest.mark.parametrize("chunk_size", [1, 2, 7, 100])
def test_chunked_equivalence(chunk_size):
    matrix = create_matrix(MatrixGenConfig(n_tasks=60, n_months=6, seed=3))
    spec = FilterSpec(
        skills={"Tax", "Audit", "CPA"},
        clients={f"client-{i}" for i in range(1, 12)},
        preferred_staff=PreferredStaffFilter(
            staff_ids={"staff-1", "staff-2"}, include_unassigned=True
        ),
    )
    engine = make_engine()
    baseline = engine.filter(
        matrix, spec, FilterOptions(enable_caching=False, chunk_size=10_000)
    )
    chunked = engine.filter(
        matrix, spec, FilterOptions(enable_caching=False, chunk_size=chunk_size)
    )
    assert chunked.filtered_matrix == baseline.filtered_matrix


def test_on_yield_called_between_chunks(quarter_matrix):
    calls: list[int] = []
    make_engine().filter(
        quarter_matrix,
        FilterSpec(skills={"Tax", "Audit"}),
        FilterOptions(chunk_size=1, enable_caching=False),
        on_yield=calls.append,
    )
    assert calls == [0, 1, 2]


def test_filter_async_matches_sync(quarter_matrix):
    engine = make_engine()
    spec = FilterSpec(clients={"C1"}, skills={"Tax"})
    opts = FilterOptions(enable_caching=False, chunk_size=1)
    sync = engine.filter(quarter_matrix, spec, opts)
    async_res = asyncio.run(engine.filter_async(quarter_matrix, spec, opts))
    assert async_res.filtered_matrix == sync.filtered_matrix


def test_stage_failure_falls_back_to_input(quarter_matrix, caplog):
    specs = default_stage_specs() + [StageSpec(cls=ExplodingStage)]
    engine = FilteringEngine(Config(), stages=specs)
    with caplog.at_level(logging.ERROR, logger="demandmatrix.engine"):
        res = engine.filter(quarter_matrix, FilterSpec(skills={"Tax"}))
    assert res.fell_back
    assert res.filtered_matrix is quarter_matrix
    assert "RuntimeError" in (res.error or "")
    assert "Filtering failed" in caplog.text
    assert len(engine.cache) == 0


def test_input_is_not_mutated(quarter_matrix):
    before = quarter_matrix.to_dict()
    make_engine().filter(quarter_matrix, FilterSpec(clients={"C2"}))
    assert quarter_matrix.to_dict() == before


def test_performance_stats(quarter_matrix):
    engine = make_engine()
    res = engine.filter(quarter_matrix, FilterSpec(skills={"Audit"}, clients={"C1"}))
    stats = res.performance_stats
    assert set(stats.stage_ms) == {"skills", "clients", "recalculate"}
    assert stats.data_reduction_ratio == pytest.approx(0.75)
    assert stats.filter_efficiency == pytest.approx(0.25)
    assert isinstance(stats.memory_delta_bytes, int)
    recorded = engine.monitor.get_stats()
    assert {"filtering.total", "filtering.skills", "filtering.clients"} <= set(recorded)


def test_injected_collaborators_are_kept_even_when_empty(clock, quarter_matrix):
    C = Config(CACHE_TTL_MS=1000)
    injected = FilterCache(default_ttl_ms=1000, clock=clock)
    monitor = PerformanceMonitor.from_config(C)
    engine = FilteringEngine(C, cache=injected, monitor=monitor)
    assert engine.cache is injected
    assert engine.monitor is monitor
    assert engine.config is C

    spec = FilterSpec(clients={"C1"})
    engine.filter(quarter_matrix, spec)
    assert len(injected) == 1
    assert engine.filter(quarter_matrix, spec).cache_hit

    clock.advance(2.0)
    assert not engine.filter(quarter_matrix, spec).cache_hit


def test_unreadable_rss_reports_zero_delta(quarter_matrix, monkeypatch):
    engine = make_engine()

    class DeniedProcess:
        def memory_info(self):
            raise psutil.AccessDenied()

    monkeypatch.setattr(engine, "_process", DeniedProcess())
    res = engine.filter(quarter_matrix, FilterSpec(skills={"Tax"}))
    assert not res.fell_back
    assert res.performance_stats.memory_delta_bytes == 0
    assert len(res.filtered_matrix.data_points) == 2


def test_bookkeeping_failure_falls_back_without_caching(quarter_matrix, monkeypatch):
    engine = make_engine()

    def broken(*args, **kwargs):
        raise RuntimeError("monitor down")

    monkeypatch.setattr(engine.monitor, "record_memory_usage", broken)
    res = engine.filter(quarter_matrix, FilterSpec(skills={"Tax"}))
    assert res.fell_back
    assert res.filtered_matrix is quarter_matrix
    assert len(engine.cache) == 0

    async_res = asyncio.run(engine.filter_async(quarter_matrix, FilterSpec(skills={"Tax"})))
    assert async_res.fell_back


def test_invalid_options_fall_back(quarter_matrix):
    res = make_engine().filter(
        quarter_matrix, FilterSpec(skills={"Tax"}), FilterOptions(chunk_size=0)
    )
    assert res.fell_back
    assert "chunk_size" in (res.error or "")
