from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Sequence, Type

import psutil

from demandmatrix.aggregate import recalculate
from demandmatrix.cache import FilterCache, fingerprint
from demandmatrix.chunking import process_in_chunks, process_in_chunks_async
from demandmatrix.config import Config, FilterOptions, cfg
from demandmatrix.matrix import DemandMatrix, FilterSpec
from demandmatrix.monitor import PerformanceMonitor
from demandmatrix.result_types import FilterResult, PerformanceStats
from demandmatrix.stages.base import FilterStage, StageSpec
from demandmatrix.stages.registry import build_stages

logger = logging.getLogger(__name__)

OP_TOTAL = "filtering.total"
OP_CACHE_HIT = "filtering.cache_hit"
OP_NO_OP = "filtering.no_op"
OP_RECALCULATE = "recalculate"


def _elapsed_ms(t0: float) -> float:
    return (time.perf_counter() - t0) * 1000.0


class FilteringEngine:
    """
    Runs a filter specification over a demand matrix.

    Pipeline per call:
      1) early exit when the filters restrict nothing
      2) cache lookup
      3) stages in order (time horizon, skills, clients, preferred staff);
         per-point stages are fed the data points chunk by chunk
      4) recalculation of per-point and matrix-wide aggregates
      5) cache store
    Any error, bookkeeping included, is logged and the unfiltered input is
    returned with `fell_back=True`. The input matrix is never mutated.
    Results are stored only once the whole call has succeeded.
    """

    def __init__(
        self,
        config: Config | None = None,
        cache: FilterCache | None = None,
        monitor: PerformanceMonitor | None = None,
        stages: Sequence[StageSpec | Type[FilterStage]] | None = None,
    ) -> None:
        self.config = config if config is not None else cfg
        # an empty FilterCache is falsy (it defines __len__)
        self.cache = (
            cache
            if cache is not None
            else FilterCache(
                max_size=self.config.CACHE_MAX_SIZE,
                default_ttl_ms=self.config.CACHE_TTL_MS,
            )
        )
        self.monitor = (
            monitor if monitor is not None else PerformanceMonitor.from_config(self.config)
        )
        self.stages = build_stages(stages)
        self._process = psutil.Process()

    # ---------- public API ----------

    def filter(
        self,
        matrix: DemandMatrix,
        filters: FilterSpec,
        options: FilterOptions | None = None,
        on_yield: Optional[Callable[[int], None]] = None,
    ) -> FilterResult:
        t0 = time.perf_counter()
        try:
            opts = (options or FilterOptions()).resolved(self.config)
            early = self._early_exit(matrix, filters, opts, t0)
            if early is not None:
                return early

            rss_before = self._rss()
            key, cached = self._lookup(matrix, filters, opts)
            if cached is not None:
                return self._cache_hit(matrix, cached, t0, rss_before)

            stage_ms: dict[str, float] = {}
            current = matrix
            for stage in self.stages:
                if not stage.is_active(filters):
                    continue
                ts = time.perf_counter()
                if stage.per_point:
                    points = process_in_chunks(
                        current.data_points,
                        opts.chunk_size,
                        lambda chunk, s=stage: s.filter_points(chunk, filters),
                        on_yield=on_yield,
                    )
                    current = current.with_points(points)
                else:
                    current = stage.apply(current, filters)
                stage_ms[stage.name] = _elapsed_ms(ts)

            result = self._recalculate(current, stage_ms)
            done = self._complete(matrix, result, stage_ms, t0, rss_before, opts)
            if key is not None:
                self.cache.set(key, result, ttl_ms=opts.cache_ttl_ms)
            return done
        except Exception as exc:
            return self._fall_back(matrix, exc, t0)

    async def filter_async(
        self,
        matrix: DemandMatrix,
        filters: FilterSpec,
        options: FilterOptions | None = None,
    ) -> FilterResult:
        """Same pipeline as `filter`, yielding to the event loop between chunks."""
        t0 = time.perf_counter()
        try:
            opts = (options or FilterOptions()).resolved(self.config)
            early = self._early_exit(matrix, filters, opts, t0)
            if early is not None:
                return early

            rss_before = self._rss()
            key, cached = self._lookup(matrix, filters, opts)
            if cached is not None:
                return self._cache_hit(matrix, cached, t0, rss_before)

            stage_ms: dict[str, float] = {}
            current = matrix
            for stage in self.stages:
                if not stage.is_active(filters):
                    continue
                ts = time.perf_counter()
                if stage.per_point:
                    points = await process_in_chunks_async(
                        current.data_points,
                        opts.chunk_size,
                        lambda chunk, s=stage: s.filter_points(chunk, filters),
                    )
                    current = current.with_points(points)
                else:
                    current = stage.apply(current, filters)
                stage_ms[stage.name] = _elapsed_ms(ts)

            result = self._recalculate(current, stage_ms)
            done = self._complete(matrix, result, stage_ms, t0, rss_before, opts)
            if key is not None:
                self.cache.set(key, result, ttl_ms=opts.cache_ttl_ms)
            return done
        except Exception as exc:
            return self._fall_back(matrix, exc, t0)

    def clear_cache(self) -> None:
        self.cache.clear()

    # ---------- pipeline steps ----------

    def _early_exit(
        self,
        matrix: DemandMatrix,
        filters: FilterSpec,
        opts: FilterOptions,
        t0: float,
    ) -> FilterResult | None:
        if not (opts.enable_early_exit and filters.is_unrestricted()):
            return None
        total = _elapsed_ms(t0)
        self.monitor.record_performance(OP_NO_OP, total)
        if opts.enable_logging:
            logger.debug("No active filters; returning input matrix unchanged")
        return FilterResult(
            filtered_matrix=matrix,
            performance_stats=PerformanceStats(
                total_ms=total, cache_hit_rate=self.cache.stats.hit_rate
            ),
            early_exit=True,
        )

    def _lookup(
        self, matrix: DemandMatrix, filters: FilterSpec, opts: FilterOptions
    ) -> tuple[str | None, DemandMatrix | None]:
        if not opts.enable_caching:
            return None, None
        key = fingerprint(matrix, filters)
        return key, self.cache.get(key)

    def _recalculate(self, current: DemandMatrix, stage_ms: dict[str, float]) -> DemandMatrix:
        ts = time.perf_counter()
        result = recalculate(current)
        stage_ms[OP_RECALCULATE] = _elapsed_ms(ts)
        return result

    def _cache_hit(
        self,
        matrix: DemandMatrix,
        cached: DemandMatrix,
        t0: float,
        rss_before: int,
    ) -> FilterResult:
        total = _elapsed_ms(t0)
        self.monitor.record_performance(OP_CACHE_HIT, total)
        return FilterResult(
            filtered_matrix=cached,
            performance_stats=self._stats(matrix, cached, total, {}, rss_before),
            cache_hit=True,
        )

    def _complete(
        self,
        matrix: DemandMatrix,
        result: DemandMatrix,
        stage_ms: dict[str, float],
        t0: float,
        rss_before: int,
        opts: FilterOptions,
    ) -> FilterResult:
        total = _elapsed_ms(t0)
        stats = self._stats(matrix, result, total, stage_ms, rss_before)

        self.monitor.record_performance(OP_TOTAL, total)
        for name, ms in stage_ms.items():
            self.monitor.record_performance(f"filtering.{name}", ms)
        self.monitor.record_memory_usage(stats.memory_delta_bytes, operation=OP_TOTAL)

        if opts.enable_logging:
            logger.info(
                "Filtered %d -> %d data points in %.2fms (reduction %.1f%%)",
                len(matrix.data_points),
                len(result.data_points),
                total,
                stats.data_reduction_ratio * 100,
            )
        return FilterResult(filtered_matrix=result, performance_stats=stats)

    def _fall_back(self, matrix: DemandMatrix, exc: Exception, t0: float) -> FilterResult:
        logger.exception("Filtering failed; returning unfiltered matrix")
        total = _elapsed_ms(t0)
        self.monitor.record_performance(OP_TOTAL, total)
        return FilterResult(
            filtered_matrix=matrix,
            performance_stats=PerformanceStats(
                total_ms=total, cache_hit_rate=self.cache.stats.hit_rate
            ),
            fell_back=True,
            error=f"{type(exc).__name__}: {exc}",
        )

    # ---------- helpers ----------

    def _rss(self) -> int:
        try:
            return int(self._process.memory_info().rss)
        except psutil.Error:
            logger.debug("RSS unavailable; memory delta reported as 0", exc_info=True)
            return 0

    def _stats(
        self,
        original: DemandMatrix,
        filtered: DemandMatrix,
        total_ms: float,
        stage_ms: dict[str, float],
        rss_before: int,
    ) -> PerformanceStats:
        n_in = len(original.data_points)
        n_out = len(filtered.data_points)
        efficiency = n_out / n_in if n_in else 1.0
        return PerformanceStats(
            total_ms=total_ms,
            stage_ms=dict(stage_ms),
            data_reduction_ratio=1.0 - efficiency if n_in else 0.0,
            filter_efficiency=efficiency,
            cache_hit_rate=self.cache.stats.hit_rate,
            memory_delta_bytes=self._rss() - rss_before,
        )
