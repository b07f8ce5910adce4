from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import asdict, dataclass
from typing import Any, Literal, Optional

import numpy as np

logger = logging.getLogger(__name__)

AlertKind = Literal["SLOW_EXECUTION", "HIGH_MEMORY"]
Severity = Literal["MEDIUM", "HIGH"]


@dataclass(frozen=True)
class OperationStats:
    """Rolling-window statistics for one named operation."""

    avg: float
    min: float
    max: float
    sample_count: int
    p95: float


@dataclass(frozen=True)
class PerformanceAlert:
    kind: AlertKind
    operation: str
    message: str
    severity: Severity
    value: float
    threshold: float
    timestamp: float


@dataclass(frozen=True)
class OperationSummary:
    operation: str
    stats: Optional[OperationStats]
    alert_count: int
    grade: Literal["A", "B", "C", "D", "F"]


def _stats(samples: deque[float]) -> OperationStats:
    arr = np.asarray(samples, dtype=float)
    return OperationStats(
        avg=float(arr.mean()),
        min=float(arr.min()),
        max=float(arr.max()),
        sample_count=int(arr.size),
        p95=float(np.percentile(arr, 95)),
    )


class PerformanceMonitor:
    """
    Records per-operation durations and memory deltas over a bounded window.

    Thresholds:
      - slow_threshold_ms: a single duration above this logs a warning
      - memory_threshold_bytes: a single memory delta above this logs a warning
    Exceeding twice the threshold raises the alert severity to HIGH.
    """

    def __init__(
        self,
        window: int = 100,
        slow_threshold_ms: float = 500.0,
        memory_threshold_bytes: int = 10 * 1024 * 1024,
        max_alerts: int = 100,
    ) -> None:
        if window < 1 or max_alerts < 1:
            raise ValueError("window and max_alerts must be >= 1")
        self.window = int(window)
        self.slow_threshold_ms = float(slow_threshold_ms)
        self.memory_threshold_bytes = int(memory_threshold_bytes)
        self._durations: dict[str, deque[float]] = {}
        self._memory: dict[str, deque[float]] = {}
        self._alerts: deque[PerformanceAlert] = deque(maxlen=int(max_alerts))

    @classmethod
    def from_config(cls, C: Any) -> "PerformanceMonitor":
        return cls(
            window=C.MONITOR_WINDOW,
            slow_threshold_ms=C.SLOW_OPERATION_MS,
            memory_threshold_bytes=C.HIGH_MEMORY_BYTES,
            max_alerts=C.MAX_ALERTS,
        )

    # ---------- recording ----------

    def record_performance(self, operation: str, duration_ms: float) -> None:
        duration_ms = float(duration_ms)
        self._durations.setdefault(operation, deque(maxlen=self.window)).append(
            duration_ms
        )
        if duration_ms > self.slow_threshold_ms:
            self._alert(
                "SLOW_EXECUTION",
                operation,
                duration_ms,
                self.slow_threshold_ms,
                f"{operation} took {duration_ms:.2f}ms "
                f"(threshold: {self.slow_threshold_ms:.0f}ms)",
            )

    def record_memory_usage(self, delta_bytes: int, operation: str = "memory") -> None:
        delta = float(delta_bytes)
        self._memory.setdefault(operation, deque(maxlen=self.window)).append(delta)
        if delta > self.memory_threshold_bytes:
            self._alert(
                "HIGH_MEMORY",
                operation,
                delta,
                float(self.memory_threshold_bytes),
                f"{operation} grew memory by {delta / 1024 / 1024:.2f}MB "
                f"(threshold: {self.memory_threshold_bytes / 1024 / 1024:.0f}MB)",
            )

    def _alert(
        self,
        kind: AlertKind,
        operation: str,
        value: float,
        threshold: float,
        message: str,
    ) -> None:
        severity: Severity = "HIGH" if value > 2 * threshold else "MEDIUM"
        self._alerts.append(
            PerformanceAlert(
                kind=kind,
                operation=operation,
                message=message,
                severity=severity,
                value=value,
                threshold=threshold,
                timestamp=time.time(),
            )
        )
        logger.warning("[%s] %s", severity, message)

    # ---------- read-only snapshots ----------

    def get_stats(self) -> dict[str, OperationStats]:
        return {op: _stats(s) for op, s in self._durations.items() if s}

    def get_memory_stats(self) -> dict[str, OperationStats]:
        return {op: _stats(s) for op, s in self._memory.items() if s}

    def alerts(self, operation: Optional[str] = None) -> list[PerformanceAlert]:
        return [a for a in self._alerts if operation is None or a.operation == operation]

    def summary(self, operation: str) -> OperationSummary:
        samples = self._durations.get(operation)
        stats = _stats(samples) if samples else None
        return OperationSummary(
            operation=operation,
            stats=stats,
            alert_count=len(self.alerts(operation)),
            grade=self._grade(stats.avg) if stats is not None else "F",
        )

    def _grade(self, avg_ms: float) -> Literal["A", "B", "C", "D", "F"]:
        t = self.slow_threshold_ms
        if avg_ms > 2 * t:
            return "F"
        if avg_ms > t:
            return "D"
        if avg_ms > 0.5 * t:
            return "C"
        if avg_ms > 0.25 * t:
            return "B"
        return "A"

    def export(self) -> dict[str, Any]:
        return {
            "durations": {op: asdict(s) for op, s in self.get_stats().items()},
            "memory": {op: asdict(s) for op, s in self.get_memory_stats().items()},
            "alerts": [asdict(a) for a in self._alerts],
            "exported_at": time.time(),
        }

    def clear(self) -> None:
        self._durations.clear()
        self._memory.clear()
        self._alerts.clear()
