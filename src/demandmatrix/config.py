from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass
class Config:

    ### ENGINE DEFAULTS (overridable per call via FilterOptions) ###

    ENABLE_CACHING: bool = True
    ENABLE_EARLY_EXIT: bool = True
    ENABLE_LOGGING: bool = True

    # Data points handed to the stages per chunk
    CHUNK_SIZE: int = 100

    ### CACHE ###

    CACHE_TTL_MS: int = 5 * 60 * 1000  # 5 minutes
    CACHE_MAX_SIZE: int = 50

    ### PERFORMANCE MONITOR ###

    SLOW_OPERATION_MS: float = 500.0
    HIGH_MEMORY_BYTES: int = 10 * 1024 * 1024  # 10 MiB
    MONITOR_WINDOW: int = 100  # samples kept per operation
    MAX_ALERTS: int = 100

    ### VALIDATION ###

    TOTAL_EPSILON: float = 0.01
    HIGH_REDUCTION_RATIO: float = 0.9
    SLOW_FILTERING_MS: float = 1000.0

    def validate(self) -> None:
        """
        Validate the Config object has sensible values before filtering.
        """
        if self.CHUNK_SIZE < 1:
            raise ValueError("CHUNK_SIZE must be >= 1.")
        if self.CACHE_TTL_MS <= 0:
            raise ValueError("CACHE_TTL_MS must be > 0.")
        if self.CACHE_MAX_SIZE < 1:
            raise ValueError("CACHE_MAX_SIZE must be >= 1.")
        if self.SLOW_OPERATION_MS <= 0 or self.SLOW_FILTERING_MS <= 0:
            raise ValueError("Slow-operation thresholds must be > 0.")
        if self.HIGH_MEMORY_BYTES <= 0:
            raise ValueError("HIGH_MEMORY_BYTES must be > 0.")
        for attr in ("MONITOR_WINDOW", "MAX_ALERTS"):
            if getattr(self, attr) < 1:
                raise ValueError(f"{attr} must be >= 1.")
        if self.TOTAL_EPSILON < 0:
            raise ValueError("TOTAL_EPSILON must be non-negative.")
        if not (0.0 < self.HIGH_REDUCTION_RATIO <= 1.0):
            raise ValueError("HIGH_REDUCTION_RATIO must be within (0, 1].")


@dataclass
class FilterOptions:
    """Per-call overrides for a single `FilteringEngine.filter` call.

    Fields left as None fall back to the engine's Config.
    """

    enable_caching: Optional[bool] = None
    enable_early_exit: Optional[bool] = None
    enable_logging: Optional[bool] = None
    chunk_size: Optional[int] = None
    cache_ttl_ms: Optional[int] = None

    def resolved(self, C: Config) -> "FilterOptions":
        """Return a copy with every unset field filled from `C`."""
        chunk_size = self.chunk_size if self.chunk_size is not None else C.CHUNK_SIZE
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        return FilterOptions(
            enable_caching=_pick(self.enable_caching, C.ENABLE_CACHING),
            enable_early_exit=_pick(self.enable_early_exit, C.ENABLE_EARLY_EXIT),
            enable_logging=_pick(self.enable_logging, C.ENABLE_LOGGING),
            chunk_size=int(chunk_size),
            cache_ttl_ms=_pick(self.cache_ttl_ms, C.CACHE_TTL_MS),
        )


def _pick(value, default):
    return default if value is None else value


cfg = Config()
