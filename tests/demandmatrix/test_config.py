from __future__ import annotations

import pytest

from demandmatrix.config import Config, FilterOptions


def test_default_config_is_valid():
    Config().validate()


@pytest.mark.parametrize(
    "kwargs",
    [
        {"CHUNK_SIZE": 0},
        {"CACHE_TTL_MS": 0},
        {"CACHE_MAX_SIZE": 0},
        {"SLOW_OPERATION_MS": 0},
        {"MONITOR_WINDOW": 0},
        {"TOTAL_EPSILON": -1},
        {"HIGH_REDUCTION_RATIO": 1.5},
    ],
)
def test_invalid_config_raises(kwargs):
    with pytest.raises(ValueError):
        Config(**kwargs).validate()


def test_filter_options_fall_back_to_config():
    C = Config(CHUNK_SIZE=7, ENABLE_CACHING=False)
    opts = FilterOptions(enable_early_exit=False).resolved(C)
    assert opts.chunk_size == 7
    assert opts.enable_caching is False
    assert opts.enable_early_exit is False
    assert opts.cache_ttl_ms == C.CACHE_TTL_MS


def test_filter_options_reject_bad_chunk_size():
    with pytest.raises(ValueError):
        FilterOptions(chunk_size=0).resolved(Config())
