"""
Tests for the multi-tau tiers and the correlator chain.

These tests verify:
1. The m=2, p=4 worked example (buffers, coarse values, accumulators)
2. Logarithmic depth growth and the start_at rule
3. Tier ACFs match brute-force lagged averages
4. Report size and uniqueness of lag times
"""

import numpy as np
import pytest

from stress_acf.chain import CorrelatorChain
from stress_acf.level import Level


def _expected_depth(m: int, T: int) -> int:
    """Tiers present after T pushes: tier k exists once m**k samples arrived."""
    depth = 1
    while m ** depth <= T:
        depth += 1
    return depth


def _lagged_mean(x: np.ndarray, lag: int) -> float:
    if lag == 0:
        return float(np.mean(x * x))
    return float(np.mean(x[lag:] * x[:-lag]))


# ==== Test 1: worked example ====

def test_worked_example_buffers_and_coarse_values():
    chain = CorrelatorChain(m=2, p=4)
    chain.extend([1, 2, 3, 4, 5, 6, 7, 8])

    top = chain.levels[0]
    np.testing.assert_array_equal(top.buffer, [8, 7, 6, 5])
    np.testing.assert_array_equal(top.counter, [8, 7, 6, 5])
    assert top.correlation[0] == 204.0
    assert top.correlation[1] == 168.0

    second = chain.levels[1]
    np.testing.assert_array_equal(second.buffer, [7.5, 5.5, 3.5, 1.5])
    assert second.start_at == 2
    np.testing.assert_array_equal(second.counter, [0, 0, 2, 1])
    assert second.correlation[2] == pytest.approx(5.5 * 1.5 + 7.5 * 3.5)
    assert second.correlation[3] == pytest.approx(7.5 * 1.5)

    np.testing.assert_array_equal(chain.levels[2].buffer, [6.5, 2.5])
    np.testing.assert_array_equal(chain.levels[3].buffer, [4.5])
    assert chain.levels[3].coarse_count == 1
    assert chain.levels[3].coarse_accumulator == 4.5
    assert all(lvl.coarse_count == 0 for lvl in chain.levels[:3])
    assert chain.depth == 4
    assert chain.n_samples == 8


def test_add_value_returns_block_average_every_m_samples():
    level = Level(3, 6)
    assert level.add_value(1.0) is None
    assert level.add_value(2.0) is None
    assert level.add_value(6.0) == pytest.approx(3.0)
    assert level.coarse_count == 0
    assert level.coarse_accumulator == 0.0


def test_invalid_parameters_raise():
    with pytest.raises(ValueError):
        Level(1, 4)
    with pytest.raises(ValueError):
        Level(2, 0)
    with pytest.raises(ValueError):
        Level(2, 4, -1)


def test_unpopulated_lags_are_nan():
    level = Level(2, 4)
    level.add_value(3.0)
    acf = level.acf()
    assert acf[0] == 9.0
    assert np.isnan(acf[1:]).all()
    np.testing.assert_array_equal(level.populated(), [True, False, False, False])


# ==== Test 2: depth growth and start_at ====

@pytest.mark.parametrize("m,p", [(2, 4), (2, 16), (3, 9), (4, 8)])
@pytest.mark.parametrize("T", [1, 2, 5, 64, 1000])
def test_depth_grows_logarithmically(m, p, T):
    chain = CorrelatorChain(m, p)
    chain.extend(np.ones(T))
    assert chain.depth == _expected_depth(m, T)


def test_start_at_excludes_parent_lags():
    chain = CorrelatorChain(m=4, p=16)
    chain.extend(np.arange(100.0))
    assert chain.levels[0].start_at == 0
    for level in chain.levels[1:]:
        assert level.start_at == 16 // 4
        assert level.level_number > 0


# ==== Test 3: estimates ====

def test_constant_signal_converges_to_square():
    v = 1.7
    chain = CorrelatorChain(m=2, p=8)
    chain.extend(np.full(5000, v))
    acf = chain.acf()[chain.populated()]
    assert acf.size > 0
    np.testing.assert_allclose(acf, v * v, rtol=1e-12)


def test_top_level_matches_bruteforce():
    rng = np.random.default_rng(11)
    x = rng.normal(size=500)
    chain = CorrelatorChain(m=2, p=8)
    chain.extend(x)
    top = chain.levels[0]
    for lag in range(8):
        assert top.acf()[lag] == pytest.approx(_lagged_mean(x, lag), rel=1e-10)
        assert top.counter[lag] == len(x) - lag


def test_second_level_matches_block_averaged_bruteforce():
    rng = np.random.default_rng(12)
    x = rng.normal(size=400)
    chain = CorrelatorChain(m=2, p=8)
    chain.extend(x)
    y = x.reshape(-1, 2).mean(axis=1)
    second = chain.levels[1]
    for offset, lag in enumerate(range(second.start_at, second.p)):
        assert second.acf()[offset] == pytest.approx(_lagged_mean(y, lag), rel=1e-9)


# ==== Test 4: report shape ====

def test_report_size_matches_tiers():
    chain = CorrelatorChain(m=2, p=8)
    chain.extend(np.arange(300.0))
    times, acf = chain.report(dt=0.1)
    expected = sum(lvl.p - lvl.start_at for lvl in chain.levels)
    assert len(times) == len(acf) == expected


def test_lag_times_have_no_duplicates():
    chain = CorrelatorChain(m=2, p=16)
    chain.extend(np.ones(10000))
    times = chain.times(dt=0.5)
    assert len(np.unique(times)) == len(times)
    assert np.all(np.diff(times) > 0)


def test_times_follow_tier_resolution():
    chain = CorrelatorChain(m=2, p=4)
    chain.extend(np.ones(8))
    np.testing.assert_allclose(
        chain.times(dt=1.0),
        [0, 1, 2, 3, 4, 6, 8, 12, 16, 24],
    )


def test_report_frame_populated_only():
    chain = CorrelatorChain(m=2, p=4)
    chain.extend([1, 2, 3])
    frame = chain.report_frame(dt=1.0, populated_only=True)
    assert list(frame.columns) == ["time", "acf", "level", "n_terms"]
    assert (frame["n_terms"] > 0).all()
    assert frame["acf"].notna().all()
    full = chain.report_frame(dt=1.0)
    assert len(full) == sum(lvl.n_lags for lvl in chain.levels)
