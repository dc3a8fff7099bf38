"""
One tier of the multi-tau correlator hierarchy.

A tier keeps the ``p`` most recent samples at its time resolution
(``m**level_number`` base intervals), accumulates lagged products of the
newest sample with every retained one, and block-averages ``m`` consecutive
samples into the input of the next, coarser tier. The tier itself does not
hold a reference to the next one: ``add_value`` hands the block average back
to the owning chain, which forwards it down the depth loop.
"""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np


class Level:
    """Ring buffer, lag accumulators and coarse-graining accumulator of one tier."""

    def __init__(self, m: int, p: int, level_number: int = 0):
        if m < 2:
            raise ValueError(f"Coarsening factor m must be >= 2, got {m}")
        if p < 1:
            raise ValueError(f"Lag slots p must be >= 1, got {p}")
        if level_number < 0:
            raise ValueError(f"level_number must be >= 0, got {level_number}")
        self.m = int(m)
        self.p = int(p)
        self.level_number = int(level_number)
        # Lags below p // m are already covered at finer resolution by the parent
        self.start_at = 0 if self.level_number == 0 else self.p // self.m

        self._data = np.zeros(self.p, dtype=float)  # most-recent-first
        self.size = 0
        self.correlation = np.zeros(self.p, dtype=float)
        self.counter = np.zeros(self.p, dtype=np.int64)
        self.coarse_accumulator = 0.0
        self.coarse_count = 0

    def __repr__(self) -> str:
        return (
            f"Level(m={self.m}, p={self.p}, level_number={self.level_number}, "
            f"start_at={self.start_at}, size={self.size})"
        )

    @property
    def buffer(self) -> np.ndarray:
        """Retained samples, most recent first."""
        return self._data[: self.size]

    @property
    def n_lags(self) -> int:
        return self.p - self.start_at

    @property
    def resolution(self) -> int:
        """Number of base sampling intervals per sample at this tier."""
        return self.m ** self.level_number

    def add_value(self, v: float) -> Optional[float]:
        """
        Insert one sample and update the lag accumulators.

        Returns the block average of the last ``m`` samples when the coarse
        accumulator fills (the caller forwards it to the next tier), otherwise
        None.
        """
        v = float(v)
        data = self._data
        data[1:] = data[:-1]
        data[0] = v
        if self.size < self.p:
            self.size += 1

        lo, hi = self.start_at, self.size
        if hi > lo:
            self.correlation[lo:hi] += v * data[lo:hi]
            self.counter[lo:hi] += 1

        self.coarse_accumulator += v
        self.coarse_count += 1
        if self.coarse_count == self.m:
            average = self.coarse_accumulator / self.coarse_count
            self.coarse_accumulator = 0.0
            self.coarse_count = 0
            return average
        return None

    def times(self, dt: float) -> np.ndarray:
        """Physical lag times ``i * m**level_number * dt`` for i in [start_at, p)."""
        lags = np.arange(self.start_at, self.p, dtype=float)
        return lags * float(self.resolution) * dt

    def acf(self) -> np.ndarray:
        """
        ACF estimates ``correlation[i] / counter[i]`` for i in [start_at, p).

        Lags that have not received any term yet come out as NaN; callers are
        expected to track how many samples were pushed (see ``populated``).
        """
        with np.errstate(divide="ignore", invalid="ignore"):
            return self.correlation[self.start_at:] / self.counter[self.start_at:]

    def populated(self) -> np.ndarray:
        """Boolean mask over [start_at, p) of lags with at least one term."""
        return self.counter[self.start_at:] > 0

    @classmethod
    def from_fields(
        cls,
        m: int,
        p: int,
        level_number: int,
        start_at: int,
        buffer: Sequence[float],
        correlation: Sequence[float],
        counter: Sequence[int],
        coarse_accumulator: float,
        coarse_count: int,
    ) -> "Level":
        """Rebuild a tier wholesale from checkpointed fields."""
        level = cls(m, p, level_number)
        buffer = np.asarray(buffer, dtype=float)
        correlation = np.asarray(correlation, dtype=float)
        counter = np.asarray(counter, dtype=np.int64)
        if buffer.size > level.p:
            raise ValueError(f"Buffer holds {buffer.size} samples, capacity is {level.p}")
        if correlation.size != level.p or counter.size != level.p:
            raise ValueError(
                f"Expected {level.p} correlation/counter entries, got "
                f"{correlation.size}/{counter.size}"
            )
        level.start_at = int(start_at)
        level._data[: buffer.size] = buffer
        level.size = int(buffer.size)
        level.correlation[:] = correlation
        level.counter[:] = counter
        level.coarse_accumulator = float(coarse_accumulator)
        level.coarse_count = int(coarse_count)
        return level
