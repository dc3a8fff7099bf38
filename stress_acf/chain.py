"""
Multi-tau correlator chain: the ordered tiers of one observable.

Tier 0 sees every sample; tier k sees block averages over ``m**k`` samples.
Tiers are appended lazily the first time the deepest tier's coarse
accumulator fills, so the depth grows as ``log_m`` of the number of samples.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Tuple, Union

import numpy as np
import pandas as pd

from . import checkpoint
from .level import Level


class CorrelatorChain:
    """Growable sequence of tiers indexed by depth."""

    def __init__(self, m: int, p: int):
        self.m = int(m)
        self.p = int(p)
        self.levels: List[Level] = [Level(self.m, self.p, 0)]
        self.n_samples = 0

    def __repr__(self) -> str:
        return f"CorrelatorChain(m={self.m}, p={self.p}, depth={self.depth}, n_samples={self.n_samples})"

    @property
    def depth(self) -> int:
        return len(self.levels)

    def push(self, sample: float) -> None:
        """Feed one sample at the finest resolution."""
        value: Optional[float] = float(sample)
        depth = 0
        while value is not None:
            if depth == len(self.levels):
                self.levels.append(Level(self.m, self.p, depth))
            value = self.levels[depth].add_value(value)
            depth += 1
        self.n_samples += 1

    def extend(self, samples) -> None:
        for sample in samples:
            self.push(sample)

    def times(self, dt: float) -> np.ndarray:
        return np.concatenate([level.times(dt) for level in self.levels])

    def acf(self) -> np.ndarray:
        return np.concatenate([level.acf() for level in self.levels])

    def populated(self) -> np.ndarray:
        return np.concatenate([level.populated() for level in self.levels])

    def report(self, dt: float) -> Tuple[np.ndarray, np.ndarray]:
        """Lag times and ACF values, index for index, finest tier first."""
        return self.times(dt), self.acf()

    def report_frame(self, dt: float, populated_only: bool = False) -> pd.DataFrame:
        """Tabulate the report with the tier and number of terms behind each lag."""
        frame = pd.DataFrame({
            "time": self.times(dt),
            "acf": self.acf(),
            "level": np.concatenate([np.full(lvl.n_lags, lvl.level_number) for lvl in self.levels]),
            "n_terms": np.concatenate([lvl.counter[lvl.start_at:] for lvl in self.levels]),
        })
        if populated_only:
            frame = frame[frame["n_terms"] > 0].reset_index(drop=True)
        return frame

    def save(self, sink: Union[str, Path]) -> Path:
        """Write the chain's checkpoint record."""
        return checkpoint.write(self.levels, sink)

    def dumps(self) -> str:
        return checkpoint.serialize(self.levels)

    @classmethod
    def from_levels(cls, levels: List[Level]) -> "CorrelatorChain":
        root = levels[0]
        chain = cls(root.m, root.p)
        chain.levels = list(levels)
        # Every sample pushed at tier 0 adds a term at lag 0 once the buffer holds it
        chain.n_samples = int(root.counter[0]) if root.start_at == 0 else 0
        return chain

    @classmethod
    def load(cls, source: Union[str, Path]) -> "CorrelatorChain":
        """Restore a chain from a checkpoint file."""
        return cls.from_levels(checkpoint.read(source))

    @classmethod
    def loads(cls, text: str) -> "CorrelatorChain":
        return cls.from_levels(checkpoint.deserialize(text))
