"""
Stress autocorrelation observable.

Drives six independent correlator chains from one stress tensor per step:
the three shear components (xy, yz, xz) and the three normal stress
differences (xx - yy, yy - zz, xx - zz). The combined ACFs give the shear
stress relaxation modulus

    G(t) = V / (5 kT) * sum_shear <s(0) s(t)> + V / (30 kT) * sum_normal <N(0) N(t)>

in simulation units (k = 1).
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional, Tuple, Union

import numpy as np
import pandas as pd

from .chain import CorrelatorChain
from .checkpoint import CheckpointError

SHEAR_QUANTITIES = ("sigma_xy", "sigma_yz", "sigma_xz")
NORMAL_QUANTITIES = ("N_xy", "N_yz", "N_xz")
QUANTITIES = SHEAR_QUANTITIES + NORMAL_QUANTITIES


def as_stress_tensor(stress) -> np.ndarray:
    """Coerce a 3x3 array-like or 9 row-major components (xx, xy, xz, yx, ...) to 3x3."""
    arr = np.asarray(stress, dtype=float)
    if arr.shape == (3, 3):
        return arr
    if arr.shape == (9,):
        return arr.reshape(3, 3)
    raise ValueError(f"Stress sample must be 3x3 or have 9 components, got shape {arr.shape}")


def derived_quantities(stress) -> Dict[str, float]:
    """The six scalars fed to the chains for one stress sample."""
    s = as_stress_tensor(stress)
    return {
        "sigma_xy": float(s[0, 1]),
        "sigma_yz": float(s[1, 2]),
        "sigma_xz": float(s[0, 2]),
        "N_xy": float(s[0, 0] - s[1, 1]),
        "N_yz": float(s[1, 1] - s[2, 2]),
        "N_xz": float(s[0, 0] - s[2, 2]),
    }


class StressAutocorrelation:
    """Six multi-tau chains sharing one per-step update."""

    def __init__(self, m: int = 2, p: int = 16, sampling_interval: float = 1.0):
        self.m = int(m)
        self.p = int(p)
        self.sampling_interval = float(sampling_interval)
        self.chains: Dict[str, CorrelatorChain] = {q: CorrelatorChain(self.m, self.p) for q in QUANTITIES}

    def __repr__(self) -> str:
        return (
            f"StressAutocorrelation(m={self.m}, p={self.p}, dt={self.sampling_interval}, "
            f"n_samples={self.n_samples})"
        )

    @property
    def n_samples(self) -> int:
        return self.chains[QUANTITIES[0]].n_samples

    def update(self, stress) -> None:
        """Push one stress tensor sample into all six chains."""
        for name, value in derived_quantities(stress).items():
            self.chains[name].push(value)

    def update_many(self, stresses) -> None:
        """Push a stack of samples, shape (n, 3, 3) or (n, 9)."""
        for stress in stresses:
            self.update(stress)

    def times(self) -> np.ndarray:
        return self.chains[QUANTITIES[0]].times(self.sampling_interval)

    def report(self) -> Dict[str, Tuple[np.ndarray, np.ndarray]]:
        """Per quantity, lag times and ACF values."""
        return {q: chain.report(self.sampling_interval) for q, chain in self.chains.items()}

    def report_frame(self, populated_only: bool = True) -> pd.DataFrame:
        """
        One row per lag: time plus the ACF of each quantity.

        All six chains receive the same number of samples, so their tiers and
        populated lags coincide.
        """
        frame = pd.DataFrame({"time": self.times()})
        for q, chain in self.chains.items():
            frame[q] = chain.acf()
        if populated_only:
            mask = self.chains[QUANTITIES[0]].populated()
            frame = frame[mask].reset_index(drop=True)
        return frame

    def relaxation_modulus(self, volume: float, temperature: float, populated_only: bool = True) -> pd.DataFrame:
        """Shear stress relaxation modulus G(t) from the six ACFs."""
        acfs = self.report_frame(populated_only=populated_only)
        shear = acfs[list(SHEAR_QUANTITIES)].sum(axis=1)
        normal = acfs[list(NORMAL_QUANTITIES)].sum(axis=1)
        g = volume / (5.0 * temperature) * shear + volume / (30.0 * temperature) * normal
        return pd.DataFrame({"time": acfs["time"], "G": g.to_numpy()})

    @staticmethod
    def checkpoint_paths(directory: Union[str, Path]) -> Dict[str, Path]:
        directory = Path(directory)
        return {q: directory / f"{q}.dat" for q in QUANTITIES}

    def save(self, directory: Union[str, Path]) -> Dict[str, Path]:
        """Write one checkpoint file per quantity."""
        return {q: self.chains[q].save(path) for q, path in self.checkpoint_paths(directory).items()}

    @classmethod
    def load(
        cls,
        directory: Union[str, Path],
        m: Optional[int] = None,
        p: Optional[int] = None,
        sampling_interval: float = 1.0,
    ) -> "StressAutocorrelation":
        """
        Restore all six chains from ``directory``.

        Raises CheckpointError if any file is missing or unreadable, or if the
        stored (m, p) disagree with the requested ones or with each other.
        """
        chains: Dict[str, CorrelatorChain] = {}
        for q, path in cls.checkpoint_paths(directory).items():
            if not path.exists():
                raise CheckpointError(f"Missing checkpoint for {q}: {path}")
            chains[q] = CorrelatorChain.load(path)

        first = chains[QUANTITIES[0]]
        m = first.m if m is None else int(m)
        p = first.p if p is None else int(p)
        for q, chain in chains.items():
            if (chain.m, chain.p) != (m, p):
                raise CheckpointError(
                    f"Checkpoint for {q} has m={chain.m}, p={chain.p}; expected m={m}, p={p}"
                )
        counts = {chain.n_samples for chain in chains.values()}
        if len(counts) != 1:
            raise CheckpointError(f"Checkpointed chains disagree on sample count: {sorted(counts)}")

        obs = cls(m, p, sampling_interval)
        obs.chains = chains
        return obs
