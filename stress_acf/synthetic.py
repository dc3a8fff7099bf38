"""
Synthetic stress signals with a known autocorrelation.

Each independent stress component follows an Ornstein-Uhlenbeck process, whose
stationary ACF is sigma**2 * exp(-t / tau). Used for validation runs and
tests in place of a real simulation.
"""

from __future__ import annotations

from typing import Optional

import numpy as np


def ornstein_uhlenbeck(
    n_steps: int,
    dt: float,
    tau: float,
    sigma: float,
    rng: np.random.Generator,
    size: int = 1,
) -> np.ndarray:
    """
    Exact discretisation of ``size`` independent OU processes.

    Returns an array of shape (n_steps, size) started from the stationary
    distribution.
    """
    decay = np.exp(-dt / tau)
    kick = sigma * np.sqrt(1.0 - decay ** 2)
    noise = rng.standard_normal((n_steps, size))
    x = np.empty((n_steps, size))
    if n_steps == 0:
        return x
    x[0] = sigma * noise[0]
    for i in range(1, n_steps):
        x[i] = decay * x[i - 1] + kick * noise[i]
    return x


def synthetic_stress(
    n_steps: int,
    dt: float,
    tau: float = 0.05,
    sigma: float = 1.0,
    seed: int = 7,
    rng: Optional[np.random.Generator] = None,
) -> np.ndarray:
    """
    Symmetric stress tensors of shape (n_steps, 3, 3).

    Off-diagonal components are independent OU processes with ACF
    ``sigma**2 * exp(-t / tau)``; diagonal components are independent OU
    processes of the same kind, so each normal stress difference has ACF
    ``2 * sigma**2 * exp(-t / tau)``.
    """
    if rng is None:
        rng = np.random.default_rng(seed)
    comps = ornstein_uhlenbeck(n_steps, dt, tau, sigma, rng, size=6)
    stress = np.empty((n_steps, 3, 3))
    stress[:, 0, 0] = comps[:, 0]
    stress[:, 1, 1] = comps[:, 1]
    stress[:, 2, 2] = comps[:, 2]
    stress[:, 0, 1] = stress[:, 1, 0] = comps[:, 3]
    stress[:, 1, 2] = stress[:, 2, 1] = comps[:, 4]
    stress[:, 0, 2] = stress[:, 2, 0] = comps[:, 5]
    return stress


def expected_modulus(times: np.ndarray, tau: float, sigma: float, volume: float, temperature: float) -> np.ndarray:
    """G(t) implied by ``synthetic_stress`` parameters."""
    acf = sigma ** 2 * np.exp(-np.asarray(times) / tau)
    return volume / temperature * (3.0 / 5.0 + 6.0 / 30.0) * acf
