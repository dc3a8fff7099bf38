"""
Plotting utilities for the stress autocorrelation observable.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import matplotlib
matplotlib.use('Agg')  # Non-interactive backend
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from .ensemble import NORMAL_QUANTITIES, SHEAR_QUANTITIES


def plot_acfs(acfs: pd.DataFrame, output_dir: Path) -> Optional[Path]:
    """Log-log ACFs of the shear components and normal stress differences."""
    acfs = acfs[acfs["time"] > 0]
    if acfs.empty:
        return None
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / "acf.png"

    fig, axes = plt.subplots(1, 2, figsize=(12, 5), sharey=True)
    for ax, group, title in (
        (axes[0], SHEAR_QUANTITIES, "Shear stress ACF"),
        (axes[1], NORMAL_QUANTITIES, "Normal stress difference ACF"),
    ):
        for q in group:
            values = np.abs(acfs[q].to_numpy())
            ax.loglog(acfs["time"], values, 'o-', markersize=3, label=q)
        ax.set_xlabel("t")
        ax.set_title(title)
        ax.legend()
    axes[0].set_ylabel("|<x(0) x(t)>|")

    plt.tight_layout()
    plt.savefig(path, dpi=150)
    plt.close()
    return path


def plot_modulus(modulus: pd.DataFrame, output_dir: Path) -> Optional[Path]:
    """Log-log relaxation modulus."""
    modulus = modulus[modulus["time"] > 0]
    if modulus.empty:
        return None
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / "modulus.png"

    fig, ax = plt.subplots(figsize=(7, 5))
    ax.loglog(modulus["time"], np.abs(modulus["G"]), 'o-', markersize=3, color='black')
    ax.set_xlabel("t")
    ax.set_ylabel("|G(t)|")
    ax.set_title("Shear stress relaxation modulus")
    ax.grid(True, which='both', alpha=0.3)

    plt.tight_layout()
    plt.savefig(path, dpi=150)
    plt.close()
    return path


def generate_all_plots(output_dir: Path, acfs: pd.DataFrame, modulus: pd.DataFrame) -> List[Path]:
    paths = [plot_acfs(acfs, output_dir), plot_modulus(modulus, output_dir)]
    return [p for p in paths if p is not None]
