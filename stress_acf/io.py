"""
Stress sample ingestion.

The observable expects one stress tensor per sampling interval as a text table
with nine columns in row-major order (xx, xy, xz, yx, yy, yz, zx, zy, zz),
optionally preceded by a step column. Files may be comma or whitespace
separated; lines starting with '#' are ignored. Samples are streamed in
chunks so arbitrarily long trajectories never sit in memory at once.
"""

from __future__ import annotations

from pathlib import Path
from typing import Generator, Union

import numpy as np
import pandas as pd

STRESS_COLUMNS = ["xx", "xy", "xz", "yx", "yy", "yz", "zx", "zy", "zz"]


def _detect_separator(path: Path) -> str:
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            stripped = line.strip()
            if stripped and not stripped.startswith("#"):
                return "," if "," in stripped else r"\s+"
    return r"\s+"


def iter_stress_samples(
    path: Union[str, Path],
    chunk_rows: int = 50000,
    has_step_column: bool = False,
) -> Generator[np.ndarray, None, None]:
    """Yield arrays of shape (n, 9) in file order."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Stress sample file not found: {path}")
    names = (["step"] if has_step_column else []) + STRESS_COLUMNS
    reader = pd.read_csv(
        path,
        sep=_detect_separator(path),
        comment="#",
        header=None,
        names=names,
        chunksize=chunk_rows,
        engine="python",
    )
    for chunk in reader:
        values = chunk[STRESS_COLUMNS].to_numpy(dtype=float)
        if values.size:
            yield values


def count_samples(path: Union[str, Path]) -> int:
    """Count data rows without parsing them."""
    n = 0
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            stripped = line.strip()
            if stripped and not stripped.startswith("#"):
                n += 1
    return n


def write_stress_samples(path: Union[str, Path], stresses: np.ndarray, with_steps: bool = False) -> Path:
    """Write samples of shape (n, 3, 3) or (n, 9) as a whitespace table."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    flat = np.asarray(stresses, dtype=float).reshape(len(stresses), 9)
    frame = pd.DataFrame(flat, columns=STRESS_COLUMNS)
    if with_steps:
        frame.insert(0, "step", np.arange(len(frame)))
    frame.to_csv(path, sep=" ", header=False, index=False, float_format="%.10g")
    return path
