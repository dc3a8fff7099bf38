"""
Report generation for the stress autocorrelation observable.
"""

from __future__ import annotations

import datetime as dt
import json
import math
import numbers
from pathlib import Path
from typing import Any, Dict, Optional, Set

import numpy as np
import pandas as pd
from scipy.integrate import trapezoid

from .config import AutocorrConfig
from .ensemble import QUANTITIES, StressAutocorrelation


def assert_finite_metrics(metrics: dict, allow_null_keys: Optional[Set[str]] = None) -> None:
    """
    Raise ValueError if any numeric leaf of ``metrics`` is NaN or infinite.

    Nested dicts are flattened to dotted keys (``zero_lag_acf.sigma_xy``);
    ``allow_null_keys`` lists dotted keys exempt from the check.
    """
    allow_null_keys = allow_null_keys or set()
    flat = pd.json_normalize(metrics, sep=".").iloc[0]
    bad = [
        (key, value) for key, value in flat.items()
        if key not in allow_null_keys
        and isinstance(value, numbers.Real)
        and not isinstance(value, (bool, np.bool_))
        and not math.isfinite(value)
    ]
    if bad:
        msg = "; ".join(f"{k}={v}" for k, v in bad)
        raise ValueError(f"Non-finite metric(s) encountered: {msg}")


def viscosity_estimate(modulus: pd.DataFrame) -> float:
    """
    Zero-shear viscosity as the integral of G(t) over the populated lags.

    The t = 0 point is included; the integral is truncated at the last
    populated lag, so it underestimates eta when G(t) has not decayed there.
    """
    if len(modulus) < 2:
        return 0.0
    return float(trapezoid(modulus["G"].to_numpy(), modulus["time"].to_numpy()))


def write_table(frame: pd.DataFrame, path: Path) -> Path:
    """Space-separated columns with a commented header line."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write("# " + " ".join(frame.columns) + "\n")
        frame.to_csv(f, sep=" ", header=False, index=False, float_format="%.10g")
    return path


def build_summary(obs: StressAutocorrelation, cfg: AutocorrConfig, runtime_seconds: float = 0.0) -> Dict[str, Any]:
    """Key numbers of a run, ready for JSON."""
    acfs = obs.report_frame(populated_only=True)
    modulus = obs.relaxation_modulus(cfg.system.volume, cfg.system.temperature)
    chain = obs.chains[QUANTITIES[0]]

    zero_lag = {}
    if not acfs.empty:
        zero_lag = {q: float(acfs[q].iloc[0]) for q in QUANTITIES}

    return {
        "timestamp": dt.datetime.now().isoformat(),
        "run_label": cfg.run_label,
        "n_samples": obs.n_samples,
        "sampling_interval": obs.sampling_interval,
        "m": obs.m,
        "p": obs.p,
        "depth": chain.depth,
        "n_lags_total": int(len(chain.times(obs.sampling_interval))),
        "n_lags_populated": int(len(acfs)),
        "max_populated_time": float(acfs["time"].iloc[-1]) if not acfs.empty else 0.0,
        "zero_lag_acf": zero_lag,
        "G0": float(modulus["G"].iloc[0]) if not modulus.empty else 0.0,
        "viscosity": viscosity_estimate(modulus),
        "runtime_seconds": runtime_seconds,
    }


def generate_summary_json(output_dir: Path, summary: Dict[str, Any]) -> Path:
    assert_finite_metrics(summary)
    path = output_dir / "summary.json"
    with open(path, "w") as f:
        json.dump(summary, f, indent=2, default=str)
    return path


def generate_report(
    output_dir: Path,
    obs: StressAutocorrelation,
    cfg: AutocorrConfig,
    summary: Dict[str, Any],
    config_path: Optional[Path] = None,
) -> Path:
    """Write ACF and G(t) tables plus a markdown report."""
    output_dir.mkdir(parents=True, exist_ok=True)
    acfs = obs.report_frame(populated_only=True)
    modulus = obs.relaxation_modulus(cfg.system.volume, cfg.system.temperature)
    write_table(acfs, output_dir / "acf.dat")
    write_table(modulus, output_dir / "modulus.dat")

    lines = [
        "# Stress Autocorrelation Report",
        "",
        f"**Generated:** {summary['timestamp']}",
        f"**Run label:** {cfg.run_label}",
    ]
    if config_path is not None:
        lines.append(f"**Config:** `{config_path}`")
    lines += [
        "",
        "## Correlator",
        "",
        f"- Samples: {summary['n_samples']}",
        f"- Sampling interval: {summary['sampling_interval']:g}",
        f"- m = {summary['m']}, p = {summary['p']}, tiers = {summary['depth']}",
        f"- Populated lags: {summary['n_lags_populated']} / {summary['n_lags_total']}"
        f" (up to t = {summary['max_populated_time']:g})",
        "",
        "## Zero-lag ACFs",
        "",
        "| Quantity | <x(0)^2> |",
        "|---|---|",
    ]
    for q, v in summary["zero_lag_acf"].items():
        lines.append(f"| {q} | {v:.6g} |")
    lines += [
        "",
        "## Relaxation modulus",
        "",
        f"- V = {cfg.system.volume:g}, T = {cfg.system.temperature:g}",
        f"- G(0) = {summary['G0']:.6g}",
        f"- Viscosity (integral of G(t) over populated lags) = {summary['viscosity']:.6g}",
        "",
        "Tables: `acf.dat`, `modulus.dat`.",
        "",
    ]

    path = output_dir / cfg.output.report_name
    path.write_text("\n".join(lines), encoding="utf-8")
    return path


def generate_abort_report(output_dir: Path, reason: str, n_samples: int, checkpoint_dir: Optional[str] = None) -> Path:
    """Partial summary for a run that stopped on an error."""
    output_dir.mkdir(parents=True, exist_ok=True)
    data = {
        "status": "ABORTED",
        "reason": reason,
        "n_samples": n_samples,
        "last_checkpoint": checkpoint_dir,
        "timestamp": dt.datetime.now().isoformat(),
    }
    path = output_dir / "summary.json"
    with open(path, "w") as f:
        json.dump(data, f, indent=2)
    return path
