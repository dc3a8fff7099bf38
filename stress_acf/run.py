"""
CLI entrypoint for the stress autocorrelation observable.

Streams stress tensor samples (from a file, or a synthetic Ornstein-Uhlenbeck
source when no file is given) through the six multi-tau correlators, writes
periodic checkpoints, and produces ACF / G(t) tables, plots and a report.
"""

from __future__ import annotations

import argparse
import datetime as dt
import re
import shutil
import sys
import time
import warnings
from pathlib import Path
from typing import Generator, Optional

import numpy as np
from tqdm import tqdm

from .checkpoint import CheckpointError
from .config import AutocorrConfig, load_config
from .ensemble import StressAutocorrelation
from .io import count_samples, iter_stress_samples
from .plots import generate_all_plots
from .report import build_summary, generate_abort_report, generate_report, generate_summary_json
from .synthetic import synthetic_stress


def build_observable(cfg: AutocorrConfig, verbose: bool = True) -> StressAutocorrelation:
    """Fresh observable, or one restored from checkpoints when resuming."""
    corr = cfg.correlator
    if cfg.checkpoint.resume:
        directory = Path(cfg.checkpoint.directory)
        if verbose:
            print(f"Restoring correlators from {directory}")
        obs = StressAutocorrelation.load(directory, corr.m, corr.p, corr.sampling_interval)
        if verbose:
            print(f"  Resumed after {obs.n_samples} samples, {obs.chains['sigma_xy'].depth} tiers")
        return obs
    return StressAutocorrelation(corr.m, corr.p, corr.sampling_interval)


def iter_sample_chunks(cfg: AutocorrConfig, skip: int = 0) -> Generator[np.ndarray, None, None]:
    """
    Chunks of stress samples from the configured source.

    The first ``skip`` samples are dropped, so a resumed run continues the
    same input where its checkpoint stopped. The synthetic source is seeded,
    so it replays the same signal and is skipped the same way.
    """
    inp = cfg.input
    if inp.path is not None:
        chunks = iter_stress_samples(inp.path, inp.chunk_rows, inp.has_step_column)
    else:
        stresses = synthetic_stress(
            inp.synthetic_steps,
            cfg.correlator.sampling_interval,
            tau=inp.synthetic_tau,
            sigma=inp.synthetic_sigma,
            seed=inp.seed,
        )
        chunks = (stresses[start:start + inp.chunk_rows] for start in range(0, len(stresses), inp.chunk_rows))
    for chunk in chunks:
        if skip >= len(chunk):
            skip -= len(chunk)
            continue
        yield chunk[skip:]
        skip = 0


def expected_sample_count(cfg: AutocorrConfig, skip: int = 0) -> Optional[int]:
    if cfg.input.path is not None:
        path = Path(cfg.input.path)
        total = count_samples(path) if path.exists() else None
    else:
        total = cfg.input.synthetic_steps
    return None if total is None else max(total - skip, 0)


def run_observable(
    obs: StressAutocorrelation,
    cfg: AutocorrConfig,
    show_progress: bool = True,
) -> StressAutocorrelation:
    """
    Feed the input to ``obs``, checkpointing every ``every_steps`` samples.

    When resuming, the samples already held by ``obs`` are skipped.
    """
    ckpt = cfg.checkpoint
    every = ckpt.every_steps if ckpt.enabled else 0
    skip = obs.n_samples if ckpt.resume else 0
    pbar = tqdm(total=expected_sample_count(cfg, skip), desc="Correlating", disable=not show_progress)
    fed = 0
    for chunk in iter_sample_chunks(cfg, skip):
        for stress in chunk:
            obs.update(stress)
            if every and obs.n_samples % every == 0:
                obs.save(ckpt.directory)
        fed += len(chunk)
        pbar.update(len(chunk))
    pbar.close()
    if skip and not fed:
        warnings.warn(
            f"Checkpoint already holds {skip} samples; the input has no samples beyond them",
            UserWarning,
        )
    if ckpt.enabled:
        obs.save(ckpt.directory)
    return obs


def create_output_dir(base_dir: str, run_label: str = "") -> Path:
    """
    New run directory ``<base_dir>/<label>_<timestamp>``; ``<base_dir>/latest``
    is repointed at it. Runs started within the same second get a numeric suffix.
    """
    base = Path(base_dir)
    stamp = dt.datetime.now().strftime("%Y%m%d_%H%M%S")
    label = re.sub(r"[^\w.-]+", "_", run_label).strip("_")
    name = f"{label}_{stamp}" if label else stamp

    run_dir = base / name
    n = 1
    while run_dir.exists():
        run_dir = base / f"{name}_{n}"
        n += 1
    run_dir.mkdir(parents=True)

    latest = base / "latest"
    if latest.is_dir() and not latest.is_symlink():
        shutil.rmtree(latest)
    elif latest.is_symlink() or latest.exists():
        latest.unlink()
    latest.symlink_to(run_dir.name, target_is_directory=True)
    return run_dir


def apply_overrides(cfg: AutocorrConfig, args: argparse.Namespace) -> AutocorrConfig:
    """Command-line values take precedence over the YAML file."""
    if args.input is not None:
        cfg.input.path = args.input
    if args.has_step_column:
        cfg.input.has_step_column = True
    if args.synthetic_steps is not None:
        cfg.input.synthetic_steps = args.synthetic_steps
    if args.m is not None:
        cfg.correlator.m = args.m
    if args.p is not None:
        cfg.correlator.p = args.p
    if args.dt is not None:
        cfg.correlator.dt = args.dt
    if args.print_every is not None:
        cfg.correlator.print_every = args.print_every
    if args.volume is not None:
        cfg.system.volume = args.volume
    if args.temperature is not None:
        cfg.system.temperature = args.temperature
    if args.checkpoint_dir is not None:
        cfg.checkpoint.enabled = True
        cfg.checkpoint.directory = args.checkpoint_dir
    if args.every_steps is not None:
        cfg.checkpoint.every_steps = args.every_steps
    if args.resume:
        cfg.checkpoint.enabled = True
        cfg.checkpoint.resume = True
    if args.no_plots:
        cfg.output.make_plots = False
    if args.outdir is not None:
        cfg.output.results_dir = args.outdir
    return cfg


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(
        description="Multi-tau stress autocorrelation and relaxation modulus G(t)."
    )
    parser.add_argument("--config", type=str, default=None, help="Path to YAML config.")
    parser.add_argument("--input", type=str, default=None,
                        help="Stress sample table (9 columns xx..zz). Synthetic OU signal if omitted.")
    parser.add_argument("--has-step-column", action="store_true", help="Input has a leading step column")
    parser.add_argument("--synthetic-steps", type=int, default=None, help="Length of the synthetic signal")
    parser.add_argument("--m", type=int, default=None, help="Coarsening factor")
    parser.add_argument("--p", type=int, default=None, help="Lag slots per tier")
    parser.add_argument("--dt", type=float, default=None, help="Integration time step")
    parser.add_argument("--print-every", type=int, default=None, help="Steps between samples")
    parser.add_argument("--volume", type=float, default=None, help="Box volume")
    parser.add_argument("--temperature", type=float, default=None, help="Temperature (k_B = 1)")
    parser.add_argument("--checkpoint-dir", type=str, default=None, help="Enable checkpoints in this directory")
    parser.add_argument("--every-steps", type=int, default=None, help="Samples between periodic checkpoints (0: only at the end)")
    parser.add_argument("--resume", action="store_true", help="Restore correlators from the checkpoint directory")
    parser.add_argument("--outdir", type=str, default=None, help="Results base directory")
    parser.add_argument("--no-plots", action="store_true", help="Skip PNG plots")
    parser.add_argument("--quiet", action="store_true", help="Suppress progress output")
    args = parser.parse_args(argv)

    cfg = apply_overrides(load_config(args.config), args).validate()
    verbose = not args.quiet

    output_dir = create_output_dir(cfg.output.results_dir, cfg.run_label)
    cfg.save(output_dir / "config.yaml")
    if verbose:
        print(f"Output directory: {output_dir}")

    start_time = time.time()
    obs = None
    try:
        obs = build_observable(cfg, verbose=verbose)
        source = cfg.input.path or f"synthetic OU ({cfg.input.synthetic_steps} steps)"
        if verbose:
            print(f"\n=== Correlating {source} ===")
        run_observable(obs, cfg, show_progress=verbose)

        summary = build_summary(obs, cfg, runtime_seconds=time.time() - start_time)

        if cfg.output.make_plots:
            if verbose:
                print("\n=== Generating plots ===")
            generate_all_plots(
                output_dir,
                obs.report_frame(populated_only=True),
                obs.relaxation_modulus(cfg.system.volume, cfg.system.temperature),
            )

        report_path = generate_report(
            output_dir, obs, cfg, summary,
            config_path=Path(args.config) if args.config else None,
        )
        summary_path = generate_summary_json(output_dir, summary)

        if verbose:
            print(f"\n=== Results ===")
            print(f"Samples: {summary['n_samples']}, tiers: {summary['depth']}, "
                  f"populated lags: {summary['n_lags_populated']}/{summary['n_lags_total']}")
            print(f"G(0) = {summary['G0']:.6g}, viscosity = {summary['viscosity']:.6g}")
            print(f"Report: {report_path}")
            print(f"Summary: {summary_path}")
            if cfg.checkpoint.enabled:
                print(f"Checkpoints: {cfg.checkpoint.directory}")

    except CheckpointError as e:
        print(f"\n=== ABORTED: CHECKPOINT RESTORE FAILED ===")
        print(str(e))
        n_done = obs.n_samples if obs is not None else 0
        path = generate_abort_report(output_dir, str(e), n_done, cfg.checkpoint.directory)
        print(f"Partial summary: {path}")
        sys.exit(1)

    except Exception as e:
        print(f"\n=== ERROR ===")
        print(f"Unexpected error: {e}")
        n_done = obs.n_samples if obs is not None else 0
        last_ckpt = cfg.checkpoint.directory if cfg.checkpoint.enabled else None
        path = generate_abort_report(output_dir, str(e), n_done, last_ckpt)
        print(f"\nPartial summary: {path}")
        raise


if __name__ == "__main__":
    main()
