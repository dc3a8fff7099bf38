"""
Configuration handling for the stress autocorrelation observable.

The configuration is expressed as nested dataclasses and persisted as YAML so
that the correlator parameters travel with the results and checkpoints they
produced.
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


@dataclass
class CorrelatorConfig:
    """Multi-tau correlator parameters."""

    dt: float = 0.001  # integration time step
    print_every: int = 1  # steps between samples
    m: int = 2  # coarsening factor
    p: int = 16  # lag slots per tier

    @property
    def sampling_interval(self) -> float:
        return self.dt * self.print_every


@dataclass
class CheckpointConfig:
    """Checkpointing of the six correlator chains."""

    enabled: bool = False
    directory: str = "results/checkpoints"
    every_steps: int = 10000
    resume: bool = False


@dataclass
class SystemConfig:
    """Thermodynamic state needed to turn ACFs into G(t)."""

    volume: float = 1.0
    temperature: float = 1.0


@dataclass
class InputConfig:
    """Stress sample source."""

    path: Optional[str] = None
    chunk_rows: int = 50000
    has_step_column: bool = False
    # Synthetic source, used when path is None
    synthetic_steps: int = 100000
    synthetic_tau: float = 0.05
    synthetic_sigma: float = 1.0
    seed: int = 7


@dataclass
class OutputConfig:
    """Output locations."""

    results_dir: str = "results/stress_acf"
    report_name: str = "REPORT.md"
    make_plots: bool = True


@dataclass
class AutocorrConfig:
    """Top-level configuration container."""

    correlator: CorrelatorConfig = field(default_factory=CorrelatorConfig)
    checkpoint: CheckpointConfig = field(default_factory=CheckpointConfig)
    system: SystemConfig = field(default_factory=SystemConfig)
    input: InputConfig = field(default_factory=InputConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    run_label: str = "default"

    @classmethod
    def from_yaml(cls, path: Path) -> "AutocorrConfig":
        """Load configuration from YAML."""
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AutocorrConfig":
        """Construct config from nested dictionaries."""
        def build(subcls, key):
            if key in data and data[key] is not None:
                return subcls(**data[key])
            return subcls()

        return cls(
            correlator=build(CorrelatorConfig, "correlator"),
            checkpoint=build(CheckpointConfig, "checkpoint"),
            system=build(SystemConfig, "system"),
            input=build(InputConfig, "input"),
            output=build(OutputConfig, "output"),
            run_label=data.get("run_label", "default"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict suitable for YAML."""
        return {
            "correlator": vars(self.correlator).copy(),
            "checkpoint": vars(self.checkpoint).copy(),
            "system": vars(self.system).copy(),
            "input": vars(self.input).copy(),
            "output": vars(self.output).copy(),
            "run_label": self.run_label,
        }

    def save(self, path: Path) -> None:
        """Persist configuration to YAML."""
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(self.to_dict(), f, sort_keys=False)

    def clone(self) -> "AutocorrConfig":
        """Return a deep copy of the configuration."""
        return AutocorrConfig.from_dict(self.to_dict())

    def validate(self) -> "AutocorrConfig":
        """
        Check parameter ranges. Raises ValueError on unusable values and
        warns when tiers would report overlapping lags.
        """
        corr = self.correlator
        if corr.m < 2:
            raise ValueError(f"Coarsening factor m must be >= 2, got {corr.m}")
        if corr.p < 1:
            raise ValueError(f"Lag slots p must be >= 1, got {corr.p}")
        if corr.dt <= 0 or corr.print_every < 1:
            raise ValueError(
                f"Sampling interval must be positive (dt={corr.dt}, print_every={corr.print_every})"
            )
        if corr.p % corr.m != 0:
            warnings.warn(
                f"p={corr.p} is not a multiple of m={corr.m}: adjacent tiers will report overlapping lags",
                UserWarning,
            )
        if self.input.chunk_rows < 1:
            raise ValueError(f"input.chunk_rows must be >= 1, got {self.input.chunk_rows}")
        if self.input.path is None and self.input.synthetic_steps < 1:
            raise ValueError(f"input.synthetic_steps must be >= 1, got {self.input.synthetic_steps}")
        if self.checkpoint.every_steps < 0:
            raise ValueError("checkpoint.every_steps must be >= 0")
        if self.system.volume <= 0 or self.system.temperature <= 0:
            raise ValueError("system.volume and system.temperature must be positive")
        return self


def load_config(path: Optional[str]) -> AutocorrConfig:
    """Load configuration, falling back to defaults when not provided."""
    if path is None:
        return AutocorrConfig()
    return AutocorrConfig.from_yaml(Path(path))
