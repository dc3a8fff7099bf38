"""
Multi-tau stress autocorrelation package.

Computes autocorrelation functions of the shear stresses and normal stress
differences of a particle simulation at exponentially spaced lags with
logarithmic memory, and the shear relaxation modulus G(t) built from them.
Correlator state can be checkpointed to plain-text records and resumed.
"""

from .chain import CorrelatorChain
from .checkpoint import CheckpointError, CheckpointFormatError
from .ensemble import QUANTITIES, StressAutocorrelation
from .level import Level

__all__ = [
    "config",
    "level",
    "chain",
    "checkpoint",
    "ensemble",
    "io",
    "synthetic",
    "report",
    "plots",
    "run",
    "Level",
    "CorrelatorChain",
    "StressAutocorrelation",
    "QUANTITIES",
    "CheckpointError",
    "CheckpointFormatError",
]

__version__ = "0.1.0"
