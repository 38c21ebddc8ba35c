"""Built-in parameter sweeps."""
from .catalog import (
    BATCH_MATMUL_SWEEP,
    CONV_SWEEP,
    FC_SWEEP,
    SWEEPS,
    Sweep,
    SweepTest,
    get_sweep,
)

__all__ = [
    "BATCH_MATMUL_SWEEP",
    "CONV_SWEEP",
    "FC_SWEEP",
    "SWEEPS",
    "Sweep",
    "SweepTest",
    "get_sweep",
]
