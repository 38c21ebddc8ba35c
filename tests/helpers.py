"""Drivers and executors shared by tests."""
from __future__ import annotations

import numpy as np

from opsweep.backends import BackendManager, CpuBackendDriver, InterpreterBackendDriver
from opsweep.core.executor import DualExecutor
from opsweep.core.gate import DEFAULT_GATE_TABLE, BackendGate
from opsweep.core.models import OperatorKind, PrecisionMode


class ZeroBackend(CpuBackendDriver):
    """Returns all-zero FC products, so only the bias survives."""

    name = "Zero"

    def fc_core(self, x, w, dtype):
        return np.zeros((x.shape[0], w.shape[1]), dtype=dtype)


class BrokenBackend(CpuBackendDriver):
    name = "Broken"

    def fc_core(self, x, w, dtype):
        raise RuntimeError("boom")


def make_executor(*drivers) -> DualExecutor:
    manager = BackendManager()
    manager.register(InterpreterBackendDriver())
    manager.register(CpuBackendDriver())
    gate = BackendGate(DEFAULT_GATE_TABLE)
    for driver in drivers:
        manager.register(driver)
        for mode in (PrecisionMode.REFERENCE, PrecisionMode.QUANTIZED):
            gate.allow(driver.name, OperatorKind.FULLY_CONNECTED, mode)
    return DualExecutor(manager=manager, gate=gate)
