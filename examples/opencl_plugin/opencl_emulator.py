"""Example plugin registering an ``OpenCL`` backend.

Usage::

    OPSWEEP_PLUGINS=opencl_emulator PYTHONPATH=examples/opencl_plugin opsweep run --sweep fc --backend OpenCL

The driver emulates a device that accumulates in float32 through the CPU
kernels, which is enough to exercise the ``OpenCL`` rows of the gate table.
"""
from opsweep.backends import CpuBackendDriver, backend_manager


class OpenCLEmulatorDriver(CpuBackendDriver):
    name = "OpenCL"


def register() -> None:
    if "OpenCL" not in backend_manager:
        backend_manager.register(OpenCLEmulatorDriver())
