"""Backend interface exports."""
from __future__ import annotations

from .base import BackendDriver, BackendManager, backend_manager
from .cpu import CPU_BACKEND, CpuBackendDriver
from .interpreter import REFERENCE_BACKEND, InterpreterBackendDriver

__all__ = [
    "BackendDriver",
    "BackendManager",
    "backend_manager",
    "CPU_BACKEND",
    "CpuBackendDriver",
    "REFERENCE_BACKEND",
    "InterpreterBackendDriver",
    "register_default_backends",
]


def register_default_backends(manager: BackendManager | None = None) -> None:
    """Register the Interpreter and CPU drivers (idempotent)."""

    manager = manager or backend_manager
    for driver in (InterpreterBackendDriver(), CpuBackendDriver()):
        if driver.name not in manager:
            manager.register(driver)
