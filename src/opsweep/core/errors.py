"""Error taxonomy for sweep-and-compare runs."""
from __future__ import annotations

from typing import Optional, Tuple

from .models import TestConfiguration


class OpsweepError(Exception):
    """Base class for all harness errors."""


class ShapeMismatch(OpsweepError):
    """Reference and candidate outputs disagree in shape (builder or harness bug)."""

    def __init__(self, reference_shape: Tuple[int, ...], candidate_shape: Tuple[int, ...]) -> None:
        self.reference_shape = tuple(reference_shape)
        self.candidate_shape = tuple(candidate_shape)
        super().__init__(
            f"shape mismatch: reference {self.reference_shape}, candidate {self.candidate_shape}"
        )


class UnsupportedConfiguration(OpsweepError):
    """The backend cannot realize the requested precision for this operator."""


class ToleranceExceeded(OpsweepError):
    """Max absolute difference is above the allowed error."""

    def __init__(
        self,
        configuration: Optional[TestConfiguration],
        max_abs_error: float,
        tolerance: float,
        index: Optional[Tuple[int, ...]] = None,
    ) -> None:
        self.configuration = configuration
        self.max_abs_error = max_abs_error
        self.tolerance = tolerance
        self.index = index
        where = configuration.label() if configuration else "<unknown>"
        super().__init__(
            f"{where}: max_abs={max_abs_error:.6g} exceeds tolerance {tolerance:.6g}"
            + (f" at {index}" if index is not None else "")
        )


class BackendExecutionError(OpsweepError):
    """Wraps an exception raised while a backend executed a graph."""

    def __init__(self, backend_id: str, message: str) -> None:
        self.backend_id = backend_id
        super().__init__(f"backend '{backend_id}' failed: {message}")
