"""Max-abs comparison of a candidate output against the reference output."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from .errors import ShapeMismatch
from .tensor import Tensor


@dataclass(frozen=True)
class ComparisonOutcome:
    """Metrics for one reference/candidate tensor pair."""

    passed: bool
    max_abs_error: float
    tolerance: float
    mismatched: int
    total: int
    max_error_index: Optional[Tuple[int, ...]] = None
    candidate_value: Optional[float] = None
    reference_value: Optional[float] = None


def compare(reference: Tensor, candidate: Tensor, tolerance: float) -> ComparisonOutcome:
    """Pass iff ``max(|reference - candidate|) <= tolerance``.

    Quantized tensors are dequantized with their own scale/offset first, so
    the bound is always in the operator's output units.
    """

    if reference.shape != candidate.shape:
        raise ShapeMismatch(reference.shape, candidate.shape)
    expected = reference.dequantize().astype(np.float64)
    actual = candidate.dequantize().astype(np.float64)
    diff = np.abs(actual - expected)
    if diff.size == 0:
        return ComparisonOutcome(passed=True, max_abs_error=0.0, tolerance=tolerance, mismatched=0, total=0)
    # NaN anywhere is a failure; argmax on NaN-filled diff picks it up.
    diff = np.where(np.isnan(diff), np.inf, diff)
    flat_index = int(np.argmax(diff))
    max_abs = float(diff.flat[flat_index])
    mismatched = int(np.count_nonzero(diff > tolerance))
    return ComparisonOutcome(
        passed=max_abs <= tolerance,
        max_abs_error=max_abs,
        tolerance=tolerance,
        mismatched=mismatched,
        total=int(diff.size),
        max_error_index=tuple(int(i) for i in np.unravel_index(flat_index, diff.shape)),
        candidate_value=float(actual.flat[flat_index]),
        reference_value=float(expected.flat[flat_index]),
    )
