import numpy as np
import pytest

from opsweep.core import ElementKind, ShapeMismatch, Tensor, compare
from opsweep.graph.precision import choose_quantization_params, quantize


def test_compare_reports_max_abs_error() -> None:
    reference = Tensor.from_array(np.array([[1.0, 2.0], [3.0, 4.0]], dtype=np.float32))
    candidate = Tensor.from_array(np.array([[1.0, 2.5], [3.0, 3.9]], dtype=np.float32))
    outcome = compare(reference, candidate, 0.1)
    assert not outcome.passed
    assert outcome.max_abs_error == pytest.approx(0.5)
    assert outcome.max_error_index == (0, 1)
    assert outcome.mismatched == 1
    assert outcome.total == 4


def test_compare_boundary_is_inclusive() -> None:
    reference = Tensor.from_array(np.array([0.0, 0.5], dtype=np.float32))
    candidate = Tensor.from_array(np.array([0.0, 1.0], dtype=np.float32))
    assert compare(reference, candidate, 0.5).passed
    assert not compare(reference, candidate, 0.4999).passed


def test_compare_rejects_shape_mismatch() -> None:
    reference = Tensor(ElementKind.FLOAT, (1, 5, 5, 8))
    candidate = Tensor(ElementKind.FLOAT, (1, 5, 5, 4))
    with pytest.raises(ShapeMismatch) as excinfo:
        compare(reference, candidate, 1.0)
    assert excinfo.value.reference_shape == (1, 5, 5, 8)


def test_compare_is_monotone_in_tolerance() -> None:
    rng = np.random.default_rng(3)
    reference = Tensor.from_array(rng.uniform(-1, 1, size=(16,)).astype(np.float32))
    candidate = Tensor.from_array(rng.uniform(-1, 1, size=(16,)).astype(np.float32))
    passing = [compare(reference, candidate, tol).passed for tol in (0.0, 0.5, 1.0, 2.0, 4.0)]
    assert passing == sorted(passing)
    assert passing[-1]


def test_compare_dequantizes_quantized_candidate() -> None:
    values = np.linspace(-0.9, 0.9, 13).astype(np.float32)
    params = choose_quantization_params(-1.0, 1.0)
    outcome = compare(Tensor.from_array(values), quantize(values, params), 0.005)
    assert outcome.passed
    assert outcome.max_abs_error <= params.scale / 2 + 1e-6


def test_compare_nan_always_fails() -> None:
    reference = Tensor.from_array(np.array([1.0, 2.0], dtype=np.float32))
    candidate = Tensor.from_array(np.array([1.0, np.nan], dtype=np.float32))
    outcome = compare(reference, candidate, 1e9)
    assert not outcome.passed
    assert outcome.max_error_index == (1,)


def test_compare_empty_tensors_pass() -> None:
    empty = Tensor(ElementKind.FLOAT, (0, 4))
    assert compare(empty, empty.clone(), 0.0).passed
