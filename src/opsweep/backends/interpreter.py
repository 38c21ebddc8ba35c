"""Reference executor: direct per-position reductions with wide accumulators."""
from __future__ import annotations

import numpy as np

from opsweep.core.models import OperatorKind
from opsweep.graph.ir import ConvolutionNode

from .base import ALL_MODES, BackendDriver, pad_nhwc

REFERENCE_BACKEND = "Interpreter"


class InterpreterBackendDriver(BackendDriver):
    """Runs every operator at every precision mode; float math in float64."""

    name = REFERENCE_BACKEND
    precisions = {operator: ALL_MODES for operator in OperatorKind}
    float_accumulator = np.float64

    def conv_core(self, x: np.ndarray, w: np.ndarray, node: ConvolutionNode, dtype) -> np.ndarray:
        x = pad_nhwc(x, node.pad)
        batch, out_h, out_w, depth = node.output_shape
        k, s = node.kernel, node.stride
        in_per_group = x.shape[3] // node.group
        out_per_group = depth // node.group
        out = np.zeros((batch, out_h, out_w, depth), dtype=dtype)
        for group in range(node.group):
            x_group = x[..., group * in_per_group : (group + 1) * in_per_group]
            w_group = w[group * out_per_group : (group + 1) * out_per_group]
            for oh in range(out_h):
                for ow in range(out_w):
                    window = x_group[:, oh * s : oh * s + k, ow * s : ow * s + k, :]
                    out[:, oh, ow, group * out_per_group : (group + 1) * out_per_group] = np.tensordot(
                        window, w_group, axes=([1, 2, 3], [1, 2, 3])
                    )
        return out

    def bmm_core(self, lhs: np.ndarray, rhs: np.ndarray, dtype) -> np.ndarray:
        out = np.empty((lhs.shape[0], lhs.shape[1], rhs.shape[2]), dtype=dtype)
        for batch in range(lhs.shape[0]):
            out[batch] = np.dot(lhs[batch], rhs[batch])
        return out

    def fc_core(self, x: np.ndarray, w: np.ndarray, dtype) -> np.ndarray:
        return np.dot(x, w).astype(dtype)
