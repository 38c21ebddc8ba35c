"""Optimized CPU backend: im2col lowering onto ``np.matmul``."""
from __future__ import annotations

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from opsweep.core.models import OperatorKind, PrecisionMode
from opsweep.graph.ir import ConvolutionNode

from .base import BackendDriver, pad_nhwc

CPU_BACKEND = "CPU"


class CpuBackendDriver(BackendDriver):
    """Float32 and int8 execution; no float16 support."""

    name = CPU_BACKEND
    precisions = {
        operator: frozenset({PrecisionMode.REFERENCE, PrecisionMode.QUANTIZED}) for operator in OperatorKind
    }

    def conv_core(self, x: np.ndarray, w: np.ndarray, node: ConvolutionNode, dtype) -> np.ndarray:
        x = pad_nhwc(x, node.pad)
        batch, out_h, out_w, depth = node.output_shape
        k, s = node.kernel, node.stride
        # (N, H', W', C, k, k) -> strided -> (N, OH, OW, k, k, C)
        patches = sliding_window_view(x, (k, k), axis=(1, 2))[:, ::s, ::s][:, :out_h, :out_w]
        patches = patches.transpose(0, 1, 2, 4, 5, 3)
        in_per_group = x.shape[3] // node.group
        out_per_group = depth // node.group
        columns = []
        for group in range(node.group):
            cols = patches[..., group * in_per_group : (group + 1) * in_per_group]
            cols = cols.reshape(batch * out_h * out_w, -1)
            filters = w[group * out_per_group : (group + 1) * out_per_group].reshape(out_per_group, -1)
            columns.append(np.matmul(cols, filters.T))
        out = np.concatenate(columns, axis=1) if len(columns) > 1 else columns[0]
        return out.reshape(batch, out_h, out_w, depth).astype(dtype)

    def bmm_core(self, lhs: np.ndarray, rhs: np.ndarray, dtype) -> np.ndarray:
        return np.matmul(lhs, rhs).astype(dtype)

    def fc_core(self, x: np.ndarray, w: np.ndarray, dtype) -> np.ndarray:
        return np.matmul(x, w).astype(dtype)
