"""Backend driver abstractions."""
from __future__ import annotations

from typing import Dict, FrozenSet, Mapping, Tuple

import numpy as np

from opsweep.core.errors import UnsupportedConfiguration
from opsweep.core.models import ElementKind, OperatorKind, PrecisionMode
from opsweep.core.tensor import Tensor
from opsweep.graph.ir import (
    BatchMatMulNode,
    ConvolutionNode,
    FullyConnectedNode,
    Function,
    Node,
    PlaceholderBindings,
)
from opsweep.graph.precision import QuantizationParams, requantize

_KIND_MODES = {
    ElementKind.FLOAT: PrecisionMode.REFERENCE,
    ElementKind.FLOAT16: PrecisionMode.REDUCED_FLOAT,
    ElementKind.INT8Q: PrecisionMode.QUANTIZED,
}

ALL_MODES = frozenset(PrecisionMode)


class BackendDriver:
    """Base interface for backend drivers.

    Subclasses provide the three contractions (``conv_core``, ``bmm_core``,
    ``fc_core``) for a given accumulator dtype; the base class handles bias,
    precision dispatch and requantization.
    """

    name: str = ""
    precisions: Mapping[OperatorKind, FrozenSet[PrecisionMode]] = {}
    float_accumulator = np.float32

    def supports(self, operator: OperatorKind, mode: PrecisionMode) -> bool:
        return mode in self.precisions.get(operator, frozenset())

    def execute(self, function: Function, bindings: PlaceholderBindings) -> PlaceholderBindings:
        """Run every node of ``function`` and bind each save's output tensor."""

        results: Dict[Node, Tensor] = {}
        for node in function.nodes:
            mode = _KIND_MODES.get(node.output_kind)
            if mode is None or not self.supports(node.kind, mode):
                raise UnsupportedConfiguration(
                    f"backend '{self.name}' cannot run {node.kind.value} at {node.output_kind.value}"
                )
            operands = {key: function.resolve(value, bindings) for key, value in node.operands.items()}
            results[node] = self._run_node(node, operands)
        for save in function.saves:
            bindings.insert(save.placeholder, results[save.source].freeze())
        return bindings

    def _run_node(self, node: Node, operands: Mapping[str, Tensor]) -> Tensor:
        if node.output_kind is ElementKind.INT8Q:
            return self._run_quantized(node, operands)
        accumulator = self.float_accumulator if node.output_kind is ElementKind.FLOAT else np.float32
        values = {key: tensor.data.astype(accumulator) for key, tensor in operands.items()}
        result = self._contract(node, values, accumulator)
        if "bias" in values:
            result = result + values["bias"]
        return Tensor(node.output_kind, node.output_shape, data=result.astype(node.output_kind.dtype))

    def _run_quantized(self, node: Node, operands: Mapping[str, Tensor]) -> Tensor:
        centered = {
            key: tensor.data.astype(np.int32) - np.int32(tensor.offset)
            for key, tensor in operands.items()
            if key != "bias"
        }
        accumulator = self._contract(node, centered, np.int32)
        input_key, weight_key = node.operand_names[0], node.operand_names[1]
        accumulator_scale = operands[input_key].scale * operands[weight_key].scale
        if "bias" in operands:
            bias = operands["bias"]
            bias_real = bias.dequantize().astype(np.float64)
            accumulator = accumulator + np.round(bias_real / accumulator_scale).astype(np.int32)
        params = QuantizationParams(scale=node.output_scale, offset=node.output_offset)
        data = requantize(accumulator, accumulator_scale, params)
        return Tensor(
            ElementKind.INT8Q, node.output_shape, scale=params.scale, offset=params.offset, data=data
        )

    def _contract(self, node: Node, values: Mapping[str, np.ndarray], dtype) -> np.ndarray:
        if isinstance(node, ConvolutionNode):
            return self.conv_core(values["input"], values["filter"], node, dtype)
        if isinstance(node, BatchMatMulNode):
            return self.bmm_core(values["lhs"], values["rhs"], dtype)
        if isinstance(node, FullyConnectedNode):
            return self.fc_core(values["input"], values["weights"], dtype)
        raise UnsupportedConfiguration(f"backend '{self.name}' has no kernel for {type(node).__name__}")

    def conv_core(self, x: np.ndarray, w: np.ndarray, node: ConvolutionNode, dtype) -> np.ndarray:
        raise NotImplementedError

    def bmm_core(self, lhs: np.ndarray, rhs: np.ndarray, dtype) -> np.ndarray:
        raise NotImplementedError

    def fc_core(self, x: np.ndarray, w: np.ndarray, dtype) -> np.ndarray:
        raise NotImplementedError


def pad_nhwc(x: np.ndarray, pad: int) -> np.ndarray:
    if not pad:
        return x
    return np.pad(x, ((0, 0), (pad, pad), (pad, pad), (0, 0)), mode="constant")


class BackendManager:
    """Registry for backend drivers keyed by identifier."""

    def __init__(self) -> None:
        self._drivers: Dict[str, BackendDriver] = {}

    def register(self, driver: BackendDriver) -> None:
        if driver.name in self._drivers:
            raise ValueError(f"Backend '{driver.name}' already registered")
        self._drivers[driver.name] = driver

    def unregister(self, name: str) -> None:
        self._drivers.pop(name, None)

    def get_driver(self, name: str) -> BackendDriver:
        try:
            return self._drivers[name]
        except KeyError:
            known = ", ".join(sorted(self._drivers)) or "<none>"
            raise KeyError(f"No backend registered as {name!r} (known: {known})") from None

    def names(self) -> Tuple[str, ...]:
        return tuple(self._drivers)

    def __contains__(self, name: object) -> bool:
        return name in self._drivers


backend_manager = BackendManager()
