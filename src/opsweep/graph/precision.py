"""Precision conversion: float16 casting and asymmetric int8 quantization."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Tuple

import numpy as np

from opsweep.core.errors import UnsupportedConfiguration
from opsweep.core.models import ElementKind, PrecisionMode
from opsweep.core.tensor import Tensor

from .builders import GraphSpec
from .ir import Constant, Node, Placeholder

INT8_MIN = -128
INT8_MAX = 127
INT32_MIN = np.iinfo(np.int32).min
INT32_MAX = np.iinfo(np.int32).max

# Operands quantized to int32 with the accumulator's scale instead of int8.
_BIAS_OPERAND = "bias"


@dataclass(frozen=True)
class QuantizationParams:
    scale: float
    offset: int


def choose_quantization_params(min_value: float, max_value: float) -> QuantizationParams:
    """Asymmetric int8 parameters covering ``[min, max]`` widened to include 0."""

    min_value = min(float(min_value), 0.0)
    max_value = max(float(max_value), 0.0)
    if max_value == min_value:
        return QuantizationParams(scale=1.0, offset=0)
    scale = (max_value - min_value) / float(INT8_MAX - INT8_MIN)
    offset = int(round(INT8_MIN - min_value / scale))
    offset = max(INT8_MIN, min(INT8_MAX, offset))
    return QuantizationParams(scale=scale, offset=offset)


def quantize(values: np.ndarray, params: QuantizationParams, kind: ElementKind = ElementKind.INT8Q) -> Tensor:
    low, high = (INT8_MIN, INT8_MAX) if kind is ElementKind.INT8Q else (INT32_MIN, INT32_MAX)
    scaled = np.round(np.asarray(values, dtype=np.float64) / params.scale) + params.offset
    data = np.clip(scaled, low, high).astype(kind.dtype)
    return Tensor(kind, data.shape, scale=params.scale, offset=params.offset, data=data)


def requantize(accumulator: np.ndarray, accumulator_scale: float, params: QuantizationParams) -> np.ndarray:
    """Map integer accumulators with ``accumulator_scale`` to saturated int8 values."""

    real = accumulator.astype(np.float64) * accumulator_scale
    scaled = np.round(real / params.scale) + params.offset
    return np.clip(scaled, INT8_MIN, INT8_MAX).astype(np.int8)


class QuantizationProfile:
    """Observed ``(min, max)`` per tensor name from a float execution."""

    def __init__(self, ranges: Optional[Mapping[str, Tuple[float, float]]] = None) -> None:
        self._ranges: Dict[str, Tuple[float, float]] = dict(ranges or {})

    @classmethod
    def collect(cls, graph: GraphSpec) -> "QuantizationProfile":
        """Record operand and output ranges of an executed float graph."""

        profile = cls()
        node = graph.node
        for operand in node.operands.values():
            profile.observe(operand.name, graph.function.resolve(operand, graph.bindings))
        profile.observe(node.name, graph.output_tensor())
        return profile

    def observe(self, name: str, tensor: Tensor) -> None:
        values = tensor.dequantize()
        if values.size == 0:
            return
        low, high = float(values.min()), float(values.max())
        if name in self._ranges:
            prev_low, prev_high = self._ranges[name]
            low, high = min(low, prev_low), max(high, prev_high)
        self._ranges[name] = (low, high)

    def params_for(self, name: str) -> QuantizationParams:
        try:
            low, high = self._ranges[name]
        except KeyError:
            raise KeyError(f"No profiled range for tensor '{name}'") from None
        return choose_quantization_params(low, high)

    def ranges(self) -> Dict[str, Tuple[float, float]]:
        return dict(self._ranges)


def convert_graph(graph: GraphSpec, mode: PrecisionMode, profile: Optional[QuantizationProfile] = None) -> GraphSpec:
    """Convert a freshly built float graph in place to ``mode``'s representation."""

    if mode is PrecisionMode.REFERENCE:
        return graph
    if mode is PrecisionMode.REDUCED_FLOAT:
        _convert_float16(graph)
        return graph
    if mode is PrecisionMode.QUANTIZED:
        if profile is None:
            raise ValueError("Quantized conversion requires a QuantizationProfile")
        _convert_int8(graph, profile)
        return graph
    raise UnsupportedConfiguration(f"No conversion for precision mode {mode}")


def _convert_float16(graph: GraphSpec) -> None:
    node = graph.node
    for operand in node.operands.values():
        _rebind(graph, operand, _cast(graph.function.resolve(operand, graph.bindings), ElementKind.FLOAT16))
    _retype_output(graph, node, ElementKind.FLOAT16)


def _convert_int8(graph: GraphSpec, profile: QuantizationProfile) -> None:
    node = graph.node
    operand_params: Dict[str, QuantizationParams] = {}
    for key, operand in node.operands.items():
        if key == _BIAS_OPERAND:
            continue
        params = profile.params_for(operand.name)
        operand_params[key] = params
        values = graph.function.resolve(operand, graph.bindings).dequantize()
        _rebind(graph, operand, quantize(values, params))
    if _BIAS_OPERAND in node.operands:
        bias = node.operands[_BIAS_OPERAND]
        weight_key = next(key for key in node.operand_names if key not in ("input", _BIAS_OPERAND))
        bias_params = QuantizationParams(
            scale=operand_params["input"].scale * operand_params[weight_key].scale, offset=0
        )
        values = graph.function.resolve(bias, graph.bindings).dequantize()
        _rebind(graph, bias, quantize(values, bias_params, ElementKind.INT32Q))
    out = profile.params_for(node.name)
    _retype_output(graph, node, ElementKind.INT8Q, scale=out.scale, offset=out.offset)


def _cast(tensor: Tensor, kind: ElementKind) -> Tensor:
    return Tensor(kind, tensor.shape, data=tensor.dequantize().astype(kind.dtype))


def _rebind(graph: GraphSpec, operand, tensor: Tensor) -> None:
    if isinstance(operand, Constant):
        tensor.freeze()
        operand.set_payload(tensor)
        return
    assert isinstance(operand, Placeholder)
    operand.set_kind(tensor.kind, scale=tensor.scale, offset=tensor.offset)
    graph.bindings.insert(operand, tensor)


def _retype_output(graph: GraphSpec, node: Node, kind: ElementKind, *, scale: float = 1.0, offset: int = 0) -> None:
    node.set_output_kind(kind, scale=scale, offset=offset)
    graph.output.set_kind(kind, scale=scale, offset=offset)
    graph.bindings.allocate(graph.output)
