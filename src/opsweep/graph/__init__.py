"""Single-operator graphs and their precision conversion."""
from .builders import (
    BUILDERS,
    GraphSpec,
    build_batch_matmul_net,
    build_conv_net,
    build_fc_net,
    operator_of,
)
from .ir import Module, PlaceholderBindings, convert_placeholders_to_constants
from .precision import QuantizationParams, QuantizationProfile, choose_quantization_params, convert_graph

__all__ = [
    "BUILDERS",
    "GraphSpec",
    "Module",
    "PlaceholderBindings",
    "QuantizationParams",
    "QuantizationProfile",
    "build_batch_matmul_net",
    "build_conv_net",
    "build_fc_net",
    "choose_quantization_params",
    "convert_graph",
    "convert_placeholders_to_constants",
    "operator_of",
]
