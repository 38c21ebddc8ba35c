"""Single-operator graph builders used by the parameter sweeps.

Every builder takes its swept dimensions plus an explicit ``rng`` and returns a
:class:`GraphSpec` with exactly one computation node and one save. Calling a
builder twice with generators seeded identically yields structurally
identical graphs with identical initial values.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

import numpy as np

from opsweep.core.models import ElementKind, OperatorKind
from opsweep.core.tensor import Tensor

from .ir import (
    Function,
    Module,
    Node,
    Placeholder,
    PlaceholderBindings,
    convert_placeholders_to_constants,
)


@dataclass
class GraphSpec:
    """A built graph plus the placeholder its result is saved to."""

    module: Module
    function: Function
    bindings: PlaceholderBindings
    output: Placeholder

    @property
    def node(self) -> Node:
        (node,) = self.function.nodes
        return node

    @property
    def operator(self) -> OperatorKind:
        return self.node.kind

    def output_tensor(self) -> Tensor:
        return self.bindings.get(self.output)


CONV_PARAM_VALUE = 0.1


def build_conv_net(
    size: int,
    depth: int,
    kernel: int,
    *,
    rng: np.random.Generator,
    stride: int = 1,
    pad: int = 0,
) -> GraphSpec:
    """Input ``{1, size, size, depth}``, ``depth`` output channels.

    Filter and bias are cleared to a constant so weight initialization is not
    a source of variance; only the input comes from ``rng``.
    """

    module = Module()
    bindings = PlaceholderBindings()
    function = module.create_function("main")
    var = module.create_placeholder(ElementKind.FLOAT, (1, size, size, depth), "var", is_trainable=False)
    bindings.allocate(var).init_xavier(1, rng)

    conv = function.create_conv(bindings, "conv", var, depth, kernel, stride, pad, group=1)
    bindings.get(conv.operand("filter")).clear(CONV_PARAM_VALUE)  # type: ignore[arg-type]
    bindings.get(conv.operand("bias")).clear(CONV_PARAM_VALUE)  # type: ignore[arg-type]
    save = function.create_save("ret", conv)
    bindings.allocate(save.placeholder)
    convert_placeholders_to_constants(function, bindings, keep=(var, save.placeholder))
    return GraphSpec(module, function, bindings, save.placeholder)


def build_batch_matmul_net(
    n: int,
    a: int,
    z: int,
    b: int | None = None,
    *,
    rng: np.random.Generator,
) -> GraphSpec:
    """``{N, A, Z} x {N, Z, B} -> {N, A, B}``; ``B`` defaults to ``A``."""

    b = a if b is None else b
    module = Module()
    bindings = PlaceholderBindings()
    function = module.create_function("main")
    lhs = module.create_placeholder(ElementKind.FLOAT, (n, a, z), "LHS", is_trainable=False)
    rhs = module.create_placeholder(ElementKind.FLOAT, (n, z, b), "RHS", is_trainable=False)
    bindings.allocate(lhs).init_xavier(10, rng)
    bindings.allocate(rhs).init_xavier(10, rng)

    bmm = function.create_batch_matmul("BMM", lhs, rhs)
    save = function.create_save("save", bmm)
    bindings.allocate(save.placeholder)
    return GraphSpec(module, function, bindings, save.placeholder)


def build_fc_net(a: int, z: int, b: int, *, rng: np.random.Generator) -> GraphSpec:
    """Input ``{A, Z}``, constant weights ``{Z, B}`` and bias ``{B}``.

    The bias range is kept near zero so additive bias error cannot mask
    multiplicative error.
    """

    module = Module()
    bindings = PlaceholderBindings()
    function = module.create_function("main")
    input_ = module.create_placeholder(ElementKind.FLOAT, (a, z), "input", is_trainable=False)
    weights = module.create_constant(ElementKind.FLOAT, (z, b), "weights")
    bias = module.create_constant(ElementKind.FLOAT, (b,), "bias")
    bindings.allocate(input_).randomize(-0.2, 0.2, rng)
    bias.payload.randomize(0.0, 0.000005, rng)
    weights.payload.randomize(-0.4, 0.4, rng)
    weights.payload.freeze()
    bias.payload.freeze()

    fc = function.create_fully_connected("FC", input_, weights, bias)
    save = function.create_save("save", fc)
    bindings.allocate(save.placeholder)
    return GraphSpec(module, function, bindings, save.placeholder)


BUILDERS = {
    OperatorKind.CONVOLUTION: build_conv_net,
    OperatorKind.BATCH_MATMUL: build_batch_matmul_net,
    OperatorKind.FULLY_CONNECTED: build_fc_net,
}


def operator_of(builder: Callable[..., GraphSpec]) -> OperatorKind:
    for operator, known in BUILDERS.items():
        if builder is known:
            return operator
    operator = getattr(builder, "operator", None)
    if isinstance(operator, OperatorKind):
        return operator
    raise ValueError(f"Cannot infer operator kind of builder {builder!r}; pass operator= explicitly")
