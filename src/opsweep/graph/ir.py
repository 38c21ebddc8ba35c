"""Minimal single-operator graph representation.

A :class:`Module` owns placeholders and constants; a :class:`Function` owns
computation nodes and save nodes. Placeholder payloads live in
:class:`PlaceholderBindings`, constant payloads live on the constant itself.
"""
from __future__ import annotations

from typing import Dict, Iterable, List, Sequence, Tuple, Union

from opsweep.core.models import ElementKind, OperatorKind
from opsweep.core.tensor import Tensor

Shape = Tuple[int, ...]


class Storage:
    """Named tensor slot with an element kind and quantization parameters."""

    def __init__(self, kind: ElementKind, shape: Sequence[int], name: str) -> None:
        self.kind = kind
        self.shape: Shape = tuple(int(dim) for dim in shape)
        self.name = name
        self.scale = 1.0
        self.offset = 0

    def set_kind(self, kind: ElementKind, *, scale: float = 1.0, offset: int = 0) -> None:
        self.kind = kind
        self.scale = float(scale)
        self.offset = int(offset)

    def new_tensor(self) -> Tensor:
        return Tensor(self.kind, self.shape, scale=self.scale, offset=self.offset)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r}, {self.kind.value}, {self.shape})"


class Placeholder(Storage):
    def __init__(self, kind: ElementKind, shape: Sequence[int], name: str, is_trainable: bool) -> None:
        super().__init__(kind, shape, name)
        self.is_trainable = is_trainable


class Constant(Storage):
    def __init__(self, kind: ElementKind, shape: Sequence[int], name: str) -> None:
        super().__init__(kind, shape, name)
        self.payload = self.new_tensor()

    def set_payload(self, tensor: Tensor) -> None:
        if tensor.shape != self.shape:
            raise ValueError(f"Payload shape {tensor.shape} does not match constant {self.name} {self.shape}")
        self.payload = tensor
        self.set_kind(tensor.kind, scale=tensor.scale, offset=tensor.offset)


Operand = Union[Placeholder, Constant]


class Node:
    """A computation node producing one output tensor."""

    kind: OperatorKind
    operand_names: Tuple[str, ...] = ()

    def __init__(self, name: str, operands: Dict[str, Operand], output_shape: Sequence[int]) -> None:
        self.name = name
        self.operands: Dict[str, Operand] = dict(operands)
        self.output_shape: Shape = tuple(int(dim) for dim in output_shape)
        self.output_kind = ElementKind.FLOAT
        self.output_scale = 1.0
        self.output_offset = 0

    def operand(self, key: str) -> Operand:
        return self.operands[key]

    def set_output_kind(self, kind: ElementKind, *, scale: float = 1.0, offset: int = 0) -> None:
        self.output_kind = kind
        self.output_scale = float(scale)
        self.output_offset = int(offset)

    def replace_operand(self, old: Operand, new: Operand) -> None:
        for key, value in self.operands.items():
            if value is old:
                self.operands[key] = new


class ConvolutionNode(Node):
    kind = OperatorKind.CONVOLUTION
    operand_names = ("input", "filter", "bias")

    def __init__(self, name: str, operands: Dict[str, Operand], output_shape: Sequence[int], *,
                 kernel: int, stride: int, pad: int, group: int) -> None:
        super().__init__(name, operands, output_shape)
        self.kernel = kernel
        self.stride = stride
        self.pad = pad
        self.group = group


class BatchMatMulNode(Node):
    kind = OperatorKind.BATCH_MATMUL
    operand_names = ("lhs", "rhs")


class FullyConnectedNode(Node):
    kind = OperatorKind.FULLY_CONNECTED
    operand_names = ("input", "weights", "bias")


class SaveNode:
    """Copies a node's result into an output placeholder."""

    def __init__(self, name: str, source: Node, placeholder: Placeholder) -> None:
        self.name = name
        self.source = source
        self.placeholder = placeholder


class PlaceholderBindings:
    """Maps placeholders to their backing tensors."""

    def __init__(self) -> None:
        self._tensors: Dict[Placeholder, Tensor] = {}

    def allocate(self, placeholder: Placeholder) -> Tensor:
        tensor = placeholder.new_tensor()
        self._tensors[placeholder] = tensor
        return tensor

    def insert(self, placeholder: Placeholder, tensor: Tensor) -> None:
        if tensor.shape != placeholder.shape:
            raise ValueError(
                f"Tensor shape {tensor.shape} does not match placeholder {placeholder.name} {placeholder.shape}"
            )
        self._tensors[placeholder] = tensor

    def get(self, placeholder: Placeholder) -> Tensor:
        try:
            return self._tensors[placeholder]
        except KeyError:
            raise KeyError(f"Placeholder '{placeholder.name}' is not bound") from None

    def erase(self, placeholder: Placeholder) -> None:
        self._tensors.pop(placeholder, None)

    def __contains__(self, placeholder: object) -> bool:
        return placeholder in self._tensors

    def placeholders(self) -> Tuple[Placeholder, ...]:
        return tuple(self._tensors)


class Function:
    def __init__(self, module: "Module", name: str) -> None:
        self.module = module
        self.name = name
        self.nodes: List[Node] = []
        self.saves: List[SaveNode] = []

    def _add(self, node: Node) -> Node:
        self.nodes.append(node)
        return node

    def create_conv(
        self,
        bindings: PlaceholderBindings,
        name: str,
        input: Placeholder,
        depth: int,
        kernel: int,
        stride: int,
        pad: int,
        group: int = 1,
    ) -> ConvolutionNode:
        """NHWC convolution; filter ``{depth, k, k, C/group}`` and bias ``{depth}`` are trainable placeholders."""

        batch, height, width, channels = input.shape
        if channels % group or depth % group:
            raise ValueError(f"channels={channels} and depth={depth} must be divisible by group={group}")
        out_h = (height + 2 * pad - kernel) // stride + 1
        out_w = (width + 2 * pad - kernel) // stride + 1
        if out_h <= 0 or out_w <= 0:
            raise ValueError(f"kernel {kernel} does not fit input {height}x{width} with pad {pad}")
        filter_ = self.module.create_placeholder(
            input.kind, (depth, kernel, kernel, channels // group), f"{name}.filter", is_trainable=True
        )
        bias = self.module.create_placeholder(input.kind, (depth,), f"{name}.bias", is_trainable=True)
        bindings.allocate(filter_)
        bindings.allocate(bias)
        node = ConvolutionNode(
            name,
            {"input": input, "filter": filter_, "bias": bias},
            (batch, out_h, out_w, depth),
            kernel=kernel,
            stride=stride,
            pad=pad,
            group=group,
        )
        return self._add(node)  # type: ignore[return-value]

    def create_batch_matmul(self, name: str, lhs: Operand, rhs: Operand) -> BatchMatMulNode:
        n, a, z = lhs.shape
        n_rhs, z_rhs, b = rhs.shape
        if n != n_rhs or z != z_rhs:
            raise ValueError(f"Cannot multiply {lhs.shape} by {rhs.shape}")
        return self._add(BatchMatMulNode(name, {"lhs": lhs, "rhs": rhs}, (n, a, b)))  # type: ignore[return-value]

    def create_fully_connected(
        self, name: str, input: Operand, weights: Operand, bias: Operand
    ) -> FullyConnectedNode:
        a, z = input.shape
        z_weights, b = weights.shape
        if z != z_weights or bias.shape != (b,):
            raise ValueError(f"Incompatible FC shapes {input.shape}, {weights.shape}, {bias.shape}")
        node = FullyConnectedNode(name, {"input": input, "weights": weights, "bias": bias}, (a, b))
        return self._add(node)  # type: ignore[return-value]

    def create_save(self, name: str, source: Node) -> SaveNode:
        placeholder = self.module.create_placeholder(
            source.output_kind, source.output_shape, name, is_trainable=False
        )
        save = SaveNode(name, source, placeholder)
        self.saves.append(save)
        return save

    def resolve(self, operand: Operand, bindings: PlaceholderBindings) -> Tensor:
        if isinstance(operand, Constant):
            return operand.payload
        return bindings.get(operand)


class Module:
    def __init__(self) -> None:
        self.functions: List[Function] = []
        self.placeholders: List[Placeholder] = []
        self.constants: List[Constant] = []

    def create_function(self, name: str) -> Function:
        function = Function(self, name)
        self.functions.append(function)
        return function

    def create_placeholder(
        self, kind: ElementKind, shape: Sequence[int], name: str, is_trainable: bool = False
    ) -> Placeholder:
        placeholder = Placeholder(kind, shape, name, is_trainable)
        self.placeholders.append(placeholder)
        return placeholder

    def create_constant(self, kind: ElementKind, shape: Sequence[int], name: str) -> Constant:
        constant = Constant(kind, shape, name)
        self.constants.append(constant)
        return constant


def convert_placeholders_to_constants(
    function: Function,
    bindings: PlaceholderBindings,
    keep: Iterable[Placeholder],
) -> List[Constant]:
    """Replace every bound node operand not in ``keep`` by a frozen constant."""

    keep_set = set(keep)
    converted: List[Constant] = []
    for node in function.nodes:
        for operand in list(node.operands.values()):
            if not isinstance(operand, Placeholder) or operand in keep_set or operand not in bindings:
                continue
            constant = function.module.create_constant(operand.kind, operand.shape, operand.name)
            payload = bindings.get(operand).clone()
            payload.freeze()
            constant.set_payload(payload)
            for other in function.nodes:
                other.replace_operand(operand, constant)
            bindings.erase(operand)
            function.module.placeholders.remove(operand)
            converted.append(constant)
    return converted
