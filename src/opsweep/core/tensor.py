"""Dense tensors with an element kind and optional quantization parameters."""
from __future__ import annotations

import math
from typing import Optional, Sequence, Tuple

import numpy as np

from .models import ElementKind


class Tensor:
    """N-dimensional array tagged with an :class:`ElementKind`.

    Quantized kinds store integers ``q`` with ``real = scale * (q - offset)``.
    """

    def __init__(
        self,
        kind: ElementKind,
        shape: Sequence[int],
        *,
        scale: float = 1.0,
        offset: int = 0,
        data: Optional[np.ndarray] = None,
    ) -> None:
        self.kind = kind
        self.scale = float(scale)
        self.offset = int(offset)
        shape = tuple(int(dim) for dim in shape)
        if data is None:
            data = np.zeros(shape, dtype=kind.dtype)
        else:
            data = np.asarray(data, dtype=kind.dtype).reshape(shape)
        self._data = data

    @classmethod
    def from_array(cls, array: np.ndarray, kind: ElementKind = ElementKind.FLOAT, **qparams) -> "Tensor":
        array = np.asarray(array)
        return cls(kind, array.shape, data=array, **qparams)

    @property
    def shape(self) -> Tuple[int, ...]:
        return self._data.shape

    @property
    def size(self) -> int:
        return int(self._data.size)

    @property
    def data(self) -> np.ndarray:
        return self._data

    @property
    def is_frozen(self) -> bool:
        return not self._data.flags.writeable

    def freeze(self) -> "Tensor":
        self._data.flags.writeable = False
        return self

    def clone(self) -> "Tensor":
        return Tensor(
            self.kind, self.shape, scale=self.scale, offset=self.offset, data=self._data.copy()
        )

    def read(self, index: Sequence[int]) -> float:
        value = self._data[tuple(index)]
        if self.kind.is_quantized:
            return self.scale * (float(value) - self.offset)
        return float(value)

    def dequantize(self) -> np.ndarray:
        """Return the values as float32 in the tensor's natural units."""

        if self.kind.is_quantized:
            return (self.scale * (self._data.astype(np.float64) - self.offset)).astype(np.float32)
        return self._data.astype(np.float32)

    # Handle operations used during graph construction.

    def clear(self, value: float = 0.0) -> None:
        self._data[...] = value

    def init_xavier(self, fan: float, rng: np.random.Generator) -> None:
        scale = math.sqrt(3.0 / float(fan))
        self.randomize(-scale, scale, rng)

    def randomize(self, low: float, high: float, rng: np.random.Generator) -> None:
        if self.kind.is_quantized:
            raise TypeError("randomize() is only defined for float tensors")
        self._data[...] = rng.uniform(low, high, size=self.shape).astype(self.kind.dtype)

    def __repr__(self) -> str:
        qparams = f", scale={self.scale:.4g}, offset={self.offset}" if self.kind.is_quantized else ""
        return f"Tensor({self.kind.value}, shape={self.shape}{qparams})"
