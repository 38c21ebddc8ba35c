"""Core dataclasses and enums shared across opsweep subsystems."""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Tuple

import numpy as np


class ElementKind(str, enum.Enum):
    """Element representation of a tensor."""

    FLOAT = "float32"
    FLOAT16 = "float16"
    INT8Q = "int8q"
    INT32Q = "int32q"

    @property
    def dtype(self) -> np.dtype:
        return np.dtype(_STORAGE_DTYPES[self])

    @property
    def is_quantized(self) -> bool:
        return self in (ElementKind.INT8Q, ElementKind.INT32Q)


_STORAGE_DTYPES = {
    ElementKind.FLOAT: "float32",
    ElementKind.FLOAT16: "float16",
    ElementKind.INT8Q: "int8",
    ElementKind.INT32Q: "int32",
}


class PrecisionMode(str, enum.Enum):
    """Numeric representation assigned to a graph for one execution."""

    REFERENCE = "float"
    REDUCED_FLOAT = "float16"
    QUANTIZED = "int8"

    def element_kind(self) -> ElementKind:
        return _MODE_KINDS[self]

    @classmethod
    def parse(cls, value: str) -> "PrecisionMode":
        text = value.strip().lower()
        for mode in cls:
            if text in (mode.value, mode.name.lower()):
                return mode
        raise ValueError(f"Unknown precision mode '{value}'")


_MODE_KINDS = {
    PrecisionMode.REFERENCE: ElementKind.FLOAT,
    PrecisionMode.REDUCED_FLOAT: ElementKind.FLOAT16,
    PrecisionMode.QUANTIZED: ElementKind.INT8Q,
}


class OperatorKind(str, enum.Enum):
    CONVOLUTION = "conv"
    BATCH_MATMUL = "batch_matmul"
    FULLY_CONNECTED = "fully_connected"


@dataclass(frozen=True)
class ToleranceSpec:
    """Maximum absolute elementwise difference allowed for one test."""

    max_abs: float

    def __post_init__(self) -> None:
        if self.max_abs < 0:
            raise ValueError(f"Tolerance must be non-negative, got {self.max_abs}")


@dataclass(frozen=True)
class TestConfiguration:
    """One element of a sweep: the backend under test plus swept dimensions."""

    __test__ = False  # not a pytest class

    backend_id: str
    dims: Tuple[int, ...]
    dim_names: Tuple[str, ...] = ()

    def named_dims(self) -> Tuple[Tuple[str, int], ...]:
        names = self.dim_names or tuple(f"d{index}" for index in range(len(self.dims)))
        return tuple(zip(names, self.dims))

    def label(self) -> str:
        dims = ",".join(f"{name}={value}" for name, value in self.named_dims())
        return f"{self.backend_id}/{dims}"
