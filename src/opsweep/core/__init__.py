"""Core models and helpers exposed at the package level."""
from .comparator import ComparisonOutcome, compare
from .errors import (
    BackendExecutionError,
    OpsweepError,
    ShapeMismatch,
    ToleranceExceeded,
    UnsupportedConfiguration,
)
from .gate import BackendGate, default_gate
from .models import ElementKind, OperatorKind, PrecisionMode, TestConfiguration, ToleranceSpec
from .space import expand
from .tensor import Tensor

__all__ = [
    "BackendExecutionError",
    "BackendGate",
    "ComparisonOutcome",
    "ElementKind",
    "OperatorKind",
    "OpsweepError",
    "PrecisionMode",
    "ShapeMismatch",
    "Tensor",
    "TestConfiguration",
    "ToleranceExceeded",
    "ToleranceSpec",
    "UnsupportedConfiguration",
    "compare",
    "default_gate",
    "expand",
]
