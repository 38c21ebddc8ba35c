"""Static table of which backends take part in which (operator, precision) test."""
from __future__ import annotations

from typing import Dict, FrozenSet, Iterable, Mapping, Tuple

from .models import OperatorKind, PrecisionMode

GateKey = Tuple[OperatorKind, PrecisionMode]


class BackendGate:
    """Explicit allow-list keyed by ``(operator, candidate precision)``."""

    def __init__(self, table: Mapping[GateKey, Iterable[str]] | None = None) -> None:
        self._table: Dict[GateKey, FrozenSet[str]] = {}
        for key, backends in (table or {}).items():
            self._table[key] = frozenset(backends)

    def allow(self, backend_id: str, operator: OperatorKind, mode: PrecisionMode) -> None:
        key = (operator, mode)
        self._table[key] = self._table.get(key, frozenset()) | {backend_id}

    def is_applicable(self, backend_id: str, operator: OperatorKind, mode: PrecisionMode) -> bool:
        return backend_id in self._table.get((operator, mode), frozenset())

    def backends_for(self, operator: OperatorKind, mode: PrecisionMode) -> FrozenSet[str]:
        return self._table.get((operator, mode), frozenset())

    def table(self) -> Dict[GateKey, FrozenSet[str]]:
        return dict(self._table)


# Float comparisons need a backend that executes float at all (never the
# reference against itself); int8/fp16 also self-check the reference's own
# conversion path.
_FLOAT_BACKENDS = ("CPU", "OpenCL")
_INT8_BACKENDS = ("Interpreter", "CPU", "OpenCL")
_FLOAT16_BACKENDS = ("Interpreter",)

DEFAULT_GATE_TABLE: Dict[GateKey, Tuple[str, ...]] = {}
for _operator in OperatorKind:
    DEFAULT_GATE_TABLE[(_operator, PrecisionMode.REFERENCE)] = _FLOAT_BACKENDS
    DEFAULT_GATE_TABLE[(_operator, PrecisionMode.QUANTIZED)] = _INT8_BACKENDS
    DEFAULT_GATE_TABLE[(_operator, PrecisionMode.REDUCED_FLOAT)] = _FLOAT16_BACKENDS

default_gate = BackendGate(DEFAULT_GATE_TABLE)
