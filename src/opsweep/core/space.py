"""Cartesian expansion of sweep dimensions into test configurations."""
from __future__ import annotations

import itertools
from typing import Iterable, List, Optional, Sequence

from .models import TestConfiguration


def expand(
    dimension_value_sets: Sequence[Iterable[int]],
    backend_ids: Iterable[str],
    *,
    dim_names: Optional[Sequence[str]] = None,
) -> List[TestConfiguration]:
    """Return one configuration per element of ``backends x dim0 x dim1 x ...``.

    Ordering is stable: the backend is the outermost loop, then each dimension
    in the order given. Nothing is filtered here.
    """

    value_sets = [_ordered_unique(values) for values in dimension_value_sets]
    if not value_sets:
        raise ValueError("At least one sweep dimension is required")
    names = tuple(dim_names) if dim_names is not None else ()
    if names and len(names) != len(value_sets):
        raise ValueError(
            f"Got {len(names)} dimension names for {len(value_sets)} dimensions"
        )
    backends = _ordered_unique(backend_ids)
    configurations: List[TestConfiguration] = []
    for backend_id, dims in itertools.product(backends, itertools.product(*value_sets)):
        configurations.append(
            TestConfiguration(backend_id=backend_id, dims=tuple(int(d) for d in dims), dim_names=names)
        )
    return configurations


def _ordered_unique(values: Iterable) -> list:
    seen = set()
    ordered = []
    for value in values:
        if value in seen:
            continue
        seen.add(value)
        ordered.append(value)
    return ordered
