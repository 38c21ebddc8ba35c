import pytest

from opsweep.core.models import TestConfiguration
from opsweep.core.space import expand


def test_expand_orders_backend_outermost() -> None:
    configs = expand([[1, 2], [3]], ["CPU", "Interpreter"])
    assert [(c.backend_id, c.dims) for c in configs] == [
        ("CPU", (1, 3)),
        ("CPU", (2, 3)),
        ("Interpreter", (1, 3)),
        ("Interpreter", (2, 3)),
    ]


def test_expand_size_is_product_of_value_sets() -> None:
    configs = expand([(5, 7, 15), (8, 64), (1, 3)], ["CPU", "Interpreter", "OpenCL"])
    assert len(configs) == 3 * 3 * 2 * 2
    assert len(set(configs)) == len(configs)


def test_expand_drops_duplicate_values_keeping_order() -> None:
    configs = expand([[4, 1, 4]], ["CPU", "CPU"])
    assert [c.dims for c in configs] == [(4,), (1,)]


def test_expand_rejects_empty_and_misnamed_dimensions() -> None:
    with pytest.raises(ValueError):
        expand([], ["CPU"])
    with pytest.raises(ValueError):
        expand([[1], [2]], ["CPU"], dim_names=("A",))


def test_configuration_label_uses_dimension_names() -> None:
    named = TestConfiguration("CPU", (1, 256, 64), ("A", "Z", "B"))
    assert named.label() == "CPU/A=1,Z=256,B=64"
    assert TestConfiguration("CPU", (3,)).label() == "CPU/d0=3"
