import pytest

from opsweep.core.models import PrecisionMode, TestConfiguration
from opsweep.sweeps import BATCH_MATMUL_SWEEP, CONV_SWEEP, FC_SWEEP, SWEEPS, get_sweep


def test_builtin_value_sets() -> None:
    assert CONV_SWEEP.value_sets == ((5, 7, 15), (8, 64), (1, 3))
    assert BATCH_MATMUL_SWEEP.value_sets[1] == (10, 11, 12, 13, 14, 15)
    assert FC_SWEEP.dim_names == ("A", "Z", "B")
    assert len(FC_SWEEP.configurations(["CPU"])) == 4 * 5 * 3


def test_tolerances_per_test() -> None:
    expected = {
        "ConvTest_Float": 0.0001,
        "ConvTest_Int8": 0.045,
        "ConvTest_Float16": 0.005,
        "BatchMatMulTest_Float": 0.0001,
        "BatchMatMulTest_Int8": 0.06,
        "BatchMatMulTest_Float16": 0.005,
        "FCTest_Float": 0.0001,
        "FCTest_Int8": 0.065,
        "FCTest_Float16": 0.004,
    }
    tests = {test.name: test for sweep in SWEEPS for test in sweep.tests}
    assert set(tests) == set(expected)
    for name, tolerance in expected.items():
        assert tests[name].tolerance.max_abs == tolerance
        assert tests[name].ref_mode is PrecisionMode.REFERENCE


def test_describe_line() -> None:
    configuration = TestConfiguration("CPU", (1, 256, 64), FC_SWEEP.dim_names)
    assert FC_SWEEP.describe(configuration) == "Testing FC with A: 1; Z: 256; B: 64"
    bmm = TestConfiguration("CPU", (4, 10, 32), BATCH_MATMUL_SWEEP.dim_names)
    assert BATCH_MATMUL_SWEEP.describe(bmm) == "Testing BatchMatMul with N: 4; A: 10; Z: 32; B: 10"


def test_lookup_by_alias_and_selection() -> None:
    assert get_sweep("bmm") is BATCH_MATMUL_SWEEP
    assert get_sweep("FCSweepTest") is FC_SWEEP
    with pytest.raises(KeyError):
        get_sweep("pooling")
    narrowed = get_sweep("conv").with_tests(["ConvTest_Int8"])
    assert [test.name for test in narrowed.tests] == ["ConvTest_Int8"]
    with pytest.raises(KeyError):
        CONV_SWEEP.with_tests(["NoSuchTest"])


def test_with_values_rejects_unknown_dimension() -> None:
    narrowed = CONV_SWEEP.with_values({"depth": [8]})
    assert narrowed.value_sets == ((5, 7, 15), (8,), (1, 3))
    with pytest.raises(KeyError):
        CONV_SWEEP.with_values({"width": [3]})
