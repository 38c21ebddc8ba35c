import numpy as np
import pytest

from opsweep.backends import (
    BackendManager,
    CpuBackendDriver,
    InterpreterBackendDriver,
    backend_manager,
    register_default_backends,
)
from opsweep.core.errors import UnsupportedConfiguration
from opsweep.core.models import ElementKind, OperatorKind, PrecisionMode
from opsweep.graph import build_batch_matmul_net, build_conv_net, build_fc_net, convert_graph
from opsweep.graph.ir import Module, PlaceholderBindings


def test_default_backends_registered() -> None:
    assert "Interpreter" in backend_manager
    assert "CPU" in backend_manager
    register_default_backends()  # idempotent
    assert backend_manager.names().count("CPU") == 1


def test_manager_rejects_duplicates_and_unknown_names() -> None:
    manager = BackendManager()
    manager.register(CpuBackendDriver())
    with pytest.raises(ValueError):
        manager.register(CpuBackendDriver())
    with pytest.raises(KeyError):
        manager.get_driver("OpenCL")
    manager.unregister("CPU")
    assert manager.names() == ()


def test_precision_support() -> None:
    cpu = CpuBackendDriver()
    interpreter = InterpreterBackendDriver()
    for operator in OperatorKind:
        assert cpu.supports(operator, PrecisionMode.QUANTIZED)
        assert not cpu.supports(operator, PrecisionMode.REDUCED_FLOAT)
        for mode in PrecisionMode:
            assert interpreter.supports(operator, mode)


def test_cpu_rejects_float16_graph() -> None:
    graph = convert_graph(build_fc_net(1, 16, 8, rng=np.random.default_rng(0)), PrecisionMode.REDUCED_FLOAT)
    with pytest.raises(UnsupportedConfiguration):
        CpuBackendDriver().execute(graph.function, graph.bindings)


def _run(driver, builder, *dims, seed=0, **kwargs):
    graph = builder(*dims, rng=np.random.default_rng(seed), **kwargs)
    driver.execute(graph.function, graph.bindings)
    return graph.output_tensor()


@pytest.mark.parametrize(
    "builder,dims,kwargs",
    [
        (build_conv_net, (7, 8, 3), {}),
        (build_conv_net, (7, 8, 3), {"stride": 2, "pad": 1}),
        (build_batch_matmul_net, (4, 10, 32), {}),
        (build_fc_net, (4, 256, 64), {}),
    ],
)
def test_interpreter_and_cpu_agree_in_float(builder, dims, kwargs) -> None:
    reference = _run(InterpreterBackendDriver(), builder, *dims, **kwargs)
    candidate = _run(CpuBackendDriver(), builder, *dims, **kwargs)
    assert reference.shape == candidate.shape
    assert candidate.is_frozen
    np.testing.assert_allclose(candidate.data, reference.data, atol=1e-4)


def test_pointwise_conv_matches_closed_form() -> None:
    graph = build_conv_net(5, 8, 1, rng=np.random.default_rng(2))
    x = graph.bindings.get(graph.node.operand("input")).data.astype(np.float64)
    InterpreterBackendDriver().execute(graph.function, graph.bindings)
    expected = 0.1 * x.sum(axis=3, keepdims=True) + 0.1
    np.testing.assert_allclose(graph.output_tensor().data, np.broadcast_to(expected, (1, 5, 5, 8)), atol=1e-5)


def test_grouped_conv_agrees_between_backends() -> None:
    rng = np.random.default_rng(9)
    module = Module()
    bindings = PlaceholderBindings()
    function = module.create_function("main")
    x = module.create_placeholder(ElementKind.FLOAT, (1, 6, 6, 4), "x")
    bindings.allocate(x).randomize(-1.0, 1.0, rng)
    conv = function.create_conv(bindings, "conv", x, 4, 3, 1, 0, group=2)
    assert conv.operand("filter").shape == (4, 3, 3, 2)
    bindings.get(conv.operand("filter")).randomize(-1.0, 1.0, rng)
    save = function.create_save("out", conv)
    bindings.allocate(save.placeholder)

    InterpreterBackendDriver().execute(function, bindings)
    reference = bindings.get(save.placeholder)
    CpuBackendDriver().execute(function, bindings)
    candidate = bindings.get(save.placeholder)
    assert reference is not candidate
    np.testing.assert_allclose(candidate.data, reference.data, atol=1e-4)
