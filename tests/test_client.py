import gc

import numpy as np
import pytest

from vmclient import (
    ClientConfig,
    CompileInstance,
    Computation,
    ComputationClient,
    Data,
    ExecuteComputationOptions,
    GenericComputation,
    Shape,
    TensorSource,
)
from vmclient.ir import Call, Function, Let, TensorType, Tuple, Var, const, dtypes, get_op
from vmclient.utils.exceptions import ClosureResolutionError, CompilationError, DeviceError, ExecutionError
from vmclient.vm import ClosureValue, Device, TensorValue, VMClosureValue

T = TensorType((2, 3), dtypes.float32)


def _upload(client: ComputationClient, *arrays: np.ndarray) -> list[Data]:
    device = client.get_default_device()
    return client.transfer_to_server([TensorSource.from_array(a, device) for a in arrays])


def _compile(client: ComputationClient, func: Function):
    [comp] = client.compile([CompileInstance(GenericComputation(func), devices=client.get_local_devices())])
    return comp


def _read(client: ComputationClient, handles: list[Data]) -> list[np.ndarray]:
    return [lit.to_numpy() for lit in client.transfer_from_server(handles)]


def test_device_queries(client) -> None:
    default = client.get_default_device()
    assert client.get_local_devices()[0] == default
    assert client.get_all_devices() == client.get_local_devices()
    assert client.get_backend_device("CPU:0") == "cpu(0)"


def test_execute_add(client) -> None:
    x = Var("x", T)
    y = Var("y", T)
    comp = _compile(client, Function([x, y], Call(get_op("add"), [x, y])))
    assert comp.executable is not None
    assert comp.program_shape.parameters == (Shape.array("f32", (2, 3)),) * 2
    assert comp.program_shape.result == Shape.array("f32", (2, 3))

    a = np.arange(6, dtype=np.float32).reshape(2, 3)
    b = np.full((2, 3), 10, dtype=np.float32)
    [out] = client.execute_computation(comp, _upload(client, a, b), client.get_default_device())

    assert out.device == client.get_default_device()
    assert out.shape == Shape.array("f32", (2, 3))
    np.testing.assert_array_equal(_read(client, [out])[0], a + b)


def test_execute_bias_add(client) -> None:
    x = Var("x", TensorType((2, 3, 4), dtypes.float32))
    b = Var("b", TensorType((3,), dtypes.float32))
    comp = _compile(client, Function([x, b], Call(get_op("bias_add"), [x, b], {"axis": 1})))

    a = np.ones((2, 3, 4), dtype=np.float32)
    bias = np.array([1, 2, 3], dtype=np.float32)
    [out] = client.execute_computation(comp, _upload(client, a, bias), client.get_default_device())
    np.testing.assert_array_equal(_read(client, [out])[0], a + bias[:, None])


def test_execute_with_local_closure(client) -> None:
    x = Var("x", T)
    a = Var("a", T)
    y = Var("y", T)
    f = Var("f")
    c = const(np.full((2, 3), 2.0), dtype=np.float32)
    inner = Function([y], Call(get_op("multiply"), [Call(get_op("add"), [x, y]), c]))
    comp = _compile(client, Function([x, a], Let(f, inner, Call(f, [a]))))

    lhs = np.ones((2, 3), dtype=np.float32)
    rhs = np.arange(6, dtype=np.float32).reshape(2, 3)
    [out] = client.execute_computation(comp, _upload(client, lhs, rhs), client.get_default_device())
    np.testing.assert_array_equal(_read(client, [out])[0], (lhs + rhs) * 2)


class TestIdentity:
    def test_identity_skips_lowering(self, client) -> None:
        x = Var("x", T)
        comp = _compile(client, Function([x], x))
        assert comp.executable is None
        assert comp.is_identity
        assert comp in client.lowered

        [arg] = _upload(client, np.ones((2, 3), dtype=np.float32))
        [out] = client.execute_computation(comp, [arg], client.get_default_device())
        assert out.handle is arg.handle
        assert out.shape == arg.shape

    def test_identity_requires_one_argument(self, client) -> None:
        x = Var("x", T)
        comp = _compile(client, Function([x], x))
        args = _upload(client, np.ones((2, 3), dtype=np.float32), np.ones((2, 3), dtype=np.float32))
        with pytest.raises(ExecutionError):
            client.execute_computation(comp, args, client.get_default_device())


class TestTupleResults:
    def test_tuple_is_exploded_in_order(self, client) -> None:
        x = Var("x", T)
        body = Tuple([x, Call(get_op("negative"), [x]), Call(get_op("relu"), [x])])
        comp = _compile(client, Function([x], body))

        a = np.array([[-1, 2, -3], [4, -5, 6]], dtype=np.float32)
        outs = client.execute_computation(comp, _upload(client, a), client.get_default_device())
        assert len(outs) == 3
        got = _read(client, outs)
        np.testing.assert_array_equal(got[0], a)
        np.testing.assert_array_equal(got[1], -a)
        np.testing.assert_array_equal(got[2], np.maximum(a, 0))

    def test_nested_single_field_tuples(self, client) -> None:
        x = Var("x", T)
        body = Tuple([Tuple([x]), Tuple([Call(get_op("negative"), [x])])])
        comp = _compile(client, Function([x], body))

        outs = client.execute_computation(
            comp, _upload(client, np.ones((2, 3), dtype=np.float32)), client.get_default_device()
        )
        assert len(outs) == 2
        assert all(isinstance(o.handle, TensorValue) for o in outs)

    def test_nested_multi_field_tuple_fails(self, client) -> None:
        x = Var("x", T)
        comp = _compile(client, Function([x], Tuple([x, Tuple([x, x])])))
        with pytest.raises(ExecutionError):
            client.execute_computation(
                comp, _upload(client, np.ones((2, 3), dtype=np.float32)), client.get_default_device()
            )

    def test_tuple_kept_whole_when_not_exploding(self, client) -> None:
        x = Var("x", T)
        comp = _compile(client, Function([x], Tuple([x, Call(get_op("negative"), [x])])))
        [out] = client.execute_computation(
            comp,
            _upload(client, np.ones((2, 3), dtype=np.float32)),
            client.get_default_device(),
            ExecuteComputationOptions(explode_tuple=False),
        )
        assert out.shape.is_tuple
        assert len(out.shape.tuple_shapes) == 2

    def test_nested_tuple_kept_whole_when_not_exploding(self, client) -> None:
        x = Var("x", T)
        comp = _compile(client, Function([x], Tuple([x, Tuple([x, x])])))
        [out] = client.execute_computation(
            comp,
            _upload(client, np.ones((2, 3), dtype=np.float32)),
            client.get_default_device(),
            ExecuteComputationOptions(explode_tuple=False),
        )
        leaf = Shape.array("f32", (2, 3))
        assert out.shape == Shape.make_tuple([leaf, Shape.make_tuple([leaf, leaf])])
        assert len(out.handle.fields[1].fields) == 2


class TestClosures:
    def _closure_computation(self, client):
        x = Var("x", T)
        y = Var("y", T)
        return _compile(client, Function([x], Function([y], Call(get_op("add"), [x, y]))))

    def test_returned_closure_is_resolved(self, client) -> None:
        comp = self._closure_computation(client)
        [arg] = _upload(client, np.ones((2, 3), dtype=np.float32))
        [out] = client.execute_computation(comp, [arg], client.get_default_device())

        closure = out.handle
        assert isinstance(closure, ClosureValue)
        assert closure.gvar.name == "main_closure1"
        lifted = closure.mod.lookup(closure.gvar)
        assert list(closure.env) == lifted.params
        np.testing.assert_array_equal(closure.env[lifted.params[0]].data, arg.handle.data)
        assert out.shape == Shape.array("f32", (2, 3))

    def test_captured_count_mismatch(self, client) -> None:
        comp = self._closure_computation(client)
        index = comp.executable.global_map["main_closure1"]
        v = TensorValue(np.zeros((2, 3), dtype=np.float32))
        with pytest.raises(ClosureResolutionError) as info:
            client.engine.normalize_value(comp, VMClosureValue(index, [v, v]))
        assert info.value.func_index == index

    def test_unknown_function_index(self, client) -> None:
        comp = self._closure_computation(client)
        with pytest.raises(ClosureResolutionError):
            client.engine.normalize_value(comp, VMClosureValue(99, []))

    def test_released_computation_cannot_resolve(self, client) -> None:
        comp = self._closure_computation(client)
        assert client.release_computation(comp)
        with pytest.raises(ClosureResolutionError):
            client.engine.normalize_value(comp, VMClosureValue(1, []))


class TestLoweredModuleTable:
    def test_release_is_idempotent(self, client) -> None:
        x = Var("x", T)
        comp = _compile(client, Function([x], Call(get_op("relu"), [x])))
        assert comp in client.lowered
        assert client.release_computation(comp) is True
        assert client.release_computation(comp) is False
        assert comp not in client.lowered

    def test_entry_dies_with_computation(self, client) -> None:
        x = Var("x", T)
        comp = _compile(client, Function([x], Call(get_op("relu"), [x])))
        assert len(client.lowered) == 1
        del comp
        gc.collect()
        assert len(client.lowered) == 0


def test_placeholder_assign(client) -> None:
    device = client.get_default_device()
    placeholder = client.create_data_placeholder(device, Shape.array("f32", (2, 3)))
    assert not placeholder.has_value()

    [src] = _upload(client, np.full((2, 3), 4, dtype=np.float32))
    placeholder.assign(src)
    assert placeholder.handle is src.handle
    assert placeholder.device == device
    np.testing.assert_array_equal(_read(client, [placeholder])[0], np.full((2, 3), 4))


def test_placeholder_argument_is_rejected(client) -> None:
    x = Var("x", T)
    comp = _compile(client, Function([x], Call(get_op("relu"), [x])))
    placeholder = client.create_data_placeholder(client.get_default_device(), Shape.array("f32", (2, 3)))
    with pytest.raises(ExecutionError):
        client.execute_computation(comp, [placeholder], client.get_default_device())


def test_type_error_surfaces_as_compilation_error(client) -> None:
    x = Var("x", T)
    w = Var("w", TensorType((4, 4), dtypes.float32))
    with pytest.raises(CompilationError):
        _compile(client, Function([x, w], Call(get_op("matmul"), [x, w])))


def test_execute_on_inactive_device_fails() -> None:
    client = ComputationClient.create(ClientConfig(default_device="CPU"))
    x = Var("x", T)
    comp = _compile(client, Function([x], Call(get_op("relu"), [x])))
    args = _upload(client, np.ones((2, 3), dtype=np.float32))
    with pytest.raises(DeviceError):
        client.execute_computation(comp, args, "GPU:0")


def test_compilation_device_overrides_default() -> None:
    client = ComputationClient.create(ClientConfig(default_device="GPU"))
    x = Var("x", T)
    func = Function([x], Call(get_op("relu"), [x]))
    [on_cpu, on_default] = client.compile([
        CompileInstance(GenericComputation(func), compilation_device="CPU:0"),
        CompileInstance(GenericComputation(func)),
    ])
    assert on_cpu.executable.device == Device("CPU", 0)
    assert on_default.executable.device == Device("GPU", 0)
    assert client.lowered.lookup(on_cpu).lookup("main").attrs["device"] == "CPU"


def test_unknown_compilation_device_fails() -> None:
    client = ComputationClient.create(ClientConfig(default_device="CPU"))
    x = Var("x", T)
    with pytest.raises(DeviceError):
        client.compile([CompileInstance(GenericComputation(Function([x], Call(get_op("relu"), [x]))), "GPU:0")])


def test_computation_without_executable_runs_as_identity(client) -> None:
    x = Var("x", T)
    relu = _compile(client, Function([x], Call(get_op("relu"), [x])))
    bare = Computation(relu.computation, relu.program_shape, relu.devices)
    assert bare.is_identity

    [arg] = _upload(client, np.full((2, 3), -1, dtype=np.float32))
    [out] = client.execute_computation(bare, [arg], client.get_default_device())
    assert out.handle is arg.handle
