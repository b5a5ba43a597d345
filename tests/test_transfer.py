import numpy as np
import pytest

from vmclient.client import Data, DataTransferEngine, DeviceRegistry, Literal, Shape, TensorSource
from vmclient.client.transfer import POPULATE_RN, populate_rn
from vmclient.utils.exceptions import ClientError, UnsupportedTypeError
from vmclient.vm import CPU0, Device, TensorValue, TupleValue

SUPPORTED = [
    ("s8", np.int8),
    ("s32", np.int32),
    ("s64", np.int64),
    ("pred", np.bool_),
    ("u8", np.uint8),
    ("u32", np.uint32),
    ("u64", np.uint64),
    ("f16", np.float16),
    ("f32", np.float32),
    ("f64", np.float64),
]


@pytest.fixture(params=["CPU", "GPU"])
def engine(request):
    registry = DeviceRegistry.populate(request.param)
    return registry.default_device, DataTransferEngine(registry.backend_device)


def _sample(native) -> np.ndarray:
    if native is np.bool_:
        return np.array([[True, False, True], [False, False, True]])
    return (np.arange(6).reshape(2, 3) * 3 + 1).astype(native)


@pytest.mark.parametrize("primitive, native", SUPPORTED)
def test_round_trip(engine, primitive, native) -> None:
    device, transfers = engine
    host = _sample(native)

    [handle] = transfers.transfer_to_server([TensorSource.from_array(host, device)])
    assert handle.device == device
    assert handle.shape == Shape.array(primitive, (2, 3))
    assert handle.has_value()

    [literal] = transfers.transfer_from_server([handle])
    assert literal.shape == handle.shape
    assert literal.data.dtype == np.dtype(native)
    np.testing.assert_array_equal(literal.to_numpy(), host)


def test_upload_lands_on_target_device() -> None:
    registry = DeviceRegistry.populate("GPU")
    transfers = DataTransferEngine(registry.backend_device)
    host = np.ones((4,), dtype=np.float32)

    gpu, cpu = transfers.transfer_to_server([
        TensorSource.from_array(host, "GPU:0"),
        TensorSource.from_array(host, "CPU:0"),
    ])
    assert gpu.handle.device == Device("GPU", 0)
    assert cpu.handle.device == CPU0
    assert gpu.handle is not cpu.handle


def test_upload_copies_host_memory() -> None:
    transfers = DataTransferEngine(DeviceRegistry.populate("CPU").backend_device)
    host = np.zeros((3,), dtype=np.int32)
    [handle] = transfers.transfer_to_server([TensorSource.from_array(host, "CPU:0")])
    host[0] = 7
    assert handle.handle.data[0] == 0


def test_custom_populate_fn() -> None:
    transfers = DataTransferEngine(DeviceRegistry.populate("CPU").backend_device)
    calls = []

    def fill(source: TensorSource, buffer: memoryview, nbytes: int) -> None:
        calls.append(nbytes)
        buffer[:nbytes] = np.array([1.5, 2.5], dtype=np.float64).tobytes()

    [handle] = transfers.transfer_to_server([TensorSource(Shape.array("f64", (2,)), "CPU:0", fill)])
    assert calls == [16]
    np.testing.assert_array_equal(handle.handle.data, [1.5, 2.5])


@pytest.mark.parametrize("native, primitive", [(np.int16, "s16"), (np.complex64, "c64")])
def test_readback_of_unsupported_type(native, primitive) -> None:
    transfers = DataTransferEngine(DeviceRegistry.populate("CPU").backend_device)
    [handle] = transfers.transfer_to_server([TensorSource.from_array(np.zeros((2,), dtype=native), "CPU:0")])
    assert handle.shape.element_type == primitive

    with pytest.raises(UnsupportedTypeError) as info:
        transfers.transfer_from_server([handle])
    assert info.value.element_type == primitive
    assert "NotImplementedError" in str(info.value)


def test_supported_type_table() -> None:
    assert sorted(POPULATE_RN) == sorted(p for p, _ in SUPPORTED)


def test_populate_checks_element_count() -> None:
    literal = Literal(Shape.array("f32", (3,)), np.empty((3,), dtype=np.float32))
    raw = np.zeros((2,), dtype=np.float32).view(np.uint8)
    with pytest.raises(ClientError):
        populate_rn(literal, raw)


def test_readback_of_placeholder_fails() -> None:
    transfers = DataTransferEngine(DeviceRegistry.populate("CPU").backend_device)
    with pytest.raises(ClientError):
        transfers.transfer_from_server([Data("CPU:0", Shape.array("f32", (2,)))])


def test_readback_of_tuple_fails() -> None:
    transfers = DataTransferEngine(DeviceRegistry.populate("CPU").backend_device)
    value = TupleValue([TensorValue(np.zeros((2,), dtype=np.float32))])
    with pytest.raises(ClientError):
        transfers.transfer_from_server([Data("CPU:0", Shape(), value)])


def test_upload_of_non_array_shape_fails() -> None:
    transfers = DataTransferEngine(DeviceRegistry.populate("CPU").backend_device)

    def fill(source: TensorSource, buffer: memoryview, nbytes: int) -> None:
        raise AssertionError("populate_fn must not run")

    tuple_shape = Shape.make_tuple([Shape.array("f32", (2,))])
    for shape in (tuple_shape, Shape()):
        with pytest.raises(ClientError):
            transfers.transfer_to_server([TensorSource(shape, "CPU:0", fill)])


def test_upload_of_unknown_element_type_fails() -> None:
    transfers = DataTransferEngine(DeviceRegistry.populate("CPU").backend_device)
    source = TensorSource(Shape.array("bf16", (2,)), "CPU:0", lambda *_: None)
    with pytest.raises(UnsupportedTypeError) as info:
        transfers.transfer_to_server([source])
    assert info.value.element_type == "bf16"
