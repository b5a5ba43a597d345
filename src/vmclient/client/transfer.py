from __future__ import annotations

from typing import Callable, Sequence

import numpy as np

from vmclient.ir.dtypes import from_numpy
from vmclient.utils.exceptions import ClientError, UnsupportedTypeError
from vmclient.utils.logging import get_logger
from vmclient.vm.device import CPU0, Device
from vmclient.vm.values import TensorValue, type_key

from .data import Data, Literal, Shape, TensorSource

logger = get_logger(__name__)


def _populate_rn(literal: Literal, raw: np.ndarray, native: type) -> None:
    """Copy the raw bytes in `raw` into `literal` as `native` elements."""
    values = raw.view(native)
    if not literal.shape.is_array:
        raise ClientError(f"Cannot populate a non-array literal of shape {literal.shape}")
    if literal.shape.element_count != values.size:
        raise ClientError(
            f"Literal holds {literal.shape.element_count} element(s), device buffer has {values.size}"
        )
    if literal.data.dtype != np.dtype(native):
        raise ClientError(f"Literal element type {literal.data.dtype} does not match {np.dtype(native)}")
    np.copyto(literal.data, values.reshape(literal.data.shape))


def _typed(native: type) -> Callable[[Literal, np.ndarray], None]:
    def populate(literal: Literal, raw: np.ndarray) -> None:
        _populate_rn(literal, raw, native)

    return populate


# Element type -> typed host copy. Anything missing cannot be read back.
POPULATE_RN: dict[str, Callable[[Literal, np.ndarray], None]] = {
    "s8": _typed(np.int8),
    "s32": _typed(np.int32),
    "s64": _typed(np.int64),
    "pred": _typed(np.bool_),
    "u8": _typed(np.uint8),
    "u32": _typed(np.uint32),
    "u64": _typed(np.uint64),
    "f16": _typed(np.float16),
    "f32": _typed(np.float32),
    "f64": _typed(np.float64),
}


def populate_rn(literal: Literal, raw: np.ndarray) -> None:
    element_type = literal.shape.element_type or "<none>"
    handler = POPULATE_RN.get(element_type)
    if handler is None:
        logger.error(f"No host copy routine for element type {element_type}")
        raise UnsupportedTypeError(element_type, operation="transfer_from_server")
    handler(literal, raw)


class DataTransferEngine:
    """Move tensors between host memory and device-resident values.

    Both directions are stateless and process their batch strictly in order.
    """

    def __init__(self, resolve_device: Callable[[str], Device]) -> None:
        self._resolve_device = resolve_device

    def transfer_to_server(self, sources: Sequence[TensorSource]) -> list[Data]:
        # TODO: overlap the per-source copies once the VM exposes async transfers.
        return [self._to_server(ts) for ts in sources]

    def _to_server(self, ts: TensorSource) -> Data:
        device = self._resolve_device(ts.device)
        if not ts.shape.is_array:
            raise ClientError(f"Only array shapes can be transferred, got {ts.shape}", {"device": ts.device})
        try:
            dtype = ts.shape.dtype
        except ValueError as e:
            raise UnsupportedTypeError(ts.shape.element_type or "<none>", operation="transfer_to_server") from e
        nbytes = ts.shape.element_count * dtype.itemsize

        staging = np.empty(nbytes, dtype=np.uint8)
        ts.populate_fn(ts, memoryview(staging), nbytes)
        tv_cpu = TensorValue(staging.view(dtype.numpy).reshape(ts.shape.dimensions), CPU0)
        tv = tv_cpu.copy_to(device)
        logger.debug(f"Transferred {nbytes} bytes ({ts.shape}) to {device.name}")
        return Data(ts.device, ts.shape, tv)

    def transfer_from_server(self, handles: Sequence[Data]) -> list[Literal]:
        return [self._from_server(h) for h in handles]

    def _from_server(self, handle: Data) -> Literal:
        value = handle.handle
        if value is None:
            raise ClientError("Cannot read back a placeholder without a value", {"device": handle.device})
        if not isinstance(value, TensorValue):
            raise ClientError(f"Only tensors can be read back, got a {type_key(value)} value")

        shape = Shape.array(from_numpy(value.dtype).primitive, value.shape)
        literal = Literal(shape, np.empty(value.shape, dtype=value.dtype))
        if not value.device.is_cpu:
            value = value.copy_to(CPU0)
        populate_rn(literal, np.asarray(value.data, order="C").reshape(-1).view(np.uint8))
        return literal
