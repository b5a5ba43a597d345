"""Host/device data descriptions exchanged with the front-end."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

import numpy as np

from vmclient.ir import dtypes
from vmclient.ir.types import FuncType, TensorType, TupleType, Type
from vmclient.vm.values import RuntimeValue


@dataclass(frozen=True, slots=True)
class Shape:
    """Front-end shape: an array (element type + dims), a tuple, or unknown.

    ``Shape()`` is the unknown shape used for values whose shape cannot be
    derived statically.
    """

    element_type: str | None = None
    dimensions: tuple[int, ...] = ()
    tuple_shapes: tuple[Shape, ...] | None = None

    @classmethod
    def array(cls, element_type: str, dimensions: tuple[int, ...] | list[int]) -> Shape:
        return cls(element_type, tuple(int(d) for d in dimensions))

    @classmethod
    def make_tuple(cls, shapes: list[Shape]) -> Shape:
        return cls(tuple_shapes=tuple(shapes))

    @classmethod
    def from_type(cls, ty: Type | None) -> Shape:
        """Shape of a static IR type. A function maps to its result shape."""
        if isinstance(ty, TensorType):
            return cls.array(ty.dtype.primitive, ty.shape)
        if isinstance(ty, TupleType):
            return cls.make_tuple([cls.from_type(f) for f in ty.fields])
        if isinstance(ty, FuncType):
            return cls.from_type(ty.ret_type)
        return cls()

    @property
    def is_array(self) -> bool:
        return self.element_type is not None

    @property
    def is_tuple(self) -> bool:
        return self.tuple_shapes is not None

    @property
    def is_unknown(self) -> bool:
        return not self.is_array and not self.is_tuple

    @property
    def rank(self) -> int:
        return len(self.dimensions)

    @property
    def element_count(self) -> int:
        n = 1
        for dim in self.dimensions:
            n *= dim
        return n

    @property
    def dtype(self) -> dtypes.DType:
        if self.element_type is None:
            raise ValueError("Only array shapes have an element type")
        return dtypes.from_primitive(self.element_type)

    def __str__(self) -> str:  # pragma: no cover
        if self.is_tuple:
            return "(" + ", ".join(str(s) for s in self.tuple_shapes) + ")"
        if self.is_array:
            return f"{self.element_type}[{','.join(str(d) for d in self.dimensions)}]"
        return "<unknown>"


@dataclass(eq=False)
class Data:
    """Shared handle to a device-resident runtime value.

    A placeholder starts without a value and is filled with `assign`. The
    device is fixed at creation.
    """

    device: str
    shape: Shape
    handle: RuntimeValue | None = None

    def has_value(self) -> bool:
        return self.handle is not None

    def assign(self, other: Data) -> None:
        if other is not self:
            self.handle = other.handle


PopulateFn = Callable[["TensorSource", memoryview, int], None]


@dataclass(slots=True)
class TensorSource:
    """Host-side input: target device, shape, and a callback that writes the
    raw element bytes into a buffer of the given length."""

    shape: Shape
    device: str
    populate_fn: PopulateFn

    @classmethod
    def from_array(cls, array: np.ndarray, device: str) -> TensorSource:
        host = np.asarray(array, order="C")
        shape = Shape.array(dtypes.from_numpy(host.dtype).primitive, host.shape)

        def populate(source: TensorSource, buffer: memoryview, nbytes: int) -> None:
            raw = host.reshape(-1).view(np.uint8)
            if raw.nbytes != nbytes:
                raise ValueError(f"Staging buffer holds {nbytes} bytes, source has {raw.nbytes}")
            buffer[:nbytes] = raw.tobytes()

        return cls(shape, device, populate)


@dataclass(slots=True)
class Literal:
    """Host-resident readback result owned by the caller."""

    shape: Shape
    data: np.ndarray = field(repr=False)

    def to_numpy(self) -> np.ndarray:
        return self.data
