"""Runtime values produced and consumed by the VM.

A runtime value is exactly one of:

- `TensorValue`: a device-resident array.
- `TupleValue`: an ordered sequence of runtime values.
- `ClosureValue`: a closure with its captured environment resolved against
  the module that defined it.
- `VMClosureValue`: the VM's own closure, which only knows a function index
  and the captured values in parameter order.

Consumers dispatch over the variant with ``match`` and treat anything else as
an error.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar, Union

import numpy as np

from .device import CPU0, Device

if TYPE_CHECKING:
    from vmclient.ir import GlobalVar, IRModule, Var


@dataclass(eq=False, slots=True)
class TensorValue:
    kind: ClassVar[str] = "tensor"

    data: np.ndarray
    device: Device = CPU0

    @property
    def shape(self) -> tuple[int, ...]:
        return tuple(int(d) for d in self.data.shape)

    @property
    def dtype(self) -> np.dtype:
        return self.data.dtype

    @property
    def nbytes(self) -> int:
        return int(self.data.nbytes)

    def copy_to(self, device: Device) -> TensorValue:
        """Copy into a fresh buffer owned by `device`."""
        return TensorValue(np.array(self.data, copy=True, order="C"), device)


@dataclass(eq=False, slots=True)
class TupleValue:
    kind: ClassVar[str] = "tuple"

    fields: list[RuntimeValue] = field(default_factory=list)


@dataclass(eq=False, slots=True)
class ClosureValue:
    kind: ClassVar[str] = "closure"

    env: dict[Var, RuntimeValue]
    mod: IRModule
    gvar: GlobalVar


@dataclass(eq=False, slots=True)
class VMClosureValue:
    kind: ClassVar[str] = "vm_closure"

    func_index: int
    free_vars: list[RuntimeValue] = field(default_factory=list)


RuntimeValue = Union[TensorValue, TupleValue, ClosureValue, VMClosureValue]


def type_key(value: object) -> str:
    return getattr(value, "kind", type(value).__name__)
