"""Register-machine instructions and the compiled executable."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import numpy as np

from .device import Device


@dataclass(slots=True)
class Instruction:
    dst: int


@dataclass(slots=True)
class LoadConst(Instruction):
    const_index: int

    def __repr__(self) -> str:
        return f"r{self.dst} = CONST[{self.const_index}]"


@dataclass(slots=True)
class InvokePacked(Instruction):
    op: str
    args: tuple[int, ...]
    attrs: dict[str, Any] = field(default_factory=dict)

    def __repr__(self) -> str:
        return f"r{self.dst} = {self.op}({_regs(self.args)})"


@dataclass(slots=True)
class AllocTuple(Instruction):
    fields: tuple[int, ...]

    def __repr__(self) -> str:
        return f"r{self.dst} = TUPLE({_regs(self.fields)})"


@dataclass(slots=True)
class GetField(Instruction):
    src: int
    index: int

    def __repr__(self) -> str:
        return f"r{self.dst} = r{self.src}.{self.index}"


@dataclass(slots=True)
class AllocClosure(Instruction):
    func_index: int
    free_vars: tuple[int, ...]

    def __repr__(self) -> str:
        return f"r{self.dst} = CLOSURE #{self.func_index} [{_regs(self.free_vars)}]"


@dataclass(slots=True)
class Invoke(Instruction):
    func_index: int
    args: tuple[int, ...]

    def __repr__(self) -> str:
        return f"r{self.dst} = CALL #{self.func_index}({_regs(self.args)})"


@dataclass(slots=True)
class InvokeClosure(Instruction):
    closure: int
    args: tuple[int, ...]

    def __repr__(self) -> str:
        return f"r{self.dst} = CALL r{self.closure}({_regs(self.args)})"


@dataclass(slots=True)
class Ret:
    src: int

    def __repr__(self) -> str:
        return f"RET r{self.src}"


def _regs(regs: tuple[int, ...]) -> str:
    return ", ".join(f"r{r}" for r in regs)


@dataclass(slots=True)
class VMFunction:
    """A lowered function.

    For a lifted closure, the first `num_free_vars` parameters are the
    captured values and the rest are the call arguments.
    """

    name: str
    params: list[str]
    instructions: list[Instruction | Ret]
    register_count: int
    num_free_vars: int = 0

    @property
    def arity(self) -> int:
        return len(self.params) - self.num_free_vars


@dataclass(slots=True)
class Executable:
    """Compiled artifact for one module on one device.

    Attributes:
        functions: Lowered functions, indexed by function index.
        global_map: Global name -> function index.
        constants: Host copies of every constant, indexed by LoadConst.
        device: Device the executable was lowered for.
    """

    functions: list[VMFunction]
    global_map: dict[str, int]
    constants: list[np.ndarray]
    device: Device

    def get_function(self, name: str) -> VMFunction:
        return self.functions[self.global_map[name]]

    def function_name(self, func_index: int) -> str | None:
        for name, index in self.global_map.items():
            if index == func_index:
                return name
        return None

    def summary(self) -> str:
        lines = [f"Executable(device={self.device.name}, functions={len(self.functions)})"]
        for i, fn in enumerate(self.functions):
            lines.append(f"#{i} {fn.name}({', '.join(fn.params)}):")
            lines.extend(f"  {inst!r}" for inst in fn.instructions)
        return "\n".join(lines)
