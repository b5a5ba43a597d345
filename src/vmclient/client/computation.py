from __future__ import annotations

import weakref
from dataclasses import dataclass, field

from vmclient.ir import Function, IRModule, IRValidationError
from vmclient.passes import InferType
from vmclient.vm.bytecode import Executable

from .data import Shape


@dataclass(frozen=True, slots=True)
class ProgramShape:
    parameters: tuple[Shape, ...]
    result: Shape


@dataclass(eq=False)
class GenericComputation:
    """A traced function as handed over by the front-end.

    Attributes:
        computation: The traced function. Its parameters carry type annotations.
    """

    computation: Function

    def get_program_shape(self) -> ProgramShape:
        mod = InferType().run(IRModule.from_expr(self.computation))
        func_type = mod.lookup("main").func_type
        if func_type is None:
            raise IRValidationError("Traced computation did not infer to a function type")
        return ProgramShape(
            parameters=tuple(Shape.from_type(t) for t in func_type.arg_types),
            result=Shape.from_type(func_type.ret_type),
        )


@dataclass
class CompileInstance:
    """One traced computation to compile.

    `compilation_device` names the device to lower for; empty means the
    client default.
    """

    computation: GenericComputation
    compilation_device: str = ""
    devices: list[str] = field(default_factory=list)


@dataclass(eq=False)
class Computation:
    """A compiled unit.

    `executable` is None for the identity shortcut, which must run with
    exactly one argument and never touches the VM.
    """

    computation: GenericComputation
    program_shape: ProgramShape
    devices: list[str]
    executable: Executable | None = None

    @property
    def is_identity(self) -> bool:
        return self.executable is None


class LoweredModuleTable:
    """Computation -> fully lowered module, kept for closure resolution.

    Entries die with their Computation; `release` evicts one early.
    """

    def __init__(self) -> None:
        self._modules: weakref.WeakKeyDictionary[Computation, IRModule] = weakref.WeakKeyDictionary()

    def record(self, computation: Computation, mod: IRModule) -> None:
        self._modules[computation] = mod

    def lookup(self, computation: Computation) -> IRModule | None:
        return self._modules.get(computation)

    def release(self, computation: Computation) -> bool:
        return self._modules.pop(computation, None) is not None

    def __contains__(self, computation: Computation) -> bool:
        return computation in self._modules

    def __len__(self) -> int:
        return len(self._modules)
