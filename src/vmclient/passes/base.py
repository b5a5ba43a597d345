from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from vmclient.ir import Function, IRModule


@dataclass(slots=True)
class ModulePass:
    """A named module-to-module transformation.

    Passes return a new module and leave the input untouched, except for
    type annotations, which InferType writes in place.
    """

    name: ClassVar[str] = "ModulePass"

    def run(self, mod: IRModule) -> IRModule:
        raise NotImplementedError


@dataclass(slots=True)
class FunctionPass(ModulePass):
    """A pass applied to every global function independently."""

    def run(self, mod: IRModule) -> IRModule:
        functions = {name: self.run_on_function(mod, name, func) for name, func in mod.functions.items()}
        return mod.with_functions(functions)

    def run_on_function(self, mod: IRModule, name: str, func: Function) -> Function:
        raise NotImplementedError
