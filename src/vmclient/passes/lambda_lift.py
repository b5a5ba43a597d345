from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from vmclient.ir import (
    Call,
    Expr,
    ExprMutator,
    Function,
    IRModule,
    IRValidationError,
    Var,
    free_vars,
    substitute,
    var_type,
)

from .base import ModulePass


class _Lifter(ExprMutator):
    def __init__(self, mod: IRModule, owner: str, top: Function) -> None:
        super().__init__()
        self.mod = mod
        self.owner = owner
        self.top = top

    def visit_function(self, func: Function) -> Expr:
        lowered = super().visit_function(func)
        if func is self.top:
            return lowered
        assert isinstance(lowered, Function)

        captured = free_vars(lowered)
        params: list[Var] = []
        for v in captured:
            ty = var_type(v)
            if ty is None:
                raise IRValidationError(f"Captured variable %{v.name} has no type; run InferType first")
            p = Var(v.name, ty)
            params.append(p)
        inner = substitute(lowered, dict(zip(captured, params)))
        assert isinstance(inner, Function)

        name = self.mod.fresh_global_name(f"{self.owner}_closure")
        gvar = self.mod.add(name, Function(params, inner, attrs={"Closure": 1}))
        return Call(gvar, list(captured))


@dataclass(slots=True)
class LambdaLift(ModulePass):
    """Lift every nested function to a module-level closure global.

    A nested ``fn (y) { x + y }`` that captures ``x`` becomes

        @main_closure1(x) [Closure] = fn (y) { x + y }

    and the nested site becomes ``@main_closure1(%x)``, which builds the
    closure. Lifted globals always take the captured variables as their
    parameters, even when there are none.
    """

    name: ClassVar[str] = "LambdaLift"

    def run(self, mod: IRModule) -> IRModule:
        out = mod.copy()
        for name, func in list(mod.functions.items()):
            if func.is_closure:
                continue
            lifted = _Lifter(out, name, func).visit(func)
            assert isinstance(lifted, Function)
            if free_vars(lifted):
                raise IRValidationError(f"Global function @{name} has free variables")
            out.functions[name] = lifted
        return out
