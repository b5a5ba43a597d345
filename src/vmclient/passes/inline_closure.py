from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from vmclient.ir import (
    Call,
    Expr,
    ExprMutator,
    Function,
    GlobalVar,
    IRModule,
    Let,
    Var,
    substitute,
    var_type,
)

from .base import FunctionPass


def bind_params(params: list[Var], args: list[Expr], body: Expr) -> Expr:
    """Inline `body` with `params` bound to `args` through fresh let bindings."""
    fresh = [Var(p.name, var_type(p)) for p in params]
    out = substitute(body, dict(zip(params, fresh)), fresh=True)
    for var, arg in reversed(list(zip(fresh, args))):
        out = Let(var, arg, out)
    return out


class _Inliner(ExprMutator):
    def __init__(self, mod: IRModule) -> None:
        super().__init__()
        self.mod = mod
        self.inlined = 0

    def visit_call(self, call: Call) -> Expr:
        call = super().visit_call(call)  # type: ignore[assignment]
        maker = call.fn
        if not (isinstance(maker, Call) and isinstance(maker.fn, GlobalVar)):
            return call
        lifted = self.mod.lookup(maker.fn)
        if not lifted.is_closure or not isinstance(lifted.body, Function):
            return call
        inner = lifted.body
        body = bind_params(inner.params, call.args, inner.body)
        body = bind_params(lifted.params, maker.args, body)
        self.inlined += 1
        return self.visit(body)


@dataclass(slots=True)
class InlineClosure(FunctionPass):
    """Inline a closure that is built and immediately invoked.

    ``@f_closure1(%x)(%a)`` becomes the closure body with the captured
    parameter bound to ``%x`` and the call parameter bound to ``%a``.
    """

    name: ClassVar[str] = "InlineClosure"

    def run_on_function(self, mod: IRModule, name: str, func: Function) -> Function:
        out = _Inliner(mod).visit(func)
        assert isinstance(out, Function)
        return out
