from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from vmclient.ir import (
    Call,
    Expr,
    ExprMutator,
    ExprVisitor,
    Function,
    GlobalVar,
    IRModule,
    Let,
    Var,
    substitute,
    var_type,
)

from .base import ModulePass


class _UseCounter(ExprVisitor):
    """Count how often `target` is used, and how often as a callee."""

    def __init__(self, target: Var) -> None:
        super().__init__()
        self.target = target
        self.total = 0
        self.as_callee = 0

    def visit(self, expr: Expr) -> None:
        if expr is self.target:
            self.total += 1
            return
        super().visit(expr)

    def visit_call(self, call: Call) -> None:
        if call.fn is self.target:
            self.as_callee += 1
        super().visit_call(call)


class _Eliminator(ExprMutator):
    def __init__(self, mod: IRModule, flat: dict[str, GlobalVar]) -> None:
        super().__init__()
        self.mod = mod
        self.flat = flat
        self.rewrites: dict[Var, tuple[GlobalVar, list[Expr]]] = {}

    def _flatten(self, gvar: GlobalVar) -> GlobalVar:
        if gvar.name in self.flat:
            return self.flat[gvar.name]
        lifted = self.mod.lookup(gvar)
        inner = lifted.body
        assert isinstance(inner, Function)
        params = [Var(p.name, var_type(p)) for p in lifted.params + inner.params]
        mapping = dict(zip(lifted.params + inner.params, params))
        body = substitute(inner.body, mapping, fresh=True)
        attrs = {k: v for k, v in inner.attrs.items() if k != "Closure"}
        flat = self.mod.add(self.mod.fresh_global_name(f"{gvar.name}_flat"), Function(params, body, inner.ret_type, attrs))
        self.flat[gvar.name] = flat
        return flat

    def visit_let(self, let: Let) -> Expr:
        value = let.value
        if isinstance(value, Call) and isinstance(value.fn, GlobalVar):
            lifted = self.mod.lookup(value.fn)
            if lifted.is_closure and isinstance(lifted.body, Function):
                counter = _UseCounter(let.var)
                counter.visit(let.body)
                if counter.total > 0 and counter.total == counter.as_callee:
                    self.rewrites[let.var] = (self._flatten(value.fn), list(value.args))
        return super().visit_let(let)

    def visit_call(self, call: Call) -> Expr:
        args = [self.visit(a) for a in call.args]
        if isinstance(call.fn, Var) and call.fn in self.rewrites:
            flat, captured = self.rewrites[call.fn]
            return Call(flat, [self.visit(c) for c in captured] + args, dict(call.attrs))
        fn = self.visit(call.fn)
        if fn is call.fn and all(n is o for n, o in zip(args, call.args)):
            return call
        return Call(fn, args, dict(call.attrs))


@dataclass(slots=True)
class EliminateClosure(ModulePass):
    """Turn let-bound closures that never escape into direct calls.

    ``let %f = @g(%x); %f(%a)`` becomes ``@g_flat1(%x, %a)`` where the flat
    global takes the captured variables followed by the call arguments. The
    now unused binding is left for dead code elimination.
    """

    name: ClassVar[str] = "EliminateClosure"

    def run(self, mod: IRModule) -> IRModule:
        out = mod.copy()
        flat: dict[str, GlobalVar] = {}
        for name, func in list(mod.functions.items()):
            rewritten = _Eliminator(out, flat).visit(func)
            assert isinstance(rewritten, Function)
            out.functions[name] = rewritten
        return out
