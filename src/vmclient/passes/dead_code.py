from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from vmclient.ir import Expr, ExprMutator, Function, IRModule, Let, free_vars

from .base import FunctionPass


class _Eliminator(ExprMutator):
    def visit_let(self, let: Let) -> Expr:
        body = self.visit(let.body)
        # Every operator is pure, so an unused binding can always go.
        if let.var not in free_vars(body):
            return body
        value = self.visit(let.value)
        if value is let.value and body is let.body:
            return let
        return Let(let.var, value, body)


@dataclass(slots=True)
class DeadCodeElimination(FunctionPass):
    """Remove let bindings whose variable is never used."""

    name: ClassVar[str] = "DeadCodeElimination"

    def run_on_function(self, mod: IRModule, name: str, func: Function) -> Function:
        out = _Eliminator().visit(func)
        assert isinstance(out, Function)
        return out
