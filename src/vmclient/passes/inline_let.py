from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from vmclient.ir import (
    Constant,
    Expr,
    ExprMutator,
    Function,
    GlobalVar,
    IRModule,
    Let,
    Tuple,
    TupleGetItem,
    Var,
    substitute,
)

from .base import FunctionPass

_ATOMIC = (Var, GlobalVar, Constant)


class _Inliner(ExprMutator):
    def __init__(self) -> None:
        super().__init__()
        self.tuples: dict[Var, Tuple] = {}

    def visit_let(self, let: Let) -> Expr:
        value = self.visit(let.value)
        if isinstance(value, _ATOMIC):
            return self.visit(substitute(let.body, {let.var: value}))
        if isinstance(value, Tuple):
            self.tuples[let.var] = value
        body = self.visit(let.body)
        if value is let.value and body is let.body:
            return let
        return Let(let.var, value, body)

    def visit_tuplegetitem(self, item: TupleGetItem) -> Expr:
        value = self.visit(item.tuple_value)
        tup = self.tuples.get(value) if isinstance(value, Var) else value
        if isinstance(tup, Tuple):
            field = tup.fields[item.index]
            if isinstance(field, _ATOMIC) or tup is value:
                return field
        if value is item.tuple_value:
            return item
        return TupleGetItem(value, item.index)


@dataclass(slots=True)
class InlineLet(FunctionPass):
    """Inline let-bound aliases and project fields out of let-bound tuples."""

    name: ClassVar[str] = "InlineLet"

    def run_on_function(self, mod: IRModule, name: str, func: Function) -> Function:
        out = _Inliner().visit(func)
        assert isinstance(out, Function)
        return out
