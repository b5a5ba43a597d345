from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from vmclient.ir import Constant, Expr, ExprMutator, Function, IRModule

from .base import FunctionPass


class _Stamp(ExprMutator):
    def __init__(self, kind: str) -> None:
        super().__init__()
        self.kind = kind

    def visit_constant(self, c: Constant) -> Expr:
        if c.device == self.kind:
            return c
        return Constant(c.data, self.kind)

    def visit_function(self, func: Function) -> Expr:
        body = self.visit(func.body)
        attrs = dict(func.attrs)
        attrs["device"] = self.kind
        return Function(list(func.params), body, func.ret_type, attrs)


@dataclass(slots=True)
class AssignDevice(FunctionPass):
    """Stamp the target device kind on every function and constant."""

    name: ClassVar[str] = "AssignDevice"

    device_kind: str = "CPU"

    def run_on_function(self, mod: IRModule, name: str, func: Function) -> Function:
        out = _Stamp(self.device_kind).visit(func)
        assert isinstance(out, Function)
        return out
