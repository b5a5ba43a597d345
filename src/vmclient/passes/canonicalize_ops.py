from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, ClassVar

from vmclient.ir import Call, Expr, ExprMutator, Function, IRModule, IRValidationError, Op, get_op, is_canonical
from vmclient.ir.types import TensorType

from .base import FunctionPass


def _bias_add(orig: Call, call: Call) -> Expr:
    x, bias = call.args
    x_type = orig.args[0].checked_type
    if not isinstance(x_type, TensorType):
        raise IRValidationError("bias_add input must be typed before canonicalization")
    rank = len(x_type.shape)
    axis = int(call.attrs.get("axis", 1)) % rank
    num_newaxis = rank - axis - 1
    if num_newaxis > 0:
        bias = Call(get_op("expand_dims"), [bias], {"axis": 1, "num_newaxis": num_newaxis})
    return Call(get_op("add"), [x, bias])


# Non-canonical operator -> rewrite(original call, call with visited args).
REWRITES: dict[str, Callable[[Call, Call], Expr]] = {
    "bias_add": _bias_add,
}


class _Canonicalizer(ExprMutator):
    def visit_call(self, call: Call) -> Expr:
        new = super().visit_call(call)
        if not isinstance(new, Call) or not isinstance(new.fn, Op) or is_canonical(new.fn.name):
            return new
        rewrite = REWRITES.get(new.fn.name)
        if rewrite is None:
            raise IRValidationError(f"No canonical form registered for operator {new.fn.name}")
        return rewrite(call, new)


@dataclass(slots=True)
class CanonicalizeOps(FunctionPass):
    """Rewrite non-canonical operators into canonical ones.

    ``bias_add(x, b, axis)`` becomes ``add(x, expand_dims(b, 1, rank-axis-1))``
    so the bias broadcasts along `axis`.
    """

    name: ClassVar[str] = "CanonicalizeOps"

    def run_on_function(self, mod: IRModule, name: str, func: Function) -> Function:
        out = _Canonicalizer().visit(func)
        if not isinstance(out, Function):
            raise IRValidationError(f"Canonicalizing @{name} did not produce a function")
        return out
