from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from vmclient.ir import (
    Call,
    Constant,
    Expr,
    Function,
    GlobalVar,
    IRModule,
    IRValidationError,
    Let,
    Op,
    Tuple,
    TupleGetItem,
    Var,
    get_op_def,
    var_type,
)
from vmclient.ir.types import FuncType, TupleType, Type

from .base import ModulePass


class TypeInferenceError(IRValidationError):
    pass


@dataclass(slots=True)
class InferType(ModulePass):
    """Annotate every expression in the module with its `checked_type`.

    Globals are typed on demand, so a function may call a global that appears
    later in the module. Recursive globals are rejected.
    """

    name: ClassVar[str] = "InferType"

    def run(self, mod: IRModule) -> IRModule:
        _Inferencer(mod).run()
        return mod


class _Inferencer:
    def __init__(self, mod: IRModule) -> None:
        self.mod = mod
        self.global_types: dict[str, FuncType] = {}
        self.in_progress: set[str] = set()

    def run(self) -> None:
        for name in self.mod.functions:
            self.global_type(name)

    def global_type(self, name: str) -> FuncType:
        if name in self.global_types:
            return self.global_types[name]
        if name in self.in_progress:
            raise TypeInferenceError(f"Recursive global function @{name} is not supported")
        self.in_progress.add(name)
        ty = self.infer(self.mod.lookup(name))
        self.in_progress.discard(name)
        assert isinstance(ty, FuncType)
        self.global_types[name] = ty
        return ty

    def infer(self, expr: Expr) -> Type:
        ty = self._infer(expr)
        expr.checked_type = ty
        return ty

    def _infer(self, expr: Expr) -> Type:
        if isinstance(expr, Var):
            ty = var_type(expr)
            if ty is None:
                raise TypeInferenceError(f"Variable %{expr.name} has no type (unbound or unannotated)")
            return ty

        if isinstance(expr, Constant):
            return expr.tensor_type

        if isinstance(expr, GlobalVar):
            return self.global_type(expr.name)

        if isinstance(expr, Op):
            raise TypeInferenceError(f"Operator {expr.name} can only appear in call position")

        if isinstance(expr, Call):
            arg_types = [self.infer(a) for a in expr.args]
            if isinstance(expr.fn, Op):
                return get_op_def(expr.fn.name).infer_type(arg_types, expr.attrs)
            fn_type = self.infer(expr.fn)
            if not isinstance(fn_type, FuncType):
                raise TypeInferenceError(f"Cannot call a value of type {fn_type}")
            if len(fn_type.arg_types) != len(arg_types):
                raise TypeInferenceError(
                    f"Call expects {len(fn_type.arg_types)} argument(s), got {len(arg_types)}"
                )
            for i, (want, got) in enumerate(zip(fn_type.arg_types, arg_types)):
                if want != got:
                    raise TypeInferenceError(f"Argument {i} type mismatch: expected {want}, got {got}")
            return fn_type.ret_type

        if isinstance(expr, Tuple):
            return TupleType(tuple(self.infer(f) for f in expr.fields))

        if isinstance(expr, TupleGetItem):
            tup = self.infer(expr.tuple_value)
            if not isinstance(tup, TupleType):
                raise TypeInferenceError(f"TupleGetItem expects a tuple, got {tup}")
            if not 0 <= expr.index < len(tup.fields):
                raise TypeInferenceError(f"Tuple index {expr.index} out of range for {len(tup.fields)} field(s)")
            return tup.fields[expr.index]

        if isinstance(expr, Let):
            value_type = self.infer(expr.value)
            annotated = expr.var.type_annotation
            if annotated is not None and annotated != value_type:
                raise TypeInferenceError(
                    f"Let binding %{expr.var.name} annotated {annotated} but bound to {value_type}"
                )
            expr.var.checked_type = value_type
            return self.infer(expr.body)

        if isinstance(expr, Function):
            arg_types = []
            for p in expr.params:
                if p.type_annotation is None and p.checked_type is None:
                    raise TypeInferenceError(f"Function parameter %{p.name} needs a type annotation")
                arg_types.append(self.infer(p))
            ret = self.infer(expr.body)
            if expr.ret_type is not None and expr.ret_type != ret:
                raise TypeInferenceError(f"Function declared to return {expr.ret_type} but body has type {ret}")
            return FuncType(tuple(arg_types), ret)

        raise TypeInferenceError(f"Unknown expression kind {type(expr).__name__}")
