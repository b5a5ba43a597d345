from . import dtypes
from .dtypes import DType, float32
from .expr import (
	Call,
	Constant,
	Expr,
	Function,
	GlobalVar,
	Let,
	Op,
	Tuple,
	TupleGetItem,
	Var,
	const,
	var_type,
)
from .module import IRModule
from .op import IRValidationError, get_op, get_op_def, is_canonical
from .types import FuncType, TensorType, TupleType, Type
from .visitor import ExprMutator, ExprVisitor, free_vars, substitute

__all__ = [
	"dtypes",
	"DType",
	"float32",
	"Expr",
	"Var",
	"GlobalVar",
	"Constant",
	"Op",
	"Call",
	"Tuple",
	"TupleGetItem",
	"Let",
	"Function",
	"const",
	"var_type",
	"IRModule",
	"IRValidationError",
	"get_op",
	"get_op_def",
	"is_canonical",
	"TensorType",
	"TupleType",
	"FuncType",
	"Type",
	"ExprVisitor",
	"ExprMutator",
	"free_vars",
	"substitute",
]
