import numpy as np
import pytest

from vmclient.ir import (
	Call,
	Function,
	IRModule,
	IRValidationError,
	Let,
	TensorType,
	Tuple,
	TupleGetItem,
	Var,
	const,
	dtypes,
	free_vars,
	get_op,
	substitute,
)
from vmclient.ir.types import FuncType, TupleType
from vmclient.passes import InferType, TypeInferenceError

F32_2x2 = TensorType((2, 2), dtypes.float32)


def _typed(func: Function) -> Function:
	mod = InferType().run(IRModule.from_expr(func))
	return mod.lookup("main")


def test_matmul_shape_inference() -> None:
	a = Var("a", TensorType((128, 64), dtypes.float32))
	b = Var("b", TensorType((64, 32), dtypes.float32))
	body = Call(get_op("matmul"), [a, b])
	_typed(Function([a, b], body))
	assert body.checked_type == TensorType((128, 32), dtypes.float32)


def test_add_broadcasts_and_relu_keeps_type() -> None:
	x = Var("x", TensorType((4, 3), dtypes.float32))
	y = Var("y", TensorType((3,), dtypes.float32))
	z = Call(get_op("add"), [x, y])
	r = Call(get_op("relu"), [z])
	_typed(Function([x, y], r))
	assert z.checked_type == TensorType((4, 3), dtypes.float32)
	assert r.checked_type == z.checked_type


def test_dtype_mismatch_is_rejected() -> None:
	x = Var("x", TensorType((2,), dtypes.float32))
	y = Var("y", TensorType((2,), dtypes.int32))
	with pytest.raises(IRValidationError):
		_typed(Function([x, y], Call(get_op("add"), [x, y])))


def test_unannotated_param_is_rejected() -> None:
	x = Var("x")
	with pytest.raises(TypeInferenceError):
		_typed(Function([x], Call(get_op("relu"), [x])))


def test_unknown_operator() -> None:
	with pytest.raises(IRValidationError):
		get_op("conv9d")


def test_let_tuple_and_closure_types() -> None:
	x = Var("x", F32_2x2)
	y = Var("y", F32_2x2)
	t = Var("t")
	inner = Function([y], Call(get_op("multiply"), [x, y]))
	body = Let(t, Tuple([x, inner]), TupleGetItem(t, 1))
	func = _typed(Function([x], body))

	closure_type = FuncType((F32_2x2,), F32_2x2)
	assert t.checked_type == TupleType((F32_2x2, closure_type))
	assert func.checked_type == FuncType((F32_2x2,), closure_type)


def test_constant_type() -> None:
	c = const(np.zeros((3, 1)), dtype=np.int64)
	assert c.tensor_type == TensorType((3, 1), dtypes.int64)


def test_free_vars_in_first_use_order() -> None:
	x = Var("x", F32_2x2)
	y = Var("y", F32_2x2)
	z = Var("z", F32_2x2)
	fn = Function([z], Call(get_op("add"), [Call(get_op("add"), [y, z]), x]))
	assert free_vars(fn) == [y, x]


def test_substitute_fresh_renames_binders() -> None:
	x = Var("x", F32_2x2)
	v = Var("v")
	body = Let(v, Call(get_op("negative"), [x]), v)
	a = Var("a", F32_2x2)

	out = substitute(body, {x: a}, fresh=True)
	assert isinstance(out, Let)
	assert out.var is not v
	assert out.body is out.var
	assert out.value.args == [a]


def test_entry_only_keeps_reachable_globals() -> None:
	x = Var("x", F32_2x2)
	mod = IRModule()
	helper = mod.add("helper", Function([Var("h", F32_2x2)], const(np.ones((2, 2), np.float32))))
	mod.add("unused", Function([Var("u", F32_2x2)], const(np.ones((2, 2), np.float32))))
	mod.add("main", Function([x], Call(helper, [x])))

	reduced = mod.entry_only("main")
	assert list(reduced.functions) == ["helper", "main"]
	assert reduced.get_global_var("helper") is helper
	assert "unused" not in reduced


def test_module_lookup_missing() -> None:
	with pytest.raises(IRValidationError):
		IRModule().lookup("main")
