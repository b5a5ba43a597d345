from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar

import numpy as np

from .dtypes import bool_, from_numpy
from .expr import Op
from .types import TensorType, Type


class IRValidationError(ValueError):
	pass


def _tensor_args(name: str, arg_types: list[Type], count: int) -> list[TensorType]:
	if len(arg_types) != count:
		raise IRValidationError(f"{name} expects exactly {count} input(s), got {len(arg_types)}")
	for t in arg_types:
		if not isinstance(t, TensorType):
			raise IRValidationError(f"{name} expects tensor inputs, got {t}")
	return list(arg_types)  # type: ignore[arg-type]


@dataclass(frozen=True, slots=True)
class OpDef:
	"""Base class for primitive operators.

	An operator knows how to type itself from its argument types and how to
	compute itself on host arrays. Kernels never see devices; the VM moves
	data before and after.
	"""

	name: str

	def infer_type(self, arg_types: list[Type], attrs: dict[str, Any]) -> Type:
		raise NotImplementedError

	def compute(self, args: list[np.ndarray], attrs: dict[str, Any]) -> np.ndarray:
		raise NotImplementedError


@dataclass(frozen=True, slots=True)
class ElementwiseBinary(OpDef):
	"""Binary elementwise op with numpy broadcasting. Dtypes must match."""

	fn: Any = None

	def infer_type(self, arg_types: list[Type], attrs: dict[str, Any]) -> Type:
		a, b = _tensor_args(self.name, arg_types, 2)
		if a.dtype != b.dtype:
			raise IRValidationError(f"{self.name} dtype mismatch: {a.dtype} vs {b.dtype}")
		try:
			shape = np.broadcast_shapes(a.shape, b.shape)
		except ValueError:
			raise IRValidationError(f"{self.name} cannot broadcast {a.shape} with {b.shape}") from None
		return TensorType(tuple(shape), a.dtype)

	def compute(self, args: list[np.ndarray], attrs: dict[str, Any]) -> np.ndarray:
		a, b = args
		return np.asarray(self.fn(a, b)).astype(a.dtype, copy=False)


@dataclass(frozen=True, slots=True)
class ElementwiseUnary(OpDef):
	fn: Any = None

	def infer_type(self, arg_types: list[Type], attrs: dict[str, Any]) -> Type:
		(x,) = _tensor_args(self.name, arg_types, 1)
		return x

	def compute(self, args: list[np.ndarray], attrs: dict[str, Any]) -> np.ndarray:
		(x,) = args
		return np.asarray(self.fn(x)).astype(x.dtype, copy=False)


@dataclass(frozen=True, slots=True)
class MatMul(OpDef):
	"""Matrix multiplication: (M,K) @ (K,N) -> (M,N)."""

	def infer_type(self, arg_types: list[Type], attrs: dict[str, Any]) -> Type:
		a, b = _tensor_args(self.name, arg_types, 2)
		if len(a.shape) != 2 or len(b.shape) != 2:
			raise IRValidationError("matmul currently supports only rank-2 tensors")
		m, k1 = a.shape
		k2, n = b.shape
		if k1 != k2:
			raise IRValidationError(f"matmul K mismatch: {k1} != {k2}")
		if a.dtype != b.dtype:
			raise IRValidationError("matmul dtype mismatch")
		if a.dtype == bool_:
			raise IRValidationError("matmul does not support pred tensors")
		return TensorType((m, n), a.dtype)

	def compute(self, args: list[np.ndarray], attrs: dict[str, Any]) -> np.ndarray:
		a, b = args
		return np.matmul(a, b)


@dataclass(frozen=True, slots=True)
class ExpandDims(OpDef):
	"""Insert `num_newaxis` unit dims at `axis`."""

	def infer_type(self, arg_types: list[Type], attrs: dict[str, Any]) -> Type:
		(x,) = _tensor_args(self.name, arg_types, 1)
		axis = int(attrs.get("axis", 0))
		num = int(attrs.get("num_newaxis", 1))
		rank = len(x.shape)
		if axis < 0:
			axis += rank + 1
		if not 0 <= axis <= rank:
			raise IRValidationError(f"expand_dims axis {attrs.get('axis')} out of range for rank {rank}")
		shape = x.shape[:axis] + (1,) * num + x.shape[axis:]
		return TensorType(shape, x.dtype)

	def compute(self, args: list[np.ndarray], attrs: dict[str, Any]) -> np.ndarray:
		(x,) = args
		out_type = self.infer_type([TensorType(x.shape, from_numpy(x.dtype))], attrs)
		return x.reshape(out_type.shape)  # type: ignore[union-attr]


@dataclass(frozen=True, slots=True)
class BiasAdd(OpDef):
	"""Add a 1-D bias along `axis`. Not canonical: rewritten before lowering."""

	canonical: ClassVar[bool] = False

	def infer_type(self, arg_types: list[Type], attrs: dict[str, Any]) -> Type:
		x, b = _tensor_args(self.name, arg_types, 2)
		axis = int(attrs.get("axis", 1))
		if axis < 0:
			axis += len(x.shape)
		if not 0 <= axis < len(x.shape):
			raise IRValidationError(f"bias_add axis {attrs.get('axis')} out of range for {x.shape}")
		if len(b.shape) != 1 or b.shape[0] != x.shape[axis]:
			raise IRValidationError(f"bias_add bias shape {b.shape} does not match axis {axis} of {x.shape}")
		if x.dtype != b.dtype:
			raise IRValidationError("bias_add dtype mismatch")
		return x

	def compute(self, args: list[np.ndarray], attrs: dict[str, Any]) -> np.ndarray:
		x, b = args
		axis = int(attrs.get("axis", 1)) % x.ndim
		return x + b.reshape((-1,) + (1,) * (x.ndim - axis - 1))


_REGISTRY: dict[str, OpDef] = {}


def register_op(op_def: OpDef) -> OpDef:
	if op_def.name in _REGISTRY:
		raise IRValidationError(f"Operator {op_def.name!r} registered twice")
	_REGISTRY[op_def.name] = op_def
	return op_def


def get_op_def(name: str) -> OpDef:
	try:
		return _REGISTRY[name]
	except KeyError:
		raise IRValidationError(f"Unknown operator {name!r}") from None


def get_op(name: str) -> Op:
	"""Return an `Op` expression for a registered operator."""
	get_op_def(name)
	return Op(name)


def is_canonical(name: str) -> bool:
	"""False for operators that must be rewritten before lowering."""
	return getattr(get_op_def(name), "canonical", True)


register_op(ElementwiseBinary("add", np.add))
register_op(ElementwiseBinary("subtract", np.subtract))
register_op(ElementwiseBinary("multiply", np.multiply))
register_op(ElementwiseBinary("divide", np.divide))
register_op(ElementwiseUnary("negative", np.negative))
register_op(ElementwiseUnary("relu", lambda x: np.maximum(x, np.zeros((), dtype=x.dtype))))
register_op(ElementwiseUnary("copy", np.copy))
register_op(MatMul("matmul"))
register_op(ExpandDims("expand_dims"))
register_op(BiasAdd("bias_add"))
