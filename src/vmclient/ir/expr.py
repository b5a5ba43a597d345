"""Expression nodes of the traced-graph IR.

Nodes compare and hash by identity: two `Var`s with the same name are still
different variables. `checked_type` is written by the InferType pass and is
stale after any pass that rebuilds the node.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import numpy as np

from .dtypes import from_numpy
from .types import FuncType, TensorType, Type


@dataclass(eq=False, slots=True)
class Expr:
	checked_type: Type | None = field(default=None, kw_only=True, repr=False)


@dataclass(eq=False, slots=True)
class Var(Expr):
	name: str
	type_annotation: Type | None = None

	def __repr__(self) -> str:  # pragma: no cover
		return f"%{self.name}"


@dataclass(eq=False, slots=True)
class GlobalVar(Expr):
	name: str

	def __repr__(self) -> str:  # pragma: no cover
		return f"@{self.name}"


@dataclass(eq=False, slots=True)
class Constant(Expr):
	data: np.ndarray
	device: str | None = None

	@property
	def tensor_type(self) -> TensorType:
		return TensorType(tuple(int(d) for d in self.data.shape), from_numpy(self.data.dtype))


@dataclass(eq=False, slots=True)
class Op(Expr):
	"""Reference to a registered primitive operator (see `ir.op`)."""

	name: str

	def __repr__(self) -> str:  # pragma: no cover
		return self.name


@dataclass(eq=False, slots=True)
class Call(Expr):
	fn: Expr
	args: list[Expr]
	attrs: dict[str, Any] = field(default_factory=dict)


@dataclass(eq=False, slots=True)
class Tuple(Expr):
	fields: list[Expr]


@dataclass(eq=False, slots=True)
class TupleGetItem(Expr):
	tuple_value: Expr
	index: int


@dataclass(eq=False, slots=True)
class Let(Expr):
	var: Var
	value: Expr
	body: Expr


@dataclass(eq=False, slots=True)
class Function(Expr):
	params: list[Var]
	body: Expr
	ret_type: Type | None = None
	attrs: dict[str, Any] = field(default_factory=dict)

	@property
	def is_closure(self) -> bool:
		"""True for a lifted function whose params are captured variables."""
		return bool(self.attrs.get("Closure"))

	@property
	def func_type(self) -> FuncType | None:
		if isinstance(self.checked_type, FuncType):
			return self.checked_type
		return None


def var_type(var: Var) -> Type | None:
	"""Declared type of a variable, falling back to the inferred one."""
	return var.type_annotation if var.type_annotation is not None else var.checked_type


def const(value: Any, dtype: Any = None) -> Constant:
	return Constant(np.asarray(value, dtype=dtype))
