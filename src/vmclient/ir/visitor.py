"""Generic traversal helpers for the IR.

`ExprMutator` is memoized on node identity, so a shared subexpression is
rewritten once and stays shared in the result.
"""

from __future__ import annotations

from typing import Callable

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
)
from .op import IRValidationError


def _dispatch(obj: object, expr: Expr, prefix: str) -> Callable[[Expr], object]:
	method = getattr(obj, f"{prefix}{type(expr).__name__.lower()}", None)
	if method is None:
		raise IRValidationError(f"No visitor for {type(expr).__name__}")
	return method


class ExprVisitor:
	"""Read-only traversal. Visits each node once."""

	def __init__(self) -> None:
		self._seen: set[int] = set()

	def visit(self, expr: Expr) -> None:
		if id(expr) in self._seen:
			return
		self._seen.add(id(expr))
		_dispatch(self, expr, "visit_")(expr)

	def visit_var(self, var: Var) -> None:
		pass

	def visit_globalvar(self, gvar: GlobalVar) -> None:
		pass

	def visit_constant(self, c: Constant) -> None:
		pass

	def visit_op(self, op: Op) -> None:
		pass

	def visit_call(self, call: Call) -> None:
		self.visit(call.fn)
		for a in call.args:
			self.visit(a)

	def visit_tuple(self, tup: Tuple) -> None:
		for f in tup.fields:
			self.visit(f)

	def visit_tuplegetitem(self, item: TupleGetItem) -> None:
		self.visit(item.tuple_value)

	def visit_let(self, let: Let) -> None:
		self.visit(let.var)
		self.visit(let.value)
		self.visit(let.body)

	def visit_function(self, func: Function) -> None:
		for p in func.params:
			self.visit(p)
		self.visit(func.body)


class ExprMutator:
	"""Rebuilding traversal. Unchanged subtrees are returned as-is."""

	def __init__(self) -> None:
		self._memo: dict[int, Expr] = {}
		# Keep originals alive so ids in the memo are never reused.
		self._keep: list[Expr] = []

	def visit(self, expr: Expr) -> Expr:
		key = id(expr)
		if key in self._memo:
			return self._memo[key]
		out = _dispatch(self, expr, "visit_")(expr)
		self._memo[key] = out
		self._keep.append(expr)
		return out

	def visit_var(self, var: Var) -> Expr:
		return var

	def visit_globalvar(self, gvar: GlobalVar) -> Expr:
		return gvar

	def visit_constant(self, c: Constant) -> Expr:
		return c

	def visit_op(self, op: Op) -> Expr:
		return op

	def visit_call(self, call: Call) -> Expr:
		fn = self.visit(call.fn)
		args = [self.visit(a) for a in call.args]
		if fn is call.fn and all(n is o for n, o in zip(args, call.args)):
			return call
		return Call(fn, args, dict(call.attrs))

	def visit_tuple(self, tup: Tuple) -> Expr:
		fields = [self.visit(f) for f in tup.fields]
		if all(n is o for n, o in zip(fields, tup.fields)):
			return tup
		return Tuple(fields)

	def visit_tuplegetitem(self, item: TupleGetItem) -> Expr:
		value = self.visit(item.tuple_value)
		if value is item.tuple_value:
			return item
		return TupleGetItem(value, item.index)

	def visit_let(self, let: Let) -> Expr:
		var = self.visit(let.var)
		value = self.visit(let.value)
		body = self.visit(let.body)
		if var is let.var and value is let.value and body is let.body:
			return let
		if not isinstance(var, Var):
			raise IRValidationError("let binder must stay a Var")
		return Let(var, value, body)

	def visit_function(self, func: Function) -> Expr:
		params = [self.visit(p) for p in func.params]
		body = self.visit(func.body)
		if body is func.body and all(n is o for n, o in zip(params, func.params)):
			return func
		if not all(isinstance(p, Var) for p in params):
			raise IRValidationError("function params must stay Vars")
		return Function(params, body, func.ret_type, dict(func.attrs))  # type: ignore[arg-type]


class _FreeVarCollector(ExprVisitor):
	def __init__(self) -> None:
		super().__init__()
		self.bound: set[int] = set()
		self.free: list[Var] = []
		self._free_ids: set[int] = set()

	def visit_var(self, var: Var) -> None:
		if id(var) not in self.bound and id(var) not in self._free_ids:
			self._free_ids.add(id(var))
			self.free.append(var)

	def visit_let(self, let: Let) -> None:
		self.bound.add(id(let.var))
		self.visit(let.value)
		self.visit(let.body)

	def visit_function(self, func: Function) -> None:
		for p in func.params:
			self.bound.add(id(p))
		self.visit(func.body)


def free_vars(expr: Expr) -> list[Var]:
	"""Variables used but not bound in `expr`, in first-use order."""
	collector = _FreeVarCollector()
	collector.visit(expr)
	return collector.free


class _Substitute(ExprMutator):
	def __init__(self, mapping: dict[Var, Expr], fresh: bool) -> None:
		super().__init__()
		self.mapping: dict[int, Expr] = {id(k): v for k, v in mapping.items()}
		self.fresh = fresh

	def _rebind(self, var: Var) -> Var:
		if not self.fresh:
			return var
		new = Var(var.name, var.type_annotation)
		new.checked_type = var.checked_type
		self.mapping[id(var)] = new
		return new

	def visit_var(self, var: Var) -> Expr:
		return self.mapping.get(id(var), var)

	def visit_let(self, let: Let) -> Expr:
		var = self._rebind(let.var)
		value = self.visit(let.value)
		body = self.visit(let.body)
		if var is let.var and value is let.value and body is let.body:
			return let
		return Let(var, value, body)

	def visit_function(self, func: Function) -> Expr:
		params = [self._rebind(p) for p in func.params]
		body = self.visit(func.body)
		if body is func.body and all(n is o for n, o in zip(params, func.params)):
			return func
		return Function(params, body, func.ret_type, dict(func.attrs))


def substitute(expr: Expr, mapping: dict[Var, Expr], *, fresh: bool = False) -> Expr:
	"""Replace free occurrences of the mapped vars.

	With ``fresh=True`` every binder inside `expr` is replaced by a new `Var`,
	which is required whenever the same body is inlined at more than one site.
	"""
	return _Substitute(mapping, fresh).visit(expr)
