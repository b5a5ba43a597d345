from __future__ import annotations

from dataclasses import dataclass, field

from .expr import Function, GlobalVar
from .op import IRValidationError
from .visitor import ExprVisitor


@dataclass
class IRModule:
	"""A set of named global functions.

	Design choices:
	- Passes never mutate a module they are given; they return a new one that
	  may share unchanged functions with the input.
	- A name maps to exactly one `GlobalVar`; every reference to a global in
	  any function body uses that object.
	"""

	functions: dict[str, Function] = field(default_factory=dict)
	global_vars: dict[str, GlobalVar] = field(default_factory=dict)
	_name_counters: dict[str, int] = field(default_factory=dict)

	@classmethod
	def from_expr(cls, func: Function, name: str = "main") -> IRModule:
		mod = cls()
		mod.add(name, func)
		return mod

	def fresh_global_name(self, prefix: str) -> str:
		while True:
			n = self._name_counters.get(prefix, 0) + 1
			self._name_counters[prefix] = n
			name = f"{prefix}{n}"
			if name not in self.functions:
				return name

	def get_global_var(self, name: str) -> GlobalVar:
		try:
			return self.global_vars[name]
		except KeyError:
			raise IRValidationError(f"Cannot find global var {name!r} in module") from None

	def add(self, name: str, func: Function) -> GlobalVar:
		if not isinstance(func, Function):
			raise IRValidationError(f"Only functions can be added to a module, got {type(func).__name__}")
		gvar = self.global_vars.get(name)
		if gvar is None:
			gvar = GlobalVar(name)
			self.global_vars[name] = gvar
		self.functions[name] = func
		return gvar

	def lookup(self, key: str | GlobalVar) -> Function:
		name = key.name if isinstance(key, GlobalVar) else key
		try:
			return self.functions[name]
		except KeyError:
			raise IRValidationError(f"Cannot find function {name!r} in module") from None

	def __contains__(self, name: str) -> bool:
		return name in self.functions

	def copy(self) -> IRModule:
		return IRModule(dict(self.functions), dict(self.global_vars), dict(self._name_counters))

	def with_functions(self, functions: dict[str, Function]) -> IRModule:
		out = self.copy()
		out.functions = dict(functions)
		return out

	def entry_only(self, entry: str = "main") -> IRModule:
		"""Reduce to `entry` plus every global it transitively references."""
		keep: list[str] = []
		pending = [entry]
		while pending:
			name = pending.pop()
			if name in keep:
				continue
			keep.append(name)
			pending.extend(g.name for g in referenced_globals(self.lookup(name)))
		out = IRModule(_name_counters=dict(self._name_counters))
		for name in self.functions:
			if name in keep:
				out.functions[name] = self.functions[name]
				out.global_vars[name] = self.global_vars[name]
		return out

	def summary(self) -> str:
		lines: list[str] = [f"IRModule(functions={len(self.functions)})"]
		for name, func in self.functions.items():
			params = ", ".join(p.name for p in func.params)
			kind = " [closure]" if func.is_closure else ""
			ty = f" : {func.checked_type}" if func.checked_type is not None else ""
			lines.append(f"- @{name}({params}){kind}{ty}")
		return "\n".join(lines)


def referenced_globals(func: Function) -> list[GlobalVar]:
	found: list[GlobalVar] = []

	class _Collect(ExprVisitor):
		def visit_globalvar(self, gvar: GlobalVar) -> None:
			found.append(gvar)

	_Collect().visit(func)
	return found
