from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from .dtypes import DType


@dataclass(frozen=True, slots=True)
class TensorType:
	shape: tuple[int, ...]
	dtype: DType

	def __str__(self) -> str:  # pragma: no cover
		return f"Tensor[{self.shape}, {self.dtype}]"


@dataclass(frozen=True, slots=True)
class TupleType:
	fields: tuple[Type, ...]

	def __str__(self) -> str:  # pragma: no cover
		return "(" + ", ".join(str(f) for f in self.fields) + ")"


@dataclass(frozen=True, slots=True)
class FuncType:
	arg_types: tuple[Type, ...]
	ret_type: Type

	def __str__(self) -> str:  # pragma: no cover
		args = ", ".join(str(a) for a in self.arg_types)
		return f"fn ({args}) -> {self.ret_type}"


Type = Union[TensorType, TupleType, FuncType]
