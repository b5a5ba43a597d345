from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True, slots=True)
class DType:
	"""Scalar element type of IR tensors and device buffers.

	`primitive` is the short element-type code used on shapes and literals
	(s8, u32, f16, pred, ...).
	"""

	name: str
	itemsize: int
	primitive: str

	@property
	def numpy(self) -> np.dtype:
		return np.dtype(self.name)

	def __str__(self) -> str:  # pragma: no cover
		return self.name


int8 = DType("int8", 1, "s8")
int16 = DType("int16", 2, "s16")
int32 = DType("int32", 4, "s32")
int64 = DType("int64", 8, "s64")
uint8 = DType("uint8", 1, "u8")
uint16 = DType("uint16", 2, "u16")
uint32 = DType("uint32", 4, "u32")
uint64 = DType("uint64", 8, "u64")
bool_ = DType("bool", 1, "pred")
float16 = DType("float16", 2, "f16")
float32 = DType("float32", 4, "f32")
float64 = DType("float64", 8, "f64")
complex64 = DType("complex64", 8, "c64")

ALL_DTYPES = (
	int8,
	int16,
	int32,
	int64,
	uint8,
	uint16,
	uint32,
	uint64,
	bool_,
	float16,
	float32,
	float64,
	complex64,
)

_BY_NAME = {d.name: d for d in ALL_DTYPES}
_BY_PRIMITIVE = {d.primitive: d for d in ALL_DTYPES}


def from_numpy(dtype: np.dtype | type) -> DType:
	key = np.dtype(dtype).name
	try:
		return _BY_NAME[key]
	except KeyError:
		raise ValueError(f"No IR dtype for numpy dtype {key!r}") from None


def from_primitive(code: str) -> DType:
	try:
		return _BY_PRIMITIVE[code]
	except KeyError:
		raise ValueError(f"Unknown element type code {code!r}") from None
