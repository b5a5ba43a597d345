from __future__ import annotations

from dataclasses import dataclass

from vmclient.utils.exceptions import DeviceError

# Logical kind -> backend device type name.
BACKEND_KINDS = {"CPU": "cpu", "GPU": "cuda"}


@dataclass(frozen=True, slots=True)
class Device:
    """A (kind, ordinal) compute target, e.g. ``GPU:0``."""

    kind: str
    ordinal: int = 0

    @classmethod
    def parse(cls, name: str) -> Device:
        kind, sep, ordinal = name.partition(":")
        kind = kind.strip().upper()
        if kind not in BACKEND_KINDS:
            raise DeviceError(f"Unknown device kind {kind!r}", device=name)
        try:
            return cls(kind, int(ordinal) if sep else 0)
        except ValueError:
            raise DeviceError(f"Malformed device ordinal in {name!r}", device=name) from None

    @property
    def name(self) -> str:
        return f"{self.kind}:{self.ordinal}"

    @property
    def backend_name(self) -> str:
        return f"{BACKEND_KINDS[self.kind]}({self.ordinal})"

    @property
    def is_cpu(self) -> bool:
        return self.kind == "CPU"

    def __str__(self) -> str:  # pragma: no cover
        return self.name


CPU0 = Device("CPU", 0)
