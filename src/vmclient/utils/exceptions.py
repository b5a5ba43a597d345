"""Exception hierarchy for the computation client.

Every error raised here is fatal for the call that raised it: there is no
retry policy and no partial result. The hierarchy only exists so callers can
tell an ecosystem mismatch (an unsupported element type, an unknown device)
from a broken compile/run invariant.
"""

from __future__ import annotations


class ClientError(Exception):
    """Base class for all client errors.

    Args:
        message: Human readable description.
        details: Optional key/value context appended to ``str(err)``.
    """

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({detail_str})"
        return self.message


class DeviceError(ClientError):
    """Raised for unknown device kinds or malformed device names."""

    def __init__(self, message: str, device: str | None = None):
        details = {}
        if device is not None:
            details["device"] = device
        super().__init__(message, details)
        self.device = device


class UnsupportedTypeError(ClientError):
    """Raised when an element type has no typed host copy routine."""

    def __init__(self, element_type: str, operation: str = "transfer"):
        super().__init__(
            f"NotImplementedError: element type '{element_type}' is not supported",
            {"operation": operation},
        )
        self.element_type = element_type


class CompilationError(ClientError):
    """Raised when a pass or the lowering step hits a structural error."""

    def __init__(self, message: str, step: str | None = None):
        details = {}
        if step is not None:
            details["step"] = step
        super().__init__(message, details)
        self.step = step


class ExecutionError(ClientError):
    """Raised when running a computation violates a run-time invariant."""


class ClosureResolutionError(ExecutionError):
    """Raised when a VM closure cannot be mapped back onto its lifted function."""

    def __init__(self, message: str, func_index: int | None = None):
        details = {}
        if func_index is not None:
            details["func_index"] = func_index
        super().__init__(message, details)
        self.func_index = func_index
