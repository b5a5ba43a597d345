"""Configuration, logging and error types shared across the client."""

from .config import ClientConfig
from .exceptions import (
    ClientError,
    ClosureResolutionError,
    CompilationError,
    DeviceError,
    ExecutionError,
    UnsupportedTypeError,
)
from .logging import get_logger, setup_logging

__all__ = [
    "ClientConfig",
    "ClientError",
    "ClosureResolutionError",
    "CompilationError",
    "DeviceError",
    "ExecutionError",
    "UnsupportedTypeError",
    "get_logger",
    "setup_logging",
]
