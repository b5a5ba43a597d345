"""The computation client: device registry, transfers, compile and execute."""

from .client import ComputationClient
from .compiler import GraphCompiler, is_identity_function
from .computation import (
    CompileInstance,
    Computation,
    GenericComputation,
    LoweredModuleTable,
    ProgramShape,
)
from .data import Data, Literal, Shape, TensorSource
from .device import DEVICE_PRIORITY, DeviceRegistry
from .executor import ExecuteComputationOptions, ExecutionEngine
from .transfer import DataTransferEngine

__all__ = [
    "ComputationClient",
    "CompileInstance",
    "Computation",
    "Data",
    "DataTransferEngine",
    "DEVICE_PRIORITY",
    "DeviceRegistry",
    "ExecuteComputationOptions",
    "ExecutionEngine",
    "GenericComputation",
    "GraphCompiler",
    "Literal",
    "LoweredModuleTable",
    "ProgramShape",
    "Shape",
    "TensorSource",
    "is_identity_function",
]
