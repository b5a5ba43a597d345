from .bytecode import Executable, VMFunction
from .compiler import VMCompiler
from .device import CPU0, Device
from .values import (
    ClosureValue,
    RuntimeValue,
    TensorValue,
    TupleValue,
    VMClosureValue,
    type_key,
)
from .vm import VirtualMachine, VMContext

__all__ = [
    "CPU0",
    "ClosureValue",
    "Device",
    "Executable",
    "RuntimeValue",
    "TensorValue",
    "TupleValue",
    "VMClosureValue",
    "VMCompiler",
    "VMContext",
    "VMFunction",
    "VirtualMachine",
    "type_key",
]
